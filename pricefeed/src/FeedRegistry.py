"""FeedRegistry: Ordered, immutable set of tracked price feed contracts.

Addresses are validated when the registry is built so that a typo fails
before any RPC traffic. Iteration order is insertion order and defines the
per-tick processing and delivery order.

.. code-block:: python

    >>> registry = FeedRegistry.from_pairs([
    ...     ("ETH", "0x9ef1B8c0E4F7dc8bF5719Ea496883DC6401d5b2e"),
    ...     ("BTC", "264990fbd0a4796a3e3d8e37c4d5f87a3aca5ebf"),
    ... ])
    >>> [c.symbol for c in registry]
    ['ETH', 'BTC']
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from web3 import Web3

from .errors import DuplicateAddress, EmptyFeedSet, InvalidAddress, InvalidContract


@dataclass(frozen=True)
class Contract:
    """A single price feed contract.

    :ivar symbol: Feed symbol (e.g., "ETH"). Not required to be unique.
    :ivar address: EIP-55 checksummed contract address.
    """

    symbol: str
    address: str

    @classmethod
    def from_pair(cls, symbol: str, address: str) -> Contract:
        """Build a contract from a symbol and a hex address string.

        The "0x" prefix is optional and hex case is ignored.

        :param symbol: Feed symbol.
        :param address: 20-byte hex address.
        :returns: New Contract with a checksummed address.
        :raises InvalidContract: If the symbol is not a non-empty string.
        :raises InvalidAddress: If the address is not 20 bytes of hex.
        """
        if not isinstance(symbol, str) or not symbol.strip():
            raise InvalidContract(f"Invalid symbol {symbol!r}: expected a non-empty string")
        return cls(symbol=symbol, address=normalize_address(address))


def normalize_address(address: str) -> str:
    """Validate a hex address and return its checksummed form.

    :param address: Address with or without "0x" prefix.
    :returns: EIP-55 checksummed address.
    :raises InvalidAddress: If the address is malformed.
    """
    if not isinstance(address, str):
        raise InvalidAddress(f"Invalid address {address!r}: expected a hex string")
    body = address.strip()
    if body[:2].lower() == "0x":
        body = body[2:]
    candidate = f"0x{body.lower()}"
    if len(body) != 40 or not Web3.is_address(candidate):
        raise InvalidAddress(
            f"Invalid address '{address}'. Expected 20 bytes of hex (e.g., '0x9ef1...2e')"
        )
    return Web3.to_checksum_address(candidate)


class FeedRegistry:
    """Read-only ordered collection of contracts.

    :ivar contracts: Tuple of contracts in insertion order.
    """

    def __init__(self, contracts: Iterable[Contract]) -> None:
        """Initialize the registry.

        :param contracts: Contracts in tick order.
        :raises EmptyFeedSet: If no contracts are given.
        :raises DuplicateAddress: If an address appears more than once.
        """
        self._contracts: tuple[Contract, ...] = tuple(contracts)
        if not self._contracts:
            raise EmptyFeedSet("At least one contract must be specified")

        seen: dict[str, str] = {}
        for contract in self._contracts:
            if contract.address in seen:
                raise DuplicateAddress(
                    f"Address {contract.address} registered for both "
                    f"'{seen[contract.address]}' and '{contract.symbol}'"
                )
            seen[contract.address] = contract.symbol

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> FeedRegistry:
        """Build a registry from (symbol, address) tuples.

        :param pairs: Ordered (symbol, address) tuples.
        :returns: New FeedRegistry.
        :raises InvalidContract: If an entry is not a (symbol, address) pair.
        :raises InvalidAddress: If any address is malformed.
        :raises EmptyFeedSet: If no pairs are given.
        :raises DuplicateAddress: If an address appears more than once.
        """
        contracts = []
        for pair in pairs:
            if isinstance(pair, (str, bytes)) or not isinstance(pair, (tuple, list)) or len(pair) != 2:
                raise InvalidContract(f"Invalid contract entry {pair!r}: expected (symbol, address)")
            contracts.append(Contract.from_pair(*pair))
        return cls(contracts)

    @property
    def contracts(self) -> tuple[Contract, ...]:
        """Contracts in tick order."""
        return self._contracts

    def __iter__(self) -> Iterator[Contract]:
        return iter(self._contracts)

    def __len__(self) -> int:
        return len(self._contracts)

    def __repr__(self) -> str:
        return f"FeedRegistry({[c.symbol for c in self._contracts]!r})"
