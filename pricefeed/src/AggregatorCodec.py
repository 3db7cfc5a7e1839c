"""AggregatorCodec: Calldata encoding and return decoding for price feeds.

Price feeds implement the AggregatorV3 interface. Only zero-argument view
functions are called, so the calldata is exactly the 4-byte selector:
    selector = keccak256("latestRoundData()")[:4]

``latestRoundData()`` returns a static tuple, one 32-byte slot per field:
    (uint80 roundId, int256 answer, uint256 startedAt,
     uint256 updatedAt, uint80 answeredInRound)

.. code-block:: python

    >>> encode_call("latestRoundData()").hex()
    'feaf968c'
    >>> encode_call("decimals()").hex()
    '313ce567'
"""

from __future__ import annotations

import re
from functools import lru_cache

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from .errors import MalformedResponse, TooShort
from .RoundData import RoundData

LATEST_ROUND_DATA_SIGNATURE = "latestRoundData()"
DECIMALS_SIGNATURE = "decimals()"

# Size of one ABI-encoded static value.
SLOT_SIZE = 32

ROUND_DATA_TYPES = ["uint80", "int256", "uint256", "uint256", "uint80"]
ROUND_DATA_SIZE = SLOT_SIZE * len(ROUND_DATA_TYPES)

_SIGNATURE_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*\([A-Za-z0-9_,\[\]()]*\)$")


@lru_cache(maxsize=64)
def encode_call(function_signature: str) -> bytes:
    """Encode a zero-argument contract call into calldata.

    :param function_signature: Canonical signature, e.g. "latestRoundData()".
    :returns: 4-byte calldata (the function selector).
    :raises ValueError: If the signature is not in canonical form.
    """
    if not _SIGNATURE_RE.match(function_signature):
        raise ValueError(
            f"Invalid function signature '{function_signature}'. "
            "Expected canonical form like 'latestRoundData()'"
        )
    return bytes(Web3.keccak(text=function_signature)[:4])


def _decode_static(types: list[str], data: bytes) -> tuple:
    """Decode a static ABI tuple, requiring at least one slot per type."""
    expected = SLOT_SIZE * len(types)
    if len(data) < expected:
        raise TooShort(expected, len(data))
    try:
        return decode(types, bytes(data[:expected]))
    except DecodingError as e:
        raise MalformedResponse(f"Invalid {', '.join(types)} encoding: {e}") from e


def decode_round_data(data: bytes, symbol: str) -> RoundData:
    """Decode the return data of ``latestRoundData()``.

    Trailing bytes past the five slots are ignored.

    :param data: Raw return bytes from ``eth_call``.
    :param symbol: Symbol attached to the decoded round.
    :returns: Decoded RoundData (decimals unset).
    :raises TooShort: If fewer than 160 bytes were returned.
    :raises MalformedResponse: If a slot holds a value out of range for its type.
    """
    round_id, answer, started_at, updated_at, answered_in_round = _decode_static(
        ROUND_DATA_TYPES, data
    )
    return RoundData(
        symbol=symbol,
        round_id=round_id,
        answer=answer,
        started_at=started_at,
        updated_at=updated_at,
        answered_in_round=answered_in_round,
    )


def decode_decimals(data: bytes) -> int:
    """Decode the return data of ``decimals()`` (uint8).

    :param data: Raw return bytes from ``eth_call``.
    :returns: Number of decimals.
    :raises TooShort: If fewer than 32 bytes were returned.
    :raises MalformedResponse: If the value does not fit a uint8.
    """
    (decimals,) = _decode_static(["uint8"], data)
    return decimals
