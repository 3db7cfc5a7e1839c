"""Error taxonomy for the price feed reflector.

Construction problems raise ``ConfigError`` synchronously. Everything that
can go wrong while ticking (``TransportError``, ``DecodeError``,
``DeliveryError``) is isolated to one contract for one tick and surfaced as a
``FeedErrorEvent`` instead of being raised out of the loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


class PriceFeedError(Exception):
    """Base exception for all price feed errors.

    :cvar kind: Short tag used in error events (e.g., "transport").
    """

    kind: ClassVar[str] = "error"


class ConfigError(PriceFeedError):
    """Raised when a scheduler cannot be constructed from its configuration."""

    kind = "config"


class InvalidRpcUrl(ConfigError):
    """Raised when the RPC URL is empty, unparsable or has no usable scheme."""

    pass


class InvalidAddress(ConfigError):
    """Raised when a contract address is not a 20-byte hex value."""

    pass


class InvalidContract(ConfigError):
    """Raised when a contract entry is not a (symbol, address) pair."""

    pass


class DuplicateAddress(ConfigError):
    """Raised when the same contract address is registered twice."""

    pass


class EmptyFeedSet(ConfigError):
    """Raised when no contracts are given."""

    pass


class InvalidInterval(ConfigError):
    """Raised when the tick interval is not strictly positive."""

    pass


class InvalidReflector(ConfigError):
    """Raised when a reflector is misconfigured (e.g., bounded queue)."""

    pass


class TransportError(PriceFeedError):
    """Raised when an RPC call fails (network, HTTP or JSON-RPC level)."""

    kind = "transport"


class RpcTimeoutError(TransportError):
    """Raised when the RPC endpoint does not answer in time."""

    pass


class RpcHTTPError(TransportError):
    """Raised when the RPC endpoint answers with a non-2xx status.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class RpcResponseError(TransportError):
    """Raised when the JSON-RPC response carries an ``error`` object.

    :ivar code: JSON-RPC error code (e.g., -32000 for execution reverted).
    """

    def __init__(self, code: int | None, message: str):
        self.code = code
        super().__init__(f"RPC error {code}: {message}")


class DecodeError(PriceFeedError):
    """Raised when a contract return value cannot be decoded."""

    kind = "decode"


class TooShort(DecodeError):
    """Raised when the return data is shorter than the expected layout.

    :ivar expected: Minimum number of bytes required.
    :ivar actual: Number of bytes received.
    """

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Return data too short: expected {expected} bytes, got {actual}")


class MalformedResponse(DecodeError):
    """Raised when the return data has the right size but invalid encoding."""

    pass


class DeliveryError(PriceFeedError):
    """Raised when a reflector fails to deliver a single round."""

    kind = "delivery"


class SchedulerStateError(PriceFeedError, RuntimeError):
    """Raised when a lifecycle call is not valid in the scheduler's state."""

    kind = "state"


@dataclass(frozen=True)
class FeedErrorEvent:
    """A per-contract failure observed during one tick.

    :ivar symbol: Symbol of the contract that failed.
    :ivar address: Checksummed contract address.
    :ivar kind: Error kind ("transport", "decode", "delivery", ...).
    :ivar message: Human-readable error message.
    :ivar error: The underlying exception.
    """

    symbol: str
    address: str
    kind: str
    message: str
    error: BaseException | None = None

    @classmethod
    def from_exception(cls, symbol: str, address: str, error: BaseException) -> FeedErrorEvent:
        """Build an event from an exception raised while processing a contract.

        Errors outside the taxonomy are reported with kind "internal".

        :param symbol: Contract symbol.
        :param address: Contract address.
        :param error: The exception to report.
        :returns: New FeedErrorEvent.
        """
        kind = error.kind if isinstance(error, PriceFeedError) else "internal"
        message = str(error) or type(error).__name__
        return cls(symbol=symbol, address=address, kind=kind, message=message, error=error)
