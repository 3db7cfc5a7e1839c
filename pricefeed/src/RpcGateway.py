"""RpcGateway: The read-only contract call interface and its HTTP implementation.

The scheduler only needs ``eth_call(to, data) -> bytes``. ``HttpRpcGateway``
implements it as a JSON-RPC 2.0 POST over a lazily created
``httpx.AsyncClient`` that lives on the event loop running the tick loop.

Any other transport can be plugged in by subclassing ``RpcGateway``:

.. code-block:: python

    class MyGateway(RpcGateway):
        async def eth_call(self, to: str, data: bytes) -> bytes:
            return await my_client.call(to, data)
"""

from __future__ import annotations

import itertools
import logging
import os
from abc import ABC, abstractmethod
from typing import Any

import httpx
from web3 import Web3

from .errors import (
    InvalidRpcUrl,
    RpcHTTPError,
    RpcResponseError,
    RpcTimeoutError,
    TransportError,
)

logger = logging.getLogger(__name__)

# Public fallback RPC endpoints for well-known networks.
NETWORKS: dict[str, str] = {
    "ethereum": "https://1rpc.io/eth",
    "arbitrum": "https://1rpc.io/arb",
    "bsc": "https://bsc-dataseed1.binance.org/",
    "polygon": "https://polygon-rpc.com",
}

SUPPORTED_SCHEMES = ("http", "https", "ws", "wss")


def resolve_rpc_url(network_or_url: str) -> str:
    """Resolve a network preset name or URL to an RPC URL.

    The RPC_URL environment variable overrides the preset for a network name.

    :param network_or_url: Preset name (e.g., "ethereum") or an RPC URL.
    :returns: RPC URL.
    """
    if network_or_url in NETWORKS:
        return os.environ.get("RPC_URL") or NETWORKS[network_or_url]
    return network_or_url


def validate_rpc_url(rpc_url: str) -> str:
    """Check that an RPC URL is absolute and uses a supported scheme.

    :param rpc_url: URL to validate.
    :returns: The URL, stripped of surrounding whitespace.
    :raises InvalidRpcUrl: If the URL is empty, unparsable or unsupported.
    """
    if not isinstance(rpc_url, str) or not rpc_url.strip():
        raise InvalidRpcUrl("RPC URL must be a non-empty string")
    rpc_url = rpc_url.strip()
    try:
        url = httpx.URL(rpc_url)
    except httpx.InvalidURL as e:
        raise InvalidRpcUrl(f"Invalid RPC URL '{rpc_url}': {e}") from e
    if url.scheme not in SUPPORTED_SCHEMES:
        raise InvalidRpcUrl(
            f"Invalid RPC URL '{rpc_url}': scheme must be one of {SUPPORTED_SCHEMES}"
        )
    if not url.host:
        raise InvalidRpcUrl(f"Invalid RPC URL '{rpc_url}': missing host")
    return rpc_url


class RpcGateway(ABC):
    """Abstract read-only contract call transport.

    Implementations raise ``TransportError`` (or a subclass) on any failure.
    The core imposes no timeout of its own; a gateway that never returns
    stalls the tick.
    """

    @abstractmethod
    async def eth_call(self, to: str, data: bytes) -> bytes:
        """Execute a read-only call against the latest block.

        :param to: Checksummed contract address.
        :param data: Calldata.
        :returns: Raw return bytes.
        :raises TransportError: On network or RPC failure.
        """
        pass

    async def aclose(self) -> None:
        """Release transport resources. Called when the tick loop exits."""
        return None


class HttpRpcGateway(RpcGateway):
    """JSON-RPC over HTTP(S) using httpx.

    :cvar DEFAULT_TIMEOUT: Default request timeout in seconds.
    :ivar rpc_url: Endpoint URL.
    :ivar timeout: Request timeout in seconds.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        rpc_url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway. No connection is made here.

        :param rpc_url: HTTP(S) JSON-RPC endpoint.
        :param timeout: Request timeout in seconds (default: 10).
        :param transport: Optional httpx transport (used by tests).
        :raises InvalidRpcUrl: If the URL is not an HTTP(S) URL.
        """
        self.rpc_url = validate_rpc_url(rpc_url)
        if httpx.URL(self.rpc_url).scheme not in ("http", "https"):
            raise InvalidRpcUrl(
                f"HttpRpcGateway needs an http(s) URL, got '{self.rpc_url}'"
            )
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the client on the current event loop."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON-RPC request and return the decoded envelope.

        :param payload: JSON-RPC request object.
        :returns: JSON-RPC response object.
        :raises RpcHTTPError: On non-2xx response.
        :raises RpcTimeoutError: On timeout.
        :raises TransportError: On network errors or a non-JSON body.
        """
        client = self._get_client()
        try:
            response = await client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise RpcTimeoutError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "RPC POST %s failed with status %s: %s",
                self.rpc_url,
                response.status_code,
                response.text[:200],
            )
            raise RpcHTTPError(response.status_code, response.text[:200])

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON-RPC response: {response.text[:200]}") from e
        if not isinstance(body, dict):
            raise TransportError(f"Invalid JSON-RPC response: {body!r}"[:200])
        return body

    async def eth_call(self, to: str, data: bytes) -> bytes:
        """Call ``eth_call`` on the latest block.

        :param to: Checksummed contract address.
        :param data: Calldata.
        :returns: Raw return bytes.
        :raises TransportError: On any transport or JSON-RPC error.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [{"to": to, "data": Web3.to_hex(data)}, "latest"],
        }
        logger.debug(f"eth_call to={to} data={Web3.to_hex(data)}")
        body = await self._post(payload)

        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RpcResponseError(error.get("code"), str(error.get("message", "")))
            raise RpcResponseError(None, str(error))

        result = body.get("result")
        if not isinstance(result, str):
            raise TransportError(f"Missing result in JSON-RPC response: {body!r}"[:200])
        try:
            return Web3.to_bytes(hexstr=result)
        except ValueError as e:
            raise TransportError(f"Invalid hex result: {result[:66]}") from e
