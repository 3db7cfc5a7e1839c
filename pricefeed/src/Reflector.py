"""Reflector: Delivery sinks for decoded rounds.

Two variants share one interface:

- ``ChannelReflector`` puts each round on an unbounded queue. ``publish``
  never waits, so a consumer that never drains only accumulates memory and
  never stalls the scheduler.
- ``CallbackReflector`` invokes a function per round. The function may be
  sync or async; a returned awaitable is awaited on the scheduler's loop. A
  failing callback is reported as a ``DeliveryError`` for that one round.

Both also accept per-contract error events through ``publish_error``.

.. code-block:: python

    >>> reflector, rounds = ChannelReflector.unbounded()
    >>> # scheduler.start(); rounds.get() -> RoundData

    >>> async def on_round(round_data):
    ...     print(round_data.symbol, round_data.price)
    >>> reflector = CallbackReflector(on_round)
"""

from __future__ import annotations

import inspect
import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Protocol

from .errors import DeliveryError, FeedErrorEvent, InvalidReflector
from .RoundData import RoundData

logger = logging.getLogger(__name__)

RoundCallback = Callable[[RoundData], Awaitable[None] | None]
ErrorCallback = Callable[[FeedErrorEvent], Awaitable[None] | None]


class SupportsPutNowait(Protocol):
    """Any unbounded queue: ``queue.SimpleQueue``, ``queue.Queue``, ``asyncio.Queue``."""

    def put_nowait(self, item: Any) -> None: ...


class Reflector(ABC):
    """Abstract delivery sink bound to one scheduler for its lifetime."""

    @abstractmethod
    async def publish(self, round_data: RoundData) -> None:
        """Deliver one decoded round.

        :param round_data: Round to deliver.
        :raises DeliveryError: If this single delivery failed.
        """
        pass

    @abstractmethod
    async def publish_error(self, event: FeedErrorEvent) -> None:
        """Deliver one per-contract error event.

        :param event: Error event to deliver.
        """
        pass


def _check_unbounded(q: Any, name: str) -> None:
    """Reject queues that could block or drop on put."""
    if not callable(getattr(q, "put_nowait", None)):
        raise InvalidReflector(f"{name} must provide put_nowait()")
    maxsize = getattr(q, "maxsize", 0)
    if isinstance(maxsize, int) and maxsize > 0:
        raise InvalidReflector(f"{name} must be unbounded (maxsize={maxsize})")


class ChannelReflector(Reflector):
    """Sink that enqueues rounds on an unbounded queue.

    ``queue.SimpleQueue`` (the default) is safe across threads and works with
    either runner. An ``asyncio.Queue`` may be used when the scheduler runs on
    the same event loop as the consumer.

    :ivar rounds: Queue receiving RoundData.
    :ivar errors: Optional queue receiving FeedErrorEvent.
    """

    def __init__(
        self,
        rounds: SupportsPutNowait | None = None,
        errors: SupportsPutNowait | None = None,
    ) -> None:
        """Initialize the channel reflector.

        :param rounds: Unbounded queue for rounds (default: new SimpleQueue).
        :param errors: Optional unbounded queue for error events.
        :raises InvalidReflector: If a queue is bounded or lacks put_nowait().
        """
        if rounds is None:
            rounds = queue.SimpleQueue()
        _check_unbounded(rounds, "rounds queue")
        if errors is not None:
            _check_unbounded(errors, "errors queue")
        self.rounds = rounds
        self.errors = errors

    @classmethod
    def unbounded(cls) -> tuple[ChannelReflector, queue.SimpleQueue]:
        """Create a reflector and the receiving end of its channel.

        :returns: Tuple of (reflector, rounds queue).
        """
        rounds: queue.SimpleQueue = queue.SimpleQueue()
        return cls(rounds), rounds

    async def publish(self, round_data: RoundData) -> None:
        """Enqueue a round. Never blocks."""
        self.rounds.put_nowait(round_data)

    async def publish_error(self, event: FeedErrorEvent) -> None:
        """Enqueue an error event if an errors queue is attached."""
        if self.errors is not None:
            self.errors.put_nowait(event)


class CallbackReflector(Reflector):
    """Sink that calls a registered function for every round.

    The scheduler publishes sequentially; delivery counters are guarded by a
    lock so they can be read from another thread.

    :ivar callback: Function receiving each RoundData.
    :ivar on_error: Optional function receiving each FeedErrorEvent.
    :ivar delivered: Number of successful deliveries.
    :ivar failed: Number of failed deliveries.
    """

    def __init__(
        self,
        callback: RoundCallback,
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Initialize the callback reflector.

        :param callback: Sync or async function taking a RoundData.
        :param on_error: Optional sync or async function taking a FeedErrorEvent.
        :raises InvalidReflector: If a callback is not callable.
        """
        if not callable(callback):
            raise InvalidReflector(f"callback must be callable, got {callback!r}")
        if on_error is not None and not callable(on_error):
            raise InvalidReflector(f"on_error must be callable, got {on_error!r}")
        self.callback = callback
        self.on_error = on_error
        self.delivered = 0
        self.failed = 0
        self._lock = threading.Lock()

    @staticmethod
    async def _invoke(fn: Callable[[Any], Any], arg: Any) -> None:
        result = fn(arg)
        if inspect.isawaitable(result):
            await result

    async def publish(self, round_data: RoundData) -> None:
        """Invoke the callback with one round.

        :raises DeliveryError: If the callback raised.
        """
        try:
            await self._invoke(self.callback, round_data)
        except Exception as e:
            with self._lock:
                self.failed += 1
            logger.debug(f"[{round_data.symbol}] Callback raised {type(e).__name__}: {e}")
            raise DeliveryError(
                f"Callback failed for {round_data.symbol} round {round_data.round_id}: {e}"
            ) from e
        with self._lock:
            self.delivered += 1

    async def publish_error(self, event: FeedErrorEvent) -> None:
        """Invoke on_error with one event, if registered."""
        if self.on_error is not None:
            await self._invoke(self.on_error, event)
