"""FeedScheduler: Periodic latestRoundData() polling with per-contract isolation.

Architecture:
    - One tick loop coroutine, hosted by a TaskRunner (event loop task or
      dedicated thread)
    - Each tick calls every contract concurrently through the RpcGateway
    - Results are delivered to the Reflector afterwards, in registry order
    - Any per-contract failure becomes a FeedErrorEvent; the loop never dies
      because of one contract
    - The next tick starts one interval after the previous one started;
      overruns start the next tick immediately without a backlog

Lifecycle: IDLE --start()--> RUNNING --stop()--> STOPPED. STOPPED is
terminal; ``start()`` in any state other than IDLE raises
``SchedulerStateError``. ``stop()`` is idempotent.

.. code-block:: python

    reflector, rounds = ChannelReflector.unbounded()
    scheduler = FeedScheduler.try_new(
        "https://bsc-dataseed1.binance.org/",
        10,
        reflector,
        [("ETH", "0x9ef1B8c0E4F7dc8bF5719Ea496883DC6401d5b2e")],
    )
    scheduler.start()
    print(rounds.get())
    scheduler.stop()
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
from collections.abc import Iterable

from .AggregatorCodec import (
    DECIMALS_SIGNATURE,
    LATEST_ROUND_DATA_SIGNATURE,
    decode_decimals,
    decode_round_data,
    encode_call,
)
from .errors import (
    DeliveryError,
    FeedErrorEvent,
    InvalidInterval,
    InvalidReflector,
    SchedulerStateError,
)
from .FeedRegistry import Contract, FeedRegistry
from .Reflector import Reflector
from .RoundData import RoundData
from .RpcGateway import HttpRpcGateway, RpcGateway, resolve_rpc_url, validate_rpc_url
from .TaskRunner import AsyncioTaskRunner, TaskRunner, ThreadTaskRunner

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    """Lifecycle states of a FeedScheduler."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def _validate_interval(interval_seconds: float) -> float:
    if isinstance(interval_seconds, bool) or not isinstance(interval_seconds, (int, float)):
        raise InvalidInterval(
            f"Interval must be a number of seconds, got {interval_seconds!r}"
        )
    if not interval_seconds > 0:
        raise InvalidInterval(f"Interval must be positive, got {interval_seconds}")
    return float(interval_seconds)


class FeedScheduler:
    """Polls a fixed set of price feeds and reflects every decoded round.

    :ivar rpc_url: RPC endpoint URL.
    :ivar interval: Seconds between tick starts.
    :ivar reflector: Sink receiving rounds and error events.
    :ivar registry: Contracts polled on every tick, in order.
    :ivar gateway: Transport used for eth_call.
    :ivar fetch_decimals: Whether to read decimals() once per contract.
    :ivar tick_count: Number of completed ticks.
    """

    def __init__(
        self,
        rpc_url: str,
        interval: float,
        reflector: Reflector,
        registry: FeedRegistry,
        gateway: RpcGateway,
        runner: TaskRunner | None = None,
        fetch_decimals: bool = True,
    ) -> None:
        """Initialize from validated parts. Use ``try_new`` for raw config.

        :param rpc_url: Validated RPC URL.
        :param interval: Positive tick interval in seconds.
        :param reflector: Delivery sink.
        :param registry: Contracts to poll.
        :param gateway: RPC transport.
        :param runner: Optional runner; chosen at start() when omitted.
        :param fetch_decimals: Read decimals() once per contract (default: True).
        """
        self.rpc_url = rpc_url
        self.interval = interval
        self.reflector = reflector
        self.registry = registry
        self.gateway = gateway
        self.runner = runner
        self.fetch_decimals = fetch_decimals
        self.tick_count = 0

        self._state = SchedulerState.IDLE
        self._state_lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._decimals: dict[str, int] = {}

    @classmethod
    def try_new(
        cls,
        rpc_url: str,
        interval_seconds: float,
        reflector: Reflector,
        contracts: Iterable[tuple[str, str]],
        gateway: RpcGateway | None = None,
        runner: TaskRunner | None = None,
        fetch_decimals: bool = True,
    ) -> FeedScheduler:
        """Validate the configuration and build a scheduler.

        Nothing touches the network here.

        :param rpc_url: RPC URL or network preset name (e.g., "ethereum").
        :param interval_seconds: Positive number of seconds between ticks.
        :param reflector: ChannelReflector or CallbackReflector.
        :param contracts: Ordered (symbol, address) tuples.
        :param gateway: Optional transport; defaults to HttpRpcGateway(rpc_url).
        :param runner: Optional TaskRunner.
        :param fetch_decimals: Read decimals() once per contract (default: True).
        :returns: New scheduler in the IDLE state.
        :raises ConfigError: If any parameter is invalid.
        """
        interval = _validate_interval(interval_seconds)
        rpc_url = validate_rpc_url(resolve_rpc_url(rpc_url))
        if not isinstance(reflector, Reflector):
            raise InvalidReflector(f"reflector must be a Reflector, got {reflector!r}")
        registry = FeedRegistry.from_pairs(contracts)
        if gateway is None:
            gateway = HttpRpcGateway(rpc_url)

        logger.info(
            f"FeedScheduler configured: contracts={[c.symbol for c in registry]}, "
            f"interval={interval}s, reflector={type(reflector).__name__}"
        )
        return cls(
            rpc_url=rpc_url,
            interval=interval,
            reflector=reflector,
            registry=registry,
            gateway=gateway,
            runner=runner,
            fetch_decimals=fetch_decimals,
        )

    @property
    def state(self) -> SchedulerState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    def start(self) -> None:
        """Start ticking in the background.

        Without an explicit runner, the loop runs as a task on the current
        event loop when called from a coroutine, or on a new thread otherwise.

        :raises SchedulerStateError: If the scheduler is not IDLE.
        :raises RuntimeError: If the runner cannot host the loop (the
            scheduler stays IDLE).
        """
        with self._state_lock:
            if self._state is not SchedulerState.IDLE:
                raise SchedulerStateError(
                    f"start() is only valid once, scheduler is {self._state.value}"
                )
            self._state = SchedulerState.RUNNING

        configured_runner = self.runner
        if self.runner is None:
            self.runner = AsyncioTaskRunner() if _has_running_loop() else ThreadTaskRunner()

        logger.info(
            f"Starting tick loop for {len(self.registry)} contracts "
            f"({type(self.runner).__name__}, interval={self.interval}s)"
        )
        try:
            self.runner.spawn(self.run)
        except BaseException as e:
            # Nothing is running: back to IDLE so start() can be retried.
            logger.error(f"Failed to start tick loop: {e}")
            with self._state_lock:
                if self._state is SchedulerState.RUNNING:
                    self._state = SchedulerState.IDLE
            self.runner = configured_runner
            raise

    def stop(self) -> None:
        """Stop ticking. Idempotent.

        In-flight RPC calls are cancelled and nothing is published after this
        returns. With the thread runner this also waits (bounded) for the
        thread to exit; with the asyncio runner, await ``wait_stopped()``.
        """
        with self._state_lock:
            if self._state is SchedulerState.STOPPED:
                return
            was_running = self._state is SchedulerState.RUNNING
            self._state = SchedulerState.STOPPED
            self._stop_requested.set()

        if was_running and self.runner is not None:
            logger.info("Stopping tick loop")
            self.runner.cancel()

    async def wait_stopped(self) -> None:
        """Wait until the tick loop has fully exited.

        :raises Exception: Whatever terminated the tick loop, if it crashed.
        """
        if self.runner is not None:
            await self.runner.wait()

    async def run(self) -> None:
        """Tick loop: run ticks until stopped, then release the gateway."""
        loop = asyncio.get_running_loop()
        try:
            while not self._stop_requested.is_set():
                started = loop.time()
                await self.tick()
                elapsed = loop.time() - started
                delay = max(0.0, self.interval - elapsed)
                if elapsed > self.interval:
                    logger.debug(
                        f"Tick took {elapsed:.3f}s (interval {self.interval}s), "
                        "starting next tick immediately"
                    )
                await asyncio.sleep(delay)
        except Exception:
            logger.exception("Tick loop terminated unexpectedly")
            raise
        finally:
            with self._state_lock:
                self._state = SchedulerState.STOPPED
                self._stop_requested.set()
            try:
                await self.gateway.aclose()
            except Exception as e:
                logger.warning(f"Failed to close gateway: {type(e).__name__}: {e}")
            logger.info(f"Tick loop exited after {self.tick_count} ticks")

    async def tick(self) -> None:
        """Run one pass over all contracts.

        Calls are issued concurrently; deliveries happen afterwards in
        registry order. A stop request suppresses any remaining delivery.
        """
        contracts = self.registry.contracts
        started = time.monotonic()
        results = await asyncio.gather(
            *(self._fetch_round(contract) for contract in contracts),
            return_exceptions=True,
        )

        delivered = 0
        failed = 0
        for contract, result in zip(contracts, results, strict=True):
            if self._stop_requested.is_set():
                logger.debug("Stop requested, abandoning remaining deliveries")
                return
            if isinstance(result, Exception):
                failed += 1
                await self._report_error(contract, result)
                continue
            if isinstance(result, BaseException):
                # Cancellation and interpreter exits are never per-contract errors.
                raise result

            try:
                await self.reflector.publish(result)
                delivered += 1
            except DeliveryError as e:
                failed += 1
                await self._report_error(contract, e)
            except Exception as e:
                failed += 1
                await self._report_error(contract, DeliveryError(str(e) or type(e).__name__))

        self.tick_count += 1
        logger.debug(
            f"Tick {self.tick_count}: delivered={delivered}, failed={failed} "
            f"in {time.monotonic() - started:.3f}s"
        )

    async def _fetch_round(self, contract: Contract) -> RoundData:
        """Call latestRoundData() (and decimals() once) for one contract.

        :param contract: Contract to query.
        :returns: Decoded round.
        :raises TransportError: On RPC failure.
        :raises DecodeError: On malformed return data.
        """
        decimals = None
        if self.fetch_decimals:
            decimals = self._decimals.get(contract.address)
            if decimals is None:
                raw = await self.gateway.eth_call(contract.address, encode_call(DECIMALS_SIGNATURE))
                decimals = decode_decimals(raw)
                self._decimals[contract.address] = decimals
                logger.debug(f"[{contract.symbol}] decimals={decimals}")

        raw = await self.gateway.eth_call(
            contract.address, encode_call(LATEST_ROUND_DATA_SIGNATURE)
        )
        round_data = decode_round_data(raw, contract.symbol)
        return round_data.with_decimals(decimals) if decimals is not None else round_data

    async def _report_error(self, contract: Contract, error: Exception) -> None:
        """Log a per-contract failure and forward it to the reflector."""
        event = FeedErrorEvent.from_exception(contract.symbol, contract.address, error)
        logger.warning(f"[{contract.symbol}] {event.kind} error: {event.message}")
        try:
            await self.reflector.publish_error(event)
        except Exception as e:
            logger.warning(f"[{contract.symbol}] Failed to deliver error event: {e}")


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
