"""TaskRunner: Where the scheduler's tick loop runs.

The tick loop is a single coroutine. A runner only decides how it is hosted:

- ``AsyncioTaskRunner`` schedules it as a task on an existing event loop
  (cooperative, single-threaded hosts).
- ``ThreadTaskRunner`` gives it a dedicated thread with a private event loop
  (native hosts without an event loop of their own).

Both cancel the loop by cancelling its task, which also cancels any
in-flight RPC call at its next suspension point.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

LoopFactory = Callable[[], Coroutine[Any, Any, None]]


class TaskRunner(ABC):
    """Abstract host for the tick loop coroutine."""

    @abstractmethod
    def spawn(self, main: LoopFactory) -> None:
        """Start running ``main()`` in the background.

        :param main: Factory returning the tick loop coroutine.
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Request cancellation of the running loop."""
        pass

    @abstractmethod
    async def wait(self) -> None:
        """Wait until the loop has exited."""
        pass

    @property
    @abstractmethod
    def is_alive(self) -> bool:
        """True while the loop is still running."""
        pass


class AsyncioTaskRunner(TaskRunner):
    """Run the loop as a task on an asyncio event loop.

    :ivar loop: Event loop to use; defaults to the running loop at spawn time.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.loop = loop
        self._task: asyncio.Task | None = None

    def spawn(self, main: LoopFactory) -> None:
        """Create the loop task.

        :raises RuntimeError: If no loop was given and none is running.
        """
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        self._task = self.loop.create_task(main(), name="pricefeed-tick-loop")

    def cancel(self) -> None:
        """Cancel the loop task. Safe to call from any thread."""
        if self._task is None or self._task.done():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            self._task.cancel()
        else:
            self.loop.call_soon_threadsafe(self._task.cancel)

    async def wait(self) -> None:
        """Wait for the loop task to finish. Must run on the task's loop.

        :raises Exception: The exception that terminated the loop, if any.
        """
        if self._task is None:
            return
        await asyncio.wait([self._task])
        if not self._task.cancelled() and self._task.exception() is not None:
            raise self._task.exception()

    @property
    def is_alive(self) -> bool:
        return self._task is not None and not self._task.done()


class ThreadTaskRunner(TaskRunner):
    """Run the loop on a dedicated daemon thread with its own event loop.

    :cvar DEFAULT_JOIN_TIMEOUT: Seconds ``cancel()`` waits for the thread.
    :ivar join_timeout: Seconds ``cancel()`` waits for the thread to exit.
    """

    DEFAULT_JOIN_TIMEOUT = 5.0

    def __init__(self, join_timeout: float | None = None, name: str = "pricefeed-scheduler") -> None:
        self.join_timeout = join_timeout if join_timeout is not None else self.DEFAULT_JOIN_TIMEOUT
        self.name = name
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task | None = None
        self._ready = threading.Event()
        self._error: Exception | None = None

    async def _host(self, main: LoopFactory) -> None:
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.current_task()
        self._ready.set()
        try:
            await main()
        except asyncio.CancelledError:
            logger.debug(f"Thread {self.name}: tick loop cancelled")
        except Exception as e:
            logger.debug(f"Thread {self.name}: tick loop failed: {e}")
            self._error = e

    def spawn(self, main: LoopFactory) -> None:
        """Start the thread and wait until its loop is up."""
        self._thread = threading.Thread(
            target=lambda: asyncio.run(self._host(main)),
            name=self.name,
            daemon=True,
        )
        self._thread.start()
        self._ready.wait()

    def cancel(self) -> None:
        """Cancel the loop task and join the thread (bounded by join_timeout).

        When called from the scheduler thread itself (e.g., from a callback),
        the join is skipped.
        """
        loop, task = self._loop, self._task
        if loop is not None and task is not None and not task.done():
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                # Loop already closed: the thread is exiting on its own.
                logger.debug(f"Thread {self.name}: loop closed before cancel")

        if self._thread is not None and self._thread is not threading.current_thread():
            self.join(self.join_timeout)
            if self._thread.is_alive():
                logger.warning(
                    f"Thread {self.name} still running {self.join_timeout}s after cancel"
                )

    def join(self, timeout: float | None = None) -> None:
        """Block until the thread exits or the timeout expires."""
        if self._thread is not None:
            self._thread.join(timeout)

    async def wait(self) -> None:
        """Wait for the thread to exit without blocking the caller's loop.

        :raises Exception: The exception that terminated the loop, if any.
        """
        if self._thread is not None and self._thread is not threading.current_thread():
            await asyncio.to_thread(self._thread.join)
        if self._error is not None:
            raise self._error

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
