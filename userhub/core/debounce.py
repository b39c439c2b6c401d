import asyncio
import inspect
import logging
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class Debouncer:
    """Runs ``fn`` once calls have stopped for ``delay_ms``, with the latest arguments.

    Every call returns a future. A call made before the delay elapses cancels
    the pending timer and the previous call's future, then schedules a fresh
    one. Once the timer fires, ``fn`` runs and its result (awaited when it is a
    coroutine) resolves the future of the call that scheduled it.
    """

    def __init__(self, fn: Callable[..., Any], delay_ms: int):
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        self.fn = fn
        self.delay_ms = delay_ms
        self._handle: Optional[asyncio.TimerHandle] = None
        self._future: Optional[asyncio.Future] = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> asyncio.Future:
        loop = asyncio.get_running_loop()

        if self._handle is not None:
            self._handle.cancel()
        if self._future is not None and not self._future.done():
            self._future.cancel()

        future = loop.create_future()
        self._future = future
        self._handle = loop.call_later(self.delay_ms / 1000, self._fire, future, args, kwargs)
        return future

    def _fire(self, future: asyncio.Future, args: tuple, kwargs: dict) -> None:
        # The call is no longer pending, so later calls must not cancel its future
        self._handle = None
        self._future = None
        try:
            result = self.fn(*args, **kwargs)
        except Exception as e:
            logger.error(f"Debounced call to {getattr(self.fn, '__name__', self.fn)} failed: {e}", exc_info=True)
            if not future.done():
                future.set_exception(e)
            return

        if not inspect.isawaitable(result):
            if not future.done():
                future.set_result(result)
            return

        task = asyncio.ensure_future(result)
        self._running.add(task)
        task.add_done_callback(lambda done: self._settle(done, future))

    def _settle(self, task: asyncio.Task, future: asyncio.Future) -> None:
        self._running.discard(task)
        if future.done():
            return
        if task.cancelled():
            future.cancel()
        elif task.exception() is not None:
            future.set_exception(task.exception())
        else:
            future.set_result(task.result())


def debounce(fn: Callable[..., Any], delay_ms: int) -> Debouncer:
    return Debouncer(fn, delay_ms)
