"""Cooperative schedulers for deferred effects, debounce timers and fetches.

The controller never runs anything in parallel.  It only needs three
primitives, modelled on the asyncio event-loop API:

* ``call_soon(callback, *args)`` -- run after the current synchronous
  batch (selection clearing, re-slicing after a dataset swap).
* ``call_later(delay, callback, *args)`` -- debounce timers.
* ``create_task(coro)`` -- remote page fetches.

:class:`AsyncioScheduler` forwards to the running asyncio loop.
:class:`ManualScheduler` keeps a virtual clock and runs work only when
asked, which suits synchronous hosts (a Reflex event handler, the CLI)
and deterministic tests.
"""

import asyncio
import heapq
import itertools
from collections import deque
from collections.abc import Callable, Coroutine
from typing import Any, Protocol

from reflex.utils import console


class Handle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def call_soon(self, callback: Callable[..., Any], *args: Any) -> Handle: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Handle: ...

    def create_task(self, coro: Coroutine[Any, Any, Any]) -> Any: ...


# ---------------------------------------------------------------------------
# asyncio-backed scheduler
# ---------------------------------------------------------------------------

class AsyncioScheduler:
    """Schedule onto an asyncio event loop.

    Args:
        loop: Loop to use.  When ``None`` the loop running at call time is
            used, so one scheduler can be created before the loop starts.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> asyncio.Handle:
        return self.loop.call_soon(callback, *args)

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback, *args)

    def create_task(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = self.loop.create_task(coro)
        # Keep a strong reference until the task finishes.
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            console.error(f"[ListToolbar] background task failed: {exc!r}")


# ---------------------------------------------------------------------------
# Deterministic scheduler
# ---------------------------------------------------------------------------

class _ManualHandle:
    def __init__(self, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self._callback = callback
        self._args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self) -> None:
        if not self._cancelled:
            self._callback(*self._args)


class ManualScheduler:
    """Virtual-clock scheduler that runs work only when told to.

    Deferred callbacks and tasks queue up until :meth:`run_pending`;
    timers fire when :meth:`advance` moves the clock past their deadline.
    Coroutines passed to :meth:`create_task` are driven to completion
    inside :meth:`run_pending`; they may ``await`` other coroutines and
    ``asyncio.sleep(0)`` but not real I/O futures.

    Exceptions raised by callbacks and tasks propagate out of
    :meth:`run_pending` / :meth:`advance` to the host.
    """

    def __init__(self) -> None:
        self._now: float = 0.0
        self._ready: deque[_ManualHandle] = deque()
        self._timers: list[tuple[float, int, _ManualHandle]] = []
        self._sequence = itertools.count()

    def time(self) -> float:
        return self._now

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> _ManualHandle:
        handle = _ManualHandle(callback, args)
        self._ready.append(handle)
        return handle

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> _ManualHandle:
        handle = _ManualHandle(callback, args)
        heapq.heappush(self._timers, (self._now + max(delay, 0.0), next(self._sequence), handle))
        return handle

    def create_task(self, coro: Coroutine[Any, Any, Any]) -> _ManualHandle:
        return self.call_soon(_drive, coro)

    @property
    def pending(self) -> int:
        """Number of queued callbacks and live timers."""
        live_timers = sum(1 for _, _, handle in self._timers if not handle.cancelled())
        return sum(1 for handle in self._ready if not handle.cancelled()) + live_timers

    def run_pending(self) -> int:
        """Run queued callbacks, including ones queued while running.

        Returns:
            The number of callbacks that ran.
        """
        ran = 0
        while self._ready:
            handle = self._ready.popleft()
            if handle.cancelled():
                continue
            handle._run()
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in deadline order."""
        deadline = self._now + seconds
        ran = self.run_pending()
        while self._timers and self._timers[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._timers)
            self._now = max(self._now, when)
            if handle.cancelled():
                continue
            self._ready.append(handle)
            ran += self.run_pending()
        self._now = deadline
        return ran

    def run_all(self) -> int:
        """Fire every timer and drain the queue, whatever the deadlines."""
        ran = self.run_pending()
        while self._timers:
            latest = max(when for when, _, _ in self._timers)
            ran += self.advance(latest - self._now)
        return ran


def _drive(coro: Coroutine[Any, Any, Any]) -> None:
    """Run *coro* to completion without an event loop."""
    try:
        while True:
            yielded = coro.send(None)
            if yielded is not None:
                coro.close()
                raise RuntimeError(
                    "ManualScheduler cannot wait on event-loop futures; "
                    "use AsyncioScheduler for real I/O"
                )
    except StopIteration:
        return
