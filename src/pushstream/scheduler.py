"""Timer capability used by every time-based source and operator.

Streams never touch threading.Timer or the event loop directly. They ask
a Scheduler to run a callback once (call_later) or repeatedly
(call_every) and keep the returned handle for cancel(). Swapping the
scheduler swaps the host: real threads, an asyncio loop, or a virtual
clock in tests.

Configuration: set_scheduler() installs the process-wide default. Any
factory or operator that takes scheduler= uses it instead when given.
The default is looked up at subscribe time, not at construction time.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger("pushstream.scheduler")

Callback = Callable[[], None]


@runtime_checkable
class Scheduler(Protocol):
    """Schedule once, schedule repeating, cancel."""

    def call_later(self, seconds: float, fn: Callback): ...

    def call_every(self, seconds: float, fn: Callback): ...

    def cancel(self, handle) -> None: ...


# ─── Threads ────────────────────────────────────────────────────────────────


class _Repeater:
    """Daemon thread that calls fn every `seconds` until cancelled."""

    __slots__ = ("_stop", "_thread")

    def __init__(self, seconds: float, fn: Callback) -> None:
        self._stop = threading.Event()

        def _loop() -> None:
            while not self._stop.wait(seconds):
                fn()

        self._thread = threading.Thread(target=_loop, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()


class ThreadingScheduler:
    """Default scheduler. Callbacks run on daemon timer threads."""

    def call_later(self, seconds: float, fn: Callback) -> threading.Timer:
        t = threading.Timer(seconds, fn)
        t.daemon = True
        t.start()
        return t

    def call_every(self, seconds: float, fn: Callback) -> _Repeater:
        r = _Repeater(seconds, fn)
        r.start()
        return r

    def cancel(self, handle) -> None:
        handle.cancel()


# ─── asyncio ────────────────────────────────────────────────────────────────


class _LoopRepeater:
    """Re-arms loop.call_at on a fixed grid so ticks don't drift."""

    __slots__ = ("_loop", "_seconds", "_fn", "_next_at", "_handle", "_cancelled")

    def __init__(self, loop: asyncio.AbstractEventLoop, seconds: float, fn: Callback) -> None:
        self._loop = loop
        self._seconds = seconds
        self._fn = fn
        self._next_at = loop.time() + seconds
        self._cancelled = False
        self._handle = loop.call_at(self._next_at, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._next_at += self._seconds
        self._handle = self._loop.call_at(self._next_at, self._fire)
        self._fn()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class AsyncioScheduler:
    """Schedules on an asyncio event loop. Single-threaded.

    With no loop given, the running loop is looked up on each call, so
    the scheduler must be used from inside that loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop if self._loop is not None else asyncio.get_running_loop()

    def call_later(self, seconds: float, fn: Callback) -> asyncio.TimerHandle:
        return self._get_loop().call_later(seconds, fn)

    def call_every(self, seconds: float, fn: Callback) -> _LoopRepeater:
        return _LoopRepeater(self._get_loop(), seconds, fn)

    def cancel(self, handle) -> None:
        handle.cancel()


# ─── Virtual clock ──────────────────────────────────────────────────────────


class _VirtualEntry:
    __slots__ = ("fn", "interval", "cancelled")

    def __init__(self, fn: Callback, interval: float | None) -> None:
        self.fn = fn
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Simulated clock. Nothing fires until advance() is called.

    Usage:
        clock = VirtualScheduler()
        sub = Stream.from_interval(100, scheduler=clock).subscribe(print)
        clock.advance(0.35)   # prints 1, 2, 3
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._queue: list[tuple[float, int, _VirtualEntry]] = []
        self._seq = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) scheduled callbacks."""
        return sum(1 for _, _, e in self._queue if not e.cancelled)

    def _push(self, due: float, entry: _VirtualEntry) -> None:
        heapq.heappush(self._queue, (due, next(self._seq), entry))

    def call_later(self, seconds: float, fn: Callback) -> _VirtualEntry:
        entry = _VirtualEntry(fn, None)
        self._push(self._now + seconds, entry)
        return entry

    def call_every(self, seconds: float, fn: Callback) -> _VirtualEntry:
        entry = _VirtualEntry(fn, seconds)
        self._push(self._now + seconds, entry)
        return entry

    def cancel(self, handle) -> None:
        handle.cancel()

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every callback that comes due.

        Callbacks fire in due-time order, ties in scheduling order.
        Callbacks scheduled while advancing fire too if they fall due
        before the target time.
        """
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, entry = heapq.heappop(self._queue)
            if entry.cancelled:
                continue
            self._now = due
            if entry.interval is not None:
                self._push(due + entry.interval, entry)
            entry.fn()
        self._now = target


# ─── Default ────────────────────────────────────────────────────────────────
_default_scheduler: Scheduler | None = None
_default_lock = threading.Lock()


def set_scheduler(scheduler: Scheduler | None) -> None:
    """Install the process-wide default scheduler.

    Pass None to go back to the lazily-created ThreadingScheduler.

        pushstream.set_scheduler(AsyncioScheduler())
    """
    global _default_scheduler
    with _default_lock:
        _default_scheduler = scheduler
    logger.debug("Default scheduler set to %r", scheduler)


def get_scheduler() -> Scheduler:
    """Return the default scheduler, creating a ThreadingScheduler if unset."""
    global _default_scheduler
    with _default_lock:
        if _default_scheduler is None:
            _default_scheduler = ThreadingScheduler()
        return _default_scheduler


def resolve(scheduler: Scheduler | None) -> Scheduler:
    return scheduler if scheduler is not None else get_scheduler()
