"""Source factories — adapt push callbacks into Streams.

Each factory returns a Stream that is inert until subscribed. Subscribing
attaches to the underlying source (event listener, timer, async task);
the Subscription's teardown calls complete() on the observer and then
releases the source.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterable, Callable, Protocol, TypeVar, runtime_checkable

from pushstream.observer import Observer
from pushstream.scheduler import Scheduler, resolve
from pushstream.stream import Stream

T = TypeVar("T")

Handler = Callable[[Any], None]

logger = logging.getLogger("pushstream.sources")


@runtime_checkable
class EventSource(Protocol):
    """Anything that can register and deregister handlers by event type."""

    def add_event_listener(self, type: str, handler: Handler) -> None: ...

    def remove_event_listener(self, type: str, handler: Handler) -> None: ...


class EventTarget:
    """In-process event target. Handlers are called in registration order.

    Usage:
        clicks = EventTarget()
        sub = from_event("click", clicks).subscribe(print)
        clicks.dispatch_event("click", {"x": 1})
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Handler]] = {}

    def add_event_listener(self, type: str, handler: Handler) -> None:
        self._listeners.setdefault(type, []).append(handler)

    def remove_event_listener(self, type: str, handler: Handler) -> None:
        try:
            self._listeners.get(type, []).remove(handler)
        except ValueError:
            pass  # not registered

    def dispatch_event(self, type: str, payload: Any = None) -> None:
        """Call every handler registered for type with payload."""
        for handler in list(self._listeners.get(type, ())):
            handler(payload)

    def listener_count(self, type: str) -> int:
        return len(self._listeners.get(type, ()))


def from_event(type: str, target: EventSource) -> Stream[Any]:
    """Stream of payloads dispatched for `type` on target, forwarded as-is."""

    def _subscribe(observer: Observer[Any]):
        handler = observer.next
        target.add_event_listener(type, handler)
        logger.debug("Listening for %r on %r", type, target)

        def _teardown() -> None:
            observer.complete()
            target.remove_event_listener(type, handler)
            logger.debug("Stopped listening for %r on %r", type, target)

        return _teardown

    return Stream(_subscribe)


def from_timer(ms: float, scheduler: Scheduler | None = None) -> Stream[int]:
    """Emit 1 once, `ms` milliseconds after subscribe."""

    def _subscribe(observer: Observer[int]):
        clock = resolve(scheduler)
        handle = clock.call_later(ms / 1000, lambda: observer.next(1))

        def _teardown() -> None:
            observer.complete()
            clock.cancel(handle)

        return _teardown

    return Stream(_subscribe)


def from_interval(ms: float, scheduler: Scheduler | None = None) -> Stream[int]:
    """Emit 1, 2, 3, ... every `ms` milliseconds until unsubscribed."""

    def _subscribe(observer: Observer[int]):
        clock = resolve(scheduler)
        tick = 0

        def _on_tick() -> None:
            nonlocal tick
            tick += 1
            observer.next(tick)

        handle = clock.call_every(ms / 1000, _on_tick)
        logger.debug("Interval every %sms started", ms)

        def _teardown() -> None:
            observer.complete()
            clock.cancel(handle)
            logger.debug("Interval every %sms stopped after %d ticks", ms, tick)

        return _teardown

    return Stream(_subscribe)


def from_async_iterable(
    source: AsyncIterable[T], loop: asyncio.AbstractEventLoop | None = None
) -> Stream[T]:
    """Drain an async iterable on the event loop, one item per next().

    Subscribing schedules a task and returns immediately; it must happen
    on the loop's thread (the running loop is used when none is given).
    complete() follows the last item. Unsubscribing early cancels the
    task and completes; no item is delivered after that, even from a
    source that never awaits. If the source raises, the error is logged and
    the stream does not complete.
    """

    def _subscribe(observer: Observer[T]):
        completed = False

        async def _drain() -> None:
            nonlocal completed
            async for item in source:
                if completed:
                    break
                observer.next(item)
                if completed:
                    break
            if not completed:
                completed = True
                observer.complete()

        def _on_done(task: asyncio.Task) -> None:
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.error("Async source %r failed", source, exc_info=exc)

        ev_loop = loop if loop is not None else asyncio.get_running_loop()
        task = ev_loop.create_task(_drain())
        task.add_done_callback(_on_done)

        def _teardown() -> None:
            nonlocal completed
            if not completed:
                completed = True
                observer.complete()
            task.cancel()

        return _teardown

    return Stream(_subscribe)
