"""Push-based stream with operator chaining.

A Stream is a lazy recipe: it holds a subscribe procedure and does
nothing until subscribe() is called. Each operator method returns a new
Stream wrapping this one (immutable chain). Subscribing the outermost
stream subscribes every stream upstream of it, down to the source;
unsubscribing walks back up and releases the source.

Every subscribe() call is its own execution. Nothing is shared between
subscribers (no multicast), and each call returns its own Subscription.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from pushstream.observer import Observer, Subscription, Teardown, as_observer

if TYPE_CHECKING:
    import asyncio
    from typing import AsyncIterable

    from pushstream.scheduler import Scheduler
    from pushstream.sources import EventSource

T = TypeVar("T")
U = TypeVar("U")

SubscribeFn = Callable[[Observer[T]], Teardown | None]
Operator = Callable[["Stream[Any]"], "Stream[Any]"]

logger = logging.getLogger("pushstream.stream")


class Stream(Generic[T]):
    """A subscribable source of values followed by an optional completion.

    subscribe is called with an Observer and may return a teardown
    callable for that subscription. unsubscribe, if given, is extra
    teardown run by every subscription of this stream.

    Usage:
        def ticks(observer):
            handle = clock.call_every(1.0, lambda: observer.next("tick"))
            return lambda: clock.cancel(handle)

        sub = Stream(ticks).map(str.upper).subscribe(print)
        sub.unsubscribe()
    """

    __slots__ = ("_subscribe", "_unsubscribe")

    def __init__(self, subscribe: SubscribeFn[T], unsubscribe: Teardown | None = None) -> None:
        self._subscribe = subscribe
        self._unsubscribe = unsubscribe

    def subscribe(self, observer, complete: Callable[[], None] | None = None) -> Subscription:
        """Start delivering values. Returns the Subscription for this call.

        observer may be an Observer, any object with next/complete, or a
        callable used as next (with complete= as its completion callback).
        """
        if complete is not None:
            obs = Observer(observer, complete)
        else:
            obs = as_observer(observer)
        teardown = self._subscribe(obs)
        logger.debug("Subscribed %r", self)
        return Subscription(teardown, self._unsubscribe)

    # ─── Operators ──────────────────────────────────────────────────────────

    def pipe(self, *operators: Operator) -> Stream[Any]:
        """Apply operator transformers left to right.

            stream.pipe(map_(str.strip), filter_(bool))
        """
        result: Stream[Any] = self
        for op in operators:
            result = op(result)
        return result

    def map(self, fn: Callable[[T], U]) -> Stream[U]:
        """Transform each value through fn."""
        from pushstream.operators import map_

        return map_(fn)(self)

    def filter(self, fn: Callable[[T], bool]) -> Stream[T]:
        """Only pass values where fn returns True."""
        from pushstream.operators import filter_

        return filter_(fn)(self)

    def debounce_time(self, ms: float, scheduler: Scheduler | None = None) -> Stream[T]:
        """Emit the latest value once `ms` milliseconds pass without a new one."""
        from pushstream.operators import debounce_time

        return debounce_time(ms, scheduler)(self)

    def with_latest_from(self, other: Stream[U]) -> Stream[tuple[U, T]]:
        """Pair every emission from either side with the latest of the other.

        Tuples are (other's value, this stream's value).
        """
        from pushstream.operators import with_latest_from

        return with_latest_from(other)(self)

    # ─── Sources ────────────────────────────────────────────────────────────

    @staticmethod
    def from_event(type: str, target: EventSource) -> Stream[Any]:
        from pushstream.sources import from_event

        return from_event(type, target)

    @staticmethod
    def from_timer(ms: float, scheduler: Scheduler | None = None) -> Stream[int]:
        from pushstream.sources import from_timer

        return from_timer(ms, scheduler)

    @staticmethod
    def from_interval(ms: float, scheduler: Scheduler | None = None) -> Stream[int]:
        from pushstream.sources import from_interval

        return from_interval(ms, scheduler)

    @staticmethod
    def from_async_iterable(
        source: AsyncIterable[T], loop: asyncio.AbstractEventLoop | None = None
    ) -> Stream[T]:
        from pushstream.sources import from_async_iterable

        return from_async_iterable(source, loop)

    def __repr__(self) -> str:
        name = getattr(self._subscribe, "__qualname__", repr(self._subscribe))
        return f"Stream({name})"
