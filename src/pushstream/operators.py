"""Operator constructors.

Each function here takes configuration and returns a transformer: a
callable from Stream[T] to a new Stream. The new stream subscribes to
its upstream when it is subscribed, and its teardown tears the upstream
subscription down.

All mutable operator state (debounce timers, latest values, completion
flags) is created inside subscribe, so one transformer can be applied to
any number of pipelines, and one pipeline subscribed any number of
times, without the runs seeing each other's state.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, TypeVar

from pushstream.observer import Observer
from pushstream.scheduler import Scheduler, resolve
from pushstream.stream import Stream

T = TypeVar("T")
U = TypeVar("U")

logger = logging.getLogger("pushstream.operators")


def map_(fn: Callable[[T], U]) -> Callable[[Stream[T]], Stream[U]]:
    """Transform every value through fn. Exceptions from fn propagate."""

    def _operator(stream: Stream[T]) -> Stream[U]:
        def _subscribe(observer: Observer[U]):
            upstream = stream.subscribe(
                Observer(lambda value: observer.next(fn(value)), observer.complete)
            )
            return upstream.unsubscribe

        return Stream(_subscribe)

    return _operator


def filter_(fn: Callable[[T], bool]) -> Callable[[Stream[T]], Stream[T]]:
    """Only pass values where fn is truthy. Rejected values are dropped."""

    def _operator(stream: Stream[T]) -> Stream[T]:
        def _subscribe(observer: Observer[T]):
            def _on_next(value: T) -> None:
                if fn(value):
                    observer.next(value)

            upstream = stream.subscribe(Observer(_on_next, observer.complete))
            return upstream.unsubscribe

        return Stream(_subscribe)

    return _operator


def debounce_time(
    ms: float, scheduler: Scheduler | None = None
) -> Callable[[Stream[T]], Stream[T]]:
    """Coalesce bursts: emit the last value after `ms` milliseconds of quiet.

    Each new value cancels the pending timer and starts a new one, so
    only the last value in a burst is delivered, `ms` after it arrived.
    Completion cancels the pending timer (its value is discarded) and
    completes downstream immediately.

    Timer state and downstream delivery share one reentrant lock, since
    threaded timers fire off-thread. A timer superseded while already
    firing sees a stale generation and delivers nothing.
    """
    seconds = ms / 1000

    def _operator(stream: Stream[T]) -> Stream[T]:
        def _subscribe(observer: Observer[T]):
            clock = resolve(scheduler)
            lock = threading.RLock()
            pending = None
            generation = 0
            closed = False

            def _cancel_pending() -> None:
                nonlocal pending
                if pending is not None:
                    clock.cancel(pending)
                    pending = None

            def _on_next(value: T) -> None:
                nonlocal pending, generation
                with lock:
                    if closed:
                        return
                    _cancel_pending()
                    generation += 1
                    mine = generation

                    def _fire() -> None:
                        nonlocal pending
                        with lock:
                            if closed or mine != generation:
                                return
                            pending = None
                            observer.next(value)

                    pending = clock.call_later(seconds, _fire)

            def _on_complete() -> None:
                nonlocal closed
                with lock:
                    if pending is not None:
                        logger.debug("Debounced value discarded on completion")
                    _cancel_pending()
                    closed = True
                    observer.complete()

            upstream = stream.subscribe(Observer(_on_next, _on_complete))

            def _teardown() -> None:
                nonlocal closed
                with lock:
                    _cancel_pending()
                    closed = True
                upstream.unsubscribe()

            return _teardown

        return Stream(_subscribe)

    return _operator


def with_latest_from(
    stream_a: Stream[T],
) -> Callable[[Stream[U]], Stream[tuple[T, U]]]:
    """Combine stream_a with the stream this is applied to.

    with_latest_from(a)(b) emits (latest_a, latest_b) whenever either
    side emits. A side that has not emitted yet contributes None.

    Completion is an AND-join: the first side to complete only arms a
    flag, and the next completion from either side completes downstream
    (once; later completions are ignored).
    Subscribes a then b; tears down b then a.
    """

    def _operator(stream_b: Stream[U]) -> Stream[tuple[T, U]]:
        def _subscribe(observer: Observer[tuple[T, U]]):
            lock = threading.RLock()
            data_a: Any = None
            data_b: Any = None
            should_complete = False
            completed = False

            def _next_a(value: T) -> None:
                nonlocal data_a
                with lock:
                    data_a = value
                    observer.next((data_a, data_b))

            def _next_b(value: U) -> None:
                nonlocal data_b
                with lock:
                    data_b = value
                    observer.next((data_a, data_b))

            def _on_complete() -> None:
                nonlocal should_complete, completed
                with lock:
                    if completed:
                        return
                    if not should_complete:
                        should_complete = True
                        return
                    completed = True
                    observer.complete()

            sub_a = stream_a.subscribe(Observer(_next_a, _on_complete))
            try:
                sub_b = stream_b.subscribe(Observer(_next_b, _on_complete))
            except BaseException:
                sub_a.unsubscribe()
                raise

            def _teardown() -> None:
                sub_b.unsubscribe()
                sub_a.unsubscribe()

            return _teardown

        return Stream(_subscribe)

    return _operator
