"""Observers and subscriptions — the two ends of a live stream.

An Observer is the consumer: a next/complete callback pair. There is no
error channel; exceptions raised inside a callback travel up through
whoever called it.

A Subscription is what subscribe() hands back. It owns the teardown for
exactly one subscribe call, so the same Stream can be subscribed many
times without one subscription clobbering another's cleanup.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

Teardown = Callable[[], None]

logger = logging.getLogger("pushstream.observer")


def _noop(*_args: Any) -> None:
    pass


class Observer(Generic[T]):
    """A next/complete callback pair. Missing callbacks are no-ops."""

    __slots__ = ("next", "complete")

    def __init__(
        self,
        next: Callable[[T], None] | None = None,
        complete: Callable[[], None] | None = None,
    ) -> None:
        self.next = next or _noop
        self.complete = complete or _noop

    def __repr__(self) -> str:
        return f"Observer(next={self.next!r}, complete={self.complete!r})"


def as_observer(target) -> Observer:
    """Coerce target into an Observer.

    Accepts an Observer, any object exposing next/complete, or a bare
    callable (used as next).
    """
    if isinstance(target, Observer):
        return target
    next_fn = getattr(target, "next", None)
    if callable(next_fn):
        return Observer(next_fn, getattr(target, "complete", None))
    if callable(target):
        return Observer(target)
    raise TypeError(f"Cannot subscribe {target!r}: expected an observer or callable")


class Subscription:
    """Teardown handle for one subscribe() call.

    unsubscribe() runs the teardown at most once. Calling it again, or
    after the source completed on its own, does nothing.

    Usage:
        sub = Stream.from_interval(100).subscribe(print)
        ...
        sub.unsubscribe()

        with Stream.from_interval(100).subscribe(print):
            ...  # unsubscribed on exit
    """

    __slots__ = ("_teardowns", "_closed")

    def __init__(self, *teardowns: Teardown | None) -> None:
        self._teardowns = [t for t in teardowns if t is not None]
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        teardowns, self._teardowns = self._teardowns, []
        logger.debug("Running %d teardown(s)", len(teardowns))
        error: BaseException | None = None
        for teardown in teardowns:
            try:
                teardown()
            except BaseException as exc:
                if error is None:
                    error = exc
                else:
                    logger.exception("Teardown failed after an earlier teardown error")
        if error is not None:
            raise error

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "active"
        return f"Subscription({state})"
