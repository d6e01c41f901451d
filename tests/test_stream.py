"""Tests for Stream — subscribe, subscriptions, and operator chaining."""

import pytest

from pushstream import Observer, Stream, Subscription, filter_, map_


class _Subject:
    """Hand-driven source: push values and completion from the test."""

    def __init__(self):
        self.observers = []
        self.teardowns = 0

    def stream(self):
        def _subscribe(observer):
            self.observers.append(observer)

            def _teardown():
                self.teardowns += 1
                self.observers.remove(observer)

            return _teardown

        return Stream(_subscribe)

    def next(self, value):
        for o in list(self.observers):
            o.next(value)

    def complete(self):
        for o in list(self.observers):
            o.complete()


class TestSubscribe:
    """Core subscribe behavior."""

    def test_lazy_until_subscribed(self):
        calls = []
        stream = Stream(lambda o: calls.append(o))
        stream.map(lambda v: v).filter(bool)
        assert calls == []

    def test_observer_receives_values_and_completion(self):
        subject = _Subject()
        received, done = [], []
        subject.stream().subscribe(Observer(received.append, lambda: done.append(True)))
        subject.next(1)
        subject.next(2)
        subject.complete()
        assert received == [1, 2]
        assert done == [True]

    def test_bare_callable_is_next(self):
        subject = _Subject()
        received = []
        subject.stream().subscribe(received.append)
        subject.next("x")
        subject.complete()  # no-op complete, must not raise
        assert received == ["x"]

    def test_callable_with_complete(self):
        subject = _Subject()
        done = []
        subject.stream().subscribe(lambda v: None, lambda: done.append(1))
        subject.complete()
        assert done == [1]

    def test_duck_typed_observer(self):
        class Collector:
            def __init__(self):
                self.values = []
                self.completed = False

            def next(self, v):
                self.values.append(v)

            def complete(self):
                self.completed = True

        subject = _Subject()
        c = Collector()
        subject.stream().subscribe(c)
        subject.next(5)
        subject.complete()
        assert c.values == [5]
        assert c.completed

    def test_rejects_non_observer(self):
        with pytest.raises(TypeError):
            Stream(lambda o: None).subscribe(42)


class TestSubscription:
    """Per-subscription teardown handles."""

    def test_unsubscribe_runs_teardown(self):
        subject = _Subject()
        sub = subject.stream().subscribe(lambda v: None)
        assert isinstance(sub, Subscription)
        assert not sub.closed
        sub.unsubscribe()
        assert sub.closed
        assert subject.teardowns == 1

    def test_unsubscribe_idempotent(self):
        subject = _Subject()
        sub = subject.stream().subscribe(lambda v: None)
        sub.unsubscribe()
        sub.unsubscribe()  # should not raise
        assert subject.teardowns == 1

    def test_no_teardown_is_fine(self):
        sub = Stream(lambda o: None).subscribe(lambda v: None)
        sub.unsubscribe()
        assert sub.closed

    def test_stream_level_unsubscribe_runs_after_teardown(self):
        order = []
        stream = Stream(lambda o: lambda: order.append("teardown"), lambda: order.append("stream"))
        stream.subscribe(lambda v: None).unsubscribe()
        assert order == ["teardown", "stream"]

    def test_failing_teardown_still_runs_stream_teardown(self):
        """The first error propagates, but every teardown gets its turn."""
        order = []

        def _boom():
            order.append("teardown")
            raise RuntimeError("boom")

        stream = Stream(lambda o: _boom, lambda: order.append("stream"))
        sub = stream.subscribe(lambda v: None)
        with pytest.raises(RuntimeError, match="boom"):
            sub.unsubscribe()
        assert order == ["teardown", "stream"]
        assert sub.closed
        sub.unsubscribe()  # already closed, nothing re-runs
        assert order == ["teardown", "stream"]

    def test_context_manager(self):
        subject = _Subject()
        received = []
        with subject.stream().subscribe(received.append):
            subject.next(1)
        subject.next(2)
        assert received == [1]
        assert subject.teardowns == 1

    def test_two_subscriptions_are_independent(self):
        """Unsubscribing one subscription leaves the other live."""
        subject = _Subject()
        stream = subject.stream().map(lambda v: v * 2)
        a, b = [], []
        sub_a = stream.subscribe(a.append)
        stream.subscribe(b.append)
        subject.next(1)
        sub_a.unsubscribe()
        subject.next(2)
        assert a == [2]
        assert b == [2, 4]


class TestChaining:
    """Operator methods and pipe()."""

    def test_chained_operators(self):
        subject = _Subject()
        received = []
        subject.stream().filter(lambda v: v > 0).map(lambda v: v * 10).subscribe(received.append)
        subject.next(-1)
        subject.next(3)
        assert received == [30]

    def test_pipe_applies_left_to_right(self):
        subject = _Subject()
        received = []
        subject.stream().pipe(map_(lambda v: v + 1), map_(lambda v: v * 10)).subscribe(
            received.append
        )
        subject.next(2)
        assert received == [30]

    def test_pipe_matches_methods(self):
        subject = _Subject()
        via_pipe, via_methods = [], []
        subject.stream().pipe(filter_(lambda v: v % 2), map_(str)).subscribe(via_pipe.append)
        subject.stream().filter(lambda v: v % 2).map(str).subscribe(via_methods.append)
        for v in range(5):
            subject.next(v)
        assert via_pipe == via_methods == ["1", "3"]

    def test_unsubscribe_reaches_source(self):
        subject = _Subject()
        sub = subject.stream().map(lambda v: v).filter(lambda v: True).subscribe(lambda v: None)
        sub.unsubscribe()
        assert subject.teardowns == 1
        assert subject.observers == []
