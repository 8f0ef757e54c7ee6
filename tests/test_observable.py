"""Tests for observable — value cells and lazily computed values."""

from __future__ import annotations

from tickroll.core.observable import Computed, Observable, Publisher


class TestObservable:
    def test_set_publishes(self):
        cell = Observable(1)
        calls = []
        cell.subscribe(lambda: calls.append(cell.get()))
        cell.set(2)
        assert calls == [2]

    def test_equal_value_does_not_publish(self):
        cell = Observable((1, 2))
        calls = []
        cell.subscribe(lambda: calls.append(1))
        cell.set((1, 2))
        assert calls == []

    def test_dispose(self):
        cell = Observable(0)
        calls = []
        sub = cell.subscribe(lambda: calls.append(1))
        sub.dispose()
        sub.dispose()
        cell.set(1)
        assert calls == []
        assert sub.disposed
        assert cell.listener_count == 0

    def test_unsubscribe_during_publish(self):
        p = Publisher()
        calls = []
        subs = []

        def first():
            calls.append("first")
            subs[1].dispose()

        subs.append(p.subscribe(first))
        subs.append(p.subscribe(lambda: calls.append("second")))
        p.publish()
        assert calls == ["first", "second"]
        p.publish()
        assert calls == ["first", "second", "first"]


class TestComputed:
    def test_lazy(self):
        a = Observable(2)
        runs = []

        def double():
            runs.append(1)
            return a.get() * 2

        c = Computed(double, [a])
        assert runs == []
        assert c.get() == 4
        assert c.get() == 4
        assert len(runs) == 1

    def test_recomputes_only_after_source_publishes(self):
        a, b = Observable(1), Observable(10)
        runs = []

        def total():
            runs.append(1)
            return a.get() + b.get()

        c = Computed(total, [a, b])
        assert c.get() == 11
        b.set(20)
        assert c.get() == 21
        a.set(1)  # equal value, no publish
        c.get()
        assert len(runs) == 2

    def test_propagates_invalidation(self):
        a = Observable(1)
        c = Computed(lambda: a.get() + 1, [a])
        calls = []
        c.subscribe(lambda: calls.append(1))
        a.set(5)
        assert calls == [1]

    def test_dispose_detaches_from_sources(self):
        a = Observable(1)
        c = Computed(lambda: a.get(), [a])
        c.dispose()
        assert a.listener_count == 0
