"""Minimal publish/subscribe values.

Pure Python, no Qt dependency.  Editor state is held in
:class:`Observable` cells; anything derived from them is a
:class:`Computed` — a pure function over a declared list of sources,
recomputed lazily the first time it is read after one of its sources
published.  Widgets subscribe and repaint; nothing reads global state.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")


class Subscription:
    """Handle returned by ``subscribe``; ``dispose()`` is idempotent."""

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe: Callable[[], None] | None = unsubscribe

    @property
    def disposed(self) -> bool:
        return self._unsubscribe is None

    def dispose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class Source(Protocol):
    def subscribe(self, listener: Callable[[], None]) -> Subscription: ...


class Publisher:
    """Listener list shared by every observable thing in the core."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[], None]] = []

    def subscribe(self, listener: Callable[[], None]) -> Subscription:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(unsubscribe)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self) -> None:
        # Copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            listener()


class Observable(Publisher, Generic[T]):
    """A mutable value cell.  Setting an equal value does not publish."""

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        self.publish()


class Computed(Publisher, Generic[T]):
    """A value derived from *sources* by *fn*.

    *fn* takes no arguments and reads the sources itself; it must not have
    side effects.  The cached value is dropped when any source publishes
    and rebuilt on the next :meth:`get`.
    """

    def __init__(self, fn: Callable[[], T], sources: Sequence[Source]) -> None:
        super().__init__()
        self._fn = fn
        self._stale = True
        self._value: Any = None
        self._subscriptions = [s.subscribe(self._invalidate) for s in sources]

    def _invalidate(self) -> None:
        self._stale = True
        self.publish()

    def get(self) -> T:
        if self._stale:
            self._value = self._fn()
            self._stale = False
        return self._value

    def dispose(self) -> None:
        for sub in self._subscriptions:
            sub.dispose()
        self._subscriptions.clear()
