"""Store — holds one immutable root value and notifies on real change.

set() deep-freezes the incoming value and compares it structurally with the
current one. Equal values are dropped without notifying anyone; different
values replace the current value and are pushed to every subscriber, in
subscription order, on the calling thread.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, TypeVar

from snapstate._publisher import Equality, Publisher
from snapstate.equality import equal
from snapstate.frozen import freeze

if TYPE_CHECKING:
    from snapstate.derived import DerivedView

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger("snapstate.store")


class Store(Publisher[T]):
    """Single root value with structural change detection."""

    _logger = logger

    def __init__(self, initial: T) -> None:
        super().__init__(equal)
        self._value = freeze(initial)

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Publish value unless it is structurally equal to the current one.

        Subscribers run synchronously; a slow subscriber delays the caller.
        Raises ReentrantSetError when called from this store's own
        notification, SubscriberError when subscribers failed (after the
        value was stored and everyone was notified).
        """
        frozen = freeze(value)
        with self._lock:
            self._check_reentry()
            if not self._changed(frozen):
                logger.debug("set() with an equal value on %r ignored", self)
                return
            self._publish(frozen)

    def select(
        self,
        fn: Callable[[T], R],
        equals: Equality | None = None,
        *,
        on_error: Callable[[Exception], None] | None = None,
    ) -> DerivedView[T, R]:
        """Shortcut for select(self, fn, ...)."""
        from snapstate.derived import select

        return select(self, fn, equals, on_error=on_error)

    def __repr__(self) -> str:
        return f"Store(subscribers={len(self._subscribers)})"
