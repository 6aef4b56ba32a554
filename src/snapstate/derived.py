"""Derived views — memoized, pure transformations of an upstream node.

A DerivedView subscribes to its upstream (a Store or another DerivedView)
when it is built. Every upstream emission runs the mapping once; the result
is frozen and compared to the last result, and only a different result is
stored and fanned out. Equal results stop the chain, so downstream views do
not recompute.

Mapping functions must be pure. If one raises, the view keeps its last
value and notifies nobody; the error goes to ``on_error`` when given and is
raised to the upstream's caller otherwise.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, TypeVar

from snapstate._publisher import Equality, Publisher
from snapstate.equality import equal
from snapstate.frozen import freeze

S = TypeVar("S")
R = TypeVar("R")
U = TypeVar("U")

ErrorHandler = Callable[[Exception], None]

logger = logging.getLogger("snapstate.derived")


class DerivedView(Publisher[R], Generic[S, R]):
    """Read-only node whose value is fn(upstream value)."""

    _logger = logger

    def __init__(
        self,
        source: Publisher[S],
        fn: Callable[[S], R],
        equals: Equality | None = None,
        *,
        on_error: ErrorHandler | None = None,
    ) -> None:
        super().__init__(equals or equal)
        self._source = source
        self._fn = fn
        self._on_error = on_error
        self._upstream = source.subscribe(self._on_upstream)

    @property
    def source(self) -> Publisher[S]:
        return self._source

    def _on_upstream(self, value: S) -> None:
        with self._lock:
            try:
                candidate = freeze(self._fn(value))
            except Exception as exc:
                logger.warning("mapping %s failed on %r; keeping last value", _name(self._fn), self)
                if self._on_error is None:
                    raise
                self._on_error(exc)
                return
            if not self._changed(candidate):
                logger.debug("%r recomputed an equal value; not re-emitting", self)
                return
            self._publish(candidate)

    def select(
        self,
        fn: Callable[[R], U],
        equals: Equality | None = None,
        *,
        on_error: ErrorHandler | None = None,
    ) -> DerivedView[R, U]:
        """Chain another view on top of this one."""
        return DerivedView(self, fn, equals, on_error=on_error)

    def dispose(self) -> None:
        """Detach from the upstream and drop all subscribers. The view keeps its last value."""
        self._upstream.unsubscribe()
        with self._lock:
            for subscription in self._subscribers:
                subscription._active = False
            self._subscribers.clear()

    def __repr__(self) -> str:
        return f"DerivedView({_name(self._fn)}, subscribers={len(self._subscribers)})"


def _name(fn: Any) -> str:
    return getattr(fn, "__name__", repr(fn))


def select(
    source: Publisher[S],
    fn: Callable[[S], R],
    equals: Equality | None = None,
    *,
    on_error: ErrorHandler | None = None,
) -> DerivedView[S, R]:
    """Build a memoized view of source.

    Usage:
        store = Store({"a": 1, "b": 99})
        a = select(store, lambda x: x["a"])
        doubled = select(a, lambda v: v * 2)

        doubled.get()              # 2
        store.set({"a": 1, "b": 100})
        # a recomputes to 1 (unchanged), so doubled does not recompute

    equals(previous, current) replaces the default structural equality.
    """
    return DerivedView(source, fn, equals, on_error=on_error)
