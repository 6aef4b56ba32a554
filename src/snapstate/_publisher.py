"""Multicast/replay behavior shared by Store and DerivedView.

A publishing node holds its latest value and an ordered subscriber list.
New subscribers get the latest value immediately (replay-of-one); later
emissions are fanned out once to every active subscriber.

Locking: each node owns an RLock. Update + notify, and register + replay,
run under it, so a subscriber never misses an emission between its replay
and its registration. get() reads without the lock and sees either the old
or the new value.

Re-entrancy: a node that is notifying rejects set() from its own
subscribers (same thread) with ReentrantSetError instead of recursing.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, TypeVar

from snapstate.errors import NoValueError, ReentrantSetError, SubscriberError

T = TypeVar("T")

Handler = Callable[[T], None]
Equality = Callable[[Any, Any], bool]

_UNSET: Any = object()


class Subscription:
    """Handle returned by subscribe(). unsubscribe() is idempotent."""

    __slots__ = ("_node", "_handler", "_active")

    def __init__(self, node: Publisher, handler: Handler) -> None:
        self._node = node
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._node._remove(self)

    def __repr__(self) -> str:
        state = "active" if self._active else "closed"
        return f"Subscription({self._node!r}, {state})"


class Publisher(Generic[T]):
    """Base for nodes that hold a value and multicast it."""

    _logger = logging.getLogger("snapstate")

    def __init__(self, equals: Equality) -> None:
        self._lock = threading.RLock()
        self._subscribers: list[Subscription] = []
        self._value: T = _UNSET
        self._equals = equals
        self._emitting = False

    @property
    def has_value(self) -> bool:
        return self._value is not _UNSET

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def get(self) -> T:
        """Latest value. Never blocks."""
        value = self._value
        if value is _UNSET:
            raise NoValueError(f"{self!r} has no value yet")
        return value

    def subscribe(self, handler: Handler[T]) -> Subscription:
        """Register handler and replay the latest value to it.

        If the replay raises, the subscription is dropped and the error
        propagates to the caller.
        """
        subscription = Subscription(self, handler)
        with self._lock:
            self._subscribers.append(subscription)
            if self._value is _UNSET:
                return subscription
            emitting, self._emitting = self._emitting, True
            try:
                handler(self._value)
            except BaseException:
                subscription.unsubscribe()
                raise
            finally:
                self._emitting = emitting
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscribers.remove(subscription)
            except ValueError:
                pass  # already removed

    def _check_reentry(self) -> None:
        """Caller holds the lock."""
        if self._emitting:
            raise ReentrantSetError(f"set() on {self!r} from inside its own notification")

    def _changed(self, candidate: T) -> bool:
        """Caller holds the lock. A failing predicate counts as a change."""
        if self._value is _UNSET:
            return True
        try:
            return not self._equals(self._value, candidate)
        except Exception:
            self._logger.warning(
                "equality check failed on %r; treating value as changed", self, exc_info=True
            )
            return True

    def _publish(self, value: T) -> None:
        """Caller holds the lock. Store value, then notify every subscriber.

        A failing subscriber neither stops the fan-out nor loses its
        subscription; failures are raised together once everyone was called.
        """
        self._value = value
        errors: list[Exception] = []
        self._emitting = True
        try:
            for subscription in list(self._subscribers):
                if not subscription._active:
                    continue  # unsubscribed earlier in this loop
                try:
                    subscription._handler(value)
                except Exception as exc:
                    errors.append(exc)
        finally:
            self._emitting = False

        if not errors:
            return
        if len(errors) == 1 and isinstance(errors[0], ReentrantSetError):
            raise errors[0]
        raise SubscriberError(errors)
