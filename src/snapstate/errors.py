"""Exception hierarchy for snapstate."""

from __future__ import annotations


class SnapstateError(Exception):
    """Base exception for all snapstate errors."""


class ConfigError(SnapstateError, ValueError):
    """Invalid configuration value."""


class FreezeError(SnapstateError, TypeError):
    """A value contains something that cannot be deep-frozen."""


class ReentrantSetError(SnapstateError, RuntimeError):
    """set() was called on a node from inside that node's own notification."""


class NoValueError(SnapstateError, LookupError):
    """A derived view has not produced a value yet."""


class SubscriberError(SnapstateError):
    """One or more subscribers raised during a single fan-out.

    The node's state was already updated and every subscriber was called.
    """

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} subscriber(s) failed during notification")
