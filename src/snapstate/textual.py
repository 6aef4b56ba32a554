"""Textual integration for snapstate. Opt-in, requires textual.

bind() pushes a Store or DerivedView into widgets. Emissions on the app's
own thread are applied immediately. Emissions from other threads are
handed to the app with ``call_later``, which only enqueues a message, so
the emitting node never waits on the app thread while holding its lock.
Values queued that way are coalesced: the app applies only the newest.

Effects are skipped while the app is paused or not running, and NoMatches
from widget queries is ignored.
"""

import logging
import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

logger = logging.getLogger("snapstate.textual")

# id(app) -> nesting depth of pause(app). Owned by this module so apps are never mutated.
_pause_depth: dict[int, int] = {}

_NOTHING = object()


@contextmanager
def pause(app):
    """Suspend bound effects during widget replacement. May be nested."""
    key = id(app)
    _pause_depth[key] = _pause_depth.get(key, 0) + 1
    try:
        yield
    finally:
        depth = _pause_depth.pop(key) - 1
        if depth:
            _pause_depth[key] = depth


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _pause_depth


def bind(app, source, effect):
    """Subscribe effect to source on behalf of a Textual app.

    Must be called on the app's thread. The current value is replayed right
    away, like any subscribe(). Returns the Subscription.
    """
    app_thread = threading.get_ident()
    lock = threading.Lock()
    pending = [_NOTHING]

    def _apply(value):
        if not is_safe(app):
            return
        try:
            effect(value)
        except NoMatches:
            logger.debug("bound widget missing; skipped value for %r", source)

    def _flush():
        with lock:
            value, pending[0] = pending[0], _NOTHING
        if value is not _NOTHING:
            _apply(value)

    def _on_emit(value):
        if threading.get_ident() == app_thread:
            with lock:
                pending[0] = _NOTHING  # superseded by this newer value
            _apply(value)
            return
        if not app.is_running:
            return
        with lock:
            queued = pending[0] is not _NOTHING
            pending[0] = value
        if not queued:
            app.call_later(_flush)

    return source.subscribe(_on_emit)
