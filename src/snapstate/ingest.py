"""Ingestion helpers — push fresh root values into a Store.

Fetching itself is the caller's business: every helper takes a ``fetch``
callable returning the new root value.

- Refresher: refresh on demand once the data is older than an interval.
- poll(): refresh in a daemon thread on a fixed interval.
- build(): the startup routine wiring a Store and its TimeseriesViews.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, TypeVar

from snapstate.config import IngestConfig
from snapstate.errors import SubscriberError
from snapstate.store import Store
from snapstate.timeseries import TimeseriesViews

T = TypeVar("T")

Fetch = Callable[[], T]

logger = logging.getLogger("snapstate.ingest")


def load_json(path: str | Path) -> Any:
    """Read a JSON snapshot from disk."""
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


class Refresher:
    """Fetch and publish a new root value when the current one is stale."""

    def __init__(
        self,
        store: Store[T],
        fetch: Fetch,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._fetch = fetch
        self._interval = interval
        self._clock = clock
        self._lock = threading.Lock()
        self._last_fetch: float | None = None

    @property
    def last_fetch(self) -> float | None:
        return self._last_fetch

    def refresh(self) -> None:
        """Fetch and set unconditionally."""
        value = self._fetch()
        try:
            self._store.set(value)
        except SubscriberError:
            self._last_fetch = self._clock()
            logger.warning("timeseries refreshed, but some subscribers failed")
            raise
        self._last_fetch = self._clock()
        logger.info("timeseries refreshed")

    def refresh_if_stale(self) -> bool:
        """Refresh when at least ``interval`` seconds passed since the last fetch.

        The timestamp moves forward before fetching so concurrent callers do
        not fetch twice. It is restored if fetching or freezing fails, and
        kept when only subscribers failed, since the store already holds the
        new value. Returns whether a refresh happened.
        """
        with self._lock:
            now = self._clock()
            previous = self._last_fetch
            if previous is not None and now - previous < self._interval:
                return False
            self._last_fetch = now

        try:
            self._store.set(self._fetch())
        except SubscriberError:
            logger.warning("timeseries refreshed, but some subscribers failed")
            raise
        except Exception:
            with self._lock:
                self._last_fetch = previous
            logger.exception("timeseries refresh failed")
            raise
        logger.info("timeseries refreshed")
        return True


class WatchHandle:
    """Disposable handle for a polling daemon thread."""

    __slots__ = ("_stop",)

    def __init__(self) -> None:
        self._stop = threading.Event()

    @property
    def disposed(self) -> bool:
        return self._stop.is_set()

    def dispose(self) -> None:
        """Stop polling. A fetch already in progress still completes."""
        self._stop.set()

    def wait(self, timeout: float) -> bool:
        return self._stop.wait(timeout)


def poll(store: Store[T], fetch: Fetch, interval: float) -> WatchHandle:
    """Fetch and set every ``interval`` seconds in a daemon thread.

    Failures are logged and the loop keeps going. Returns a WatchHandle;
    call .dispose() to stop.

    Usage:
        handle = poll(store, lambda: requests.get(URL).json(), 600)
        ...
        handle.dispose()
    """
    handle = WatchHandle()

    def _loop() -> None:
        while not handle.disposed:
            try:
                store.set(fetch())
            except Exception:
                logger.exception("polling fetch failed; retrying in %.0fs", interval)
            if handle.wait(interval):
                break

    threading.Thread(target=_loop, name="snapstate-poll", daemon=True).start()
    return handle


def build(config: IngestConfig, fetch: Fetch | None = None) -> tuple[TimeseriesViews, Refresher | None]:
    """Create the timeseries Store and its views.

    In production the store starts empty and is filled through ``fetch``;
    the returned Refresher keeps it fresh. Otherwise the static snapshot is
    loaded and no Refresher is returned.
    """
    if not config.production:
        store: Store = Store(load_json(config.static_path))
        logger.info("loaded static timeseries from %s", config.static_path)
        return TimeseriesViews(store), None

    if fetch is None:
        raise ValueError("production mode needs a fetch callable")
    store = Store({})
    views = TimeseriesViews(store)
    refresher = Refresher(store, fetch, config.refresh_interval)
    refresher.refresh_if_stale()
    return views, refresher
