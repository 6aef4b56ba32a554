"""Per-country timeseries views built on a Store.

The root value maps country names to lists of daily entries:

    {"Norway": [{"date": "2020-1-22", "confirmed": 0, "deaths": 0, "recovered": 0}, ...]}

TimeseriesViews wires the derived views request handlers read from. Views
for a specific date are created on first use and kept in a bounded LRU
cache; evicted views are disposed so they stop recomputing.
"""

from __future__ import annotations

import datetime
import logging
import threading
from collections import OrderedDict
from collections.abc import Mapping, Sequence
from typing import Any

from snapstate.derived import DerivedView, select
from snapstate.store import Store

logger = logging.getLogger("snapstate.timeseries")

Entry = Mapping[str, Any]
Timeseries = Mapping[str, Sequence[Entry]]
SpecificDateSeries = Mapping[str, Entry]

COUNTERS = ("confirmed", "deaths", "recovered")
EPOCH = "1970-01-01"
MAX_DATE_VIEWS = 64


def parse_date(text: str) -> datetime.date:
    """Parse YYYY-M-D; zero padding is optional."""
    return datetime.datetime.strptime(text, "%Y-%m-%d").date()


def entry_date(entry: Entry) -> datetime.date | None:
    """Date of a dataset entry, or None when it is missing or malformed."""
    try:
        return parse_date(entry["date"])
    except (KeyError, TypeError, ValueError):
        return None


def latest_entries(series: Timeseries) -> dict[str, Entry]:
    return {country: entries[-1] for country, entries in series.items() if entries}


def entries_on(series: Timeseries, date: str | datetime.date) -> dict[str, Entry]:
    """Entries on date per country. Entries with a malformed date never match."""
    target = parse_date(date) if isinstance(date, str) else date
    found = {}
    for country, entries in series.items():
        for entry in entries:
            if entry_date(entry) == target:
                found[country] = entry
                break
    return found


def accumulate(entries: SpecificDateSeries) -> dict[str, int]:
    totals = dict.fromkeys(COUNTERS, 0)
    for entry in entries.values():
        for counter in COUNTERS:
            totals[counter] += entry.get(counter) or 0
    return totals


def latest_date(entries: SpecificDateSeries) -> str:
    dates = [d for d in map(entry_date, entries.values()) if d is not None]
    if not dates:
        return EPOCH
    return max(dates).isoformat()


class _DateViews:
    """Views for one date. accumulated is built on first request."""

    __slots__ = ("on_date", "accumulated")

    def __init__(self, on_date: DerivedView) -> None:
        self.on_date = on_date
        self.accumulated: DerivedView | None = None

    def dispose(self) -> None:
        if self.accumulated is not None:
            self.accumulated.dispose()
        self.on_date.dispose()


class TimeseriesViews:
    """Derived views over a timeseries Store.

    At most ``max_date_views`` dates keep live views. Requesting another
    date evicts the least recently used one; a view handed out earlier for
    an evicted date keeps its last value but no longer follows the store.
    """

    def __init__(self, store: Store[Timeseries], *, max_date_views: int = MAX_DATE_VIEWS) -> None:
        if max_date_views < 1:
            raise ValueError("max_date_views must be at least 1")
        self.timeseries = store
        self.latest: DerivedView[Timeseries, SpecificDateSeries] = select(store, latest_entries)
        self.accumulated: DerivedView[SpecificDateSeries, dict] = select(self.latest, accumulate)
        self.latest_date: DerivedView[SpecificDateSeries, str] = select(self.latest, latest_date)
        self._max_date_views = max_date_views
        self._lock = threading.Lock()
        self._dates: OrderedDict[datetime.date, _DateViews] = OrderedDict()

    def _date_views(self, date: str) -> _DateViews:
        """Caller holds the lock."""
        key = parse_date(date)
        views = self._dates.get(key)
        if views is not None:
            self._dates.move_to_end(key)
            return views

        views = _DateViews(select(self.timeseries, lambda series: entries_on(series, key)))
        self._dates[key] = views
        logger.debug("created views for date %s", key)
        while len(self._dates) > self._max_date_views:
            evicted, stale = self._dates.popitem(last=False)
            stale.dispose()
            logger.debug("evicted views for date %s", evicted)
        return views

    @property
    def cached_dates(self) -> list[datetime.date]:
        with self._lock:
            return list(self._dates)

    def on_date(self, date: str) -> DerivedView[Timeseries, SpecificDateSeries]:
        """Entries recorded on date, keyed by country. Raises ValueError for a malformed date."""
        with self._lock:
            return self._date_views(date).on_date

    def accumulated_on_date(self, date: str) -> DerivedView[SpecificDateSeries, dict]:
        """Totals over on_date(date)."""
        with self._lock:
            views = self._date_views(date)
            if views.accumulated is None:
                views.accumulated = select(views.on_date, accumulate)
            return views.accumulated

    def dispose(self) -> None:
        """Detach every view from the store."""
        with self._lock:
            dates = list(self._dates.values())
            self._dates.clear()
        for views in dates:
            views.dispose()
        for view in (self.latest_date, self.accumulated, self.latest):
            view.dispose()
