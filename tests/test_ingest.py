"""Tests for ingestion helpers — Refresher, poll() and build()."""

import json
import logging
import threading

import pytest

from snapstate import FreezeError, IngestConfig, Store, SubscriberError
from snapstate.ingest import Refresher, build, load_json, poll


class _Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestLoadJson:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "series.json"
        path.write_text(json.dumps({"Norway": []}), encoding="utf-8")
        assert load_json(path) == {"Norway": []}


class TestRefresher:
    def test_first_call_fetches(self):
        store = Store({})
        r = Refresher(store, lambda: {"a": 1}, 600, clock=_Clock())
        assert r.refresh_if_stale() is True
        assert store.get() == {"a": 1}
        assert r.last_fetch == 1000.0

    def test_fresh_data_not_refetched(self):
        store = Store({})
        calls = []
        clock = _Clock()
        r = Refresher(store, lambda: calls.append(1) or {"n": len(calls)}, 600, clock=clock)
        r.refresh_if_stale()
        clock.now += 599
        assert r.refresh_if_stale() is False
        assert len(calls) == 1

    def test_stale_data_refetched(self):
        store = Store({})
        calls = []
        clock = _Clock()
        r = Refresher(store, lambda: calls.append(1) or {"n": len(calls)}, 600, clock=clock)
        r.refresh_if_stale()
        clock.now += 600
        assert r.refresh_if_stale() is True
        assert store.get() == {"n": 2}

    def test_failure_restores_timestamp(self, caplog):
        store = Store({"a": 1})
        clock = _Clock()

        def fail():
            raise ConnectionError("feed down")

        r = Refresher(store, fail, 600, clock=clock)
        with caplog.at_level(logging.ERROR, logger="snapstate.ingest"):
            with pytest.raises(ConnectionError):
                r.refresh_if_stale()
        assert r.last_fetch is None
        assert store.get() == {"a": 1}
        assert "refresh failed" in caplog.text

    def test_refresh_unconditional(self):
        store = Store({})
        clock = _Clock()
        r = Refresher(store, lambda: {"a": 2}, 600, clock=clock)
        r.refresh_if_stale()
        r.refresh()
        assert store.get() == {"a": 2}


class TestPoll:
    def test_pushes_values(self):
        store = Store(0)
        seen = threading.Event()
        store.subscribe(lambda v: seen.set() if v == 42 else None)
        handle = poll(store, lambda: 42, 60)
        try:
            assert seen.wait(timeout=2)
        finally:
            handle.dispose()
        assert store.get() == 42

    def test_dispose_flag(self):
        handle = poll(Store(0), lambda: 0, 60)
        assert not handle.disposed
        handle.dispose()
        assert handle.disposed

    def test_failures_keep_polling(self, caplog):
        store = Store(0)
        attempts = []
        done = threading.Event()

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("feed down")
            done.set()
            return len(attempts)

        with caplog.at_level(logging.ERROR, logger="snapstate.ingest"):
            handle = poll(store, flaky, 0.01)
            try:
                assert done.wait(timeout=2)
            finally:
                handle.dispose()
        assert len(attempts) >= 3
        assert "polling fetch failed" in caplog.text


class TestBuild:
    def test_static_snapshot(self, tmp_path):
        path = tmp_path / "series.json"
        path.write_text(
            json.dumps({"Norway": [{"date": "2020-1-22", "confirmed": 1, "deaths": 0, "recovered": 0}]}),
            encoding="utf-8",
        )
        views, refresher = build(IngestConfig(static_path=path))
        assert refresher is None
        assert views.latest.get()["Norway"]["confirmed"] == 1

    def test_production_fetches(self):
        feed = {"Norway": [{"date": "2020-1-22", "confirmed": 4, "deaths": 0, "recovered": 0}]}
        views, refresher = build(IngestConfig(production=True), fetch=lambda: feed)
        assert refresher is not None
        assert views.accumulated.get()["confirmed"] == 4

    def test_production_needs_fetch(self):
        with pytest.raises(ValueError):
            build(IngestConfig(production=True))


class TestRefresherSubscriberFailures:
    def _failing_store(self):
        store = Store({"a": 0})

        def boom(value):
            if value["a"]:
                raise ValueError("boom")

        store.subscribe(boom)
        return store

    def test_stale_refresh_keeps_timestamp(self, caplog):
        store = self._failing_store()
        clock = _Clock()
        r = Refresher(store, lambda: {"a": 1}, 600, clock=clock)
        with caplog.at_level(logging.WARNING, logger="snapstate.ingest"):
            with pytest.raises(SubscriberError):
                r.refresh_if_stale()
        assert store.get() == {"a": 1}
        assert r.last_fetch == 1000.0
        assert "refresh failed" not in caplog.text
        assert "some subscribers failed" in caplog.text
        assert r.refresh_if_stale() is False

    def test_unconditional_refresh_keeps_timestamp(self):
        store = self._failing_store()
        r = Refresher(store, lambda: {"a": 2}, 600, clock=_Clock())
        with pytest.raises(SubscriberError):
            r.refresh()
        assert r.last_fetch == 1000.0

    def test_unfreezable_value_restores_timestamp(self):
        store = Store({"a": 0})
        r = Refresher(store, lambda: {"a": object()}, 600, clock=_Clock())
        with pytest.raises(FreezeError):
            r.refresh_if_stale()
        assert r.last_fetch is None
