"""Tests for the in-memory report store."""

import pytest

from planextract.storage.report_store import InMemoryReportStore, ReportStore


class FakeClock:

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryReportStore(default_ttl_seconds=60, clock=clock)


REPORT = {
    "documentType": "watershed_plan",
    "metadata": {"title": "Deer Creek Watershed Implementation Plan"},
    "data": {"goals": []},
}


class TestInMemoryReportStore:
    """Tests for put/get/list/delete."""

    def test_satisfies_protocol(self, store):
        assert isinstance(store, ReportStore)

    def test_put_and_get(self, store):
        report_id = store.put(REPORT)

        assert report_id.startswith("report-1700000000000-")
        assert store.get(report_id) is REPORT
        assert len(store) == 1

    def test_explicit_id(self, store):
        assert store.put(REPORT, report_id="deer-creek") == "deer-creek"
        assert store.get("deer-creek") is REPORT

    def test_get_missing(self, store):
        assert store.get("nope") is None

    def test_list_summaries(self, store):
        store.put(REPORT, report_id="a")
        store.put({"metadata": {}}, report_id="b")

        summaries = {s["id"]: s for s in store.list()}

        assert summaries["a"]["title"] == "Deer Creek Watershed Implementation Plan"
        assert summaries["a"]["documentType"] == "watershed_plan"
        assert summaries["a"]["timestamp"].startswith("2023-11-14T22:13:20")
        assert summaries["b"]["title"] == "Untitled Report"
        assert summaries["b"]["documentType"] == "unknown"
        assert "data" not in summaries["a"]

    def test_delete(self, store):
        store.put(REPORT, report_id="a")

        assert store.delete("a") is True
        assert store.delete("a") is False
        assert store.get("a") is None


class TestExpiry:
    """Tests for TTL sweeping."""

    def test_expires_after_ttl(self, store, clock):
        store.put(REPORT, report_id="a")

        clock.advance(60)
        assert store.get("a") is REPORT

        clock.advance(1)
        assert store.get("a") is None
        assert store.list() == []

    def test_per_entry_ttl(self, store, clock):
        store.put(REPORT, report_id="short", ttl_seconds=10)
        store.put(REPORT, report_id="long")

        clock.advance(30)

        assert [s["id"] for s in store.list()] == ["long"]

    def test_sweep_count(self, store, clock):
        store.put(REPORT, report_id="a")
        store.put(REPORT, report_id="b")
        clock.advance(120)

        assert store.sweep_expired() == 2
        assert len(store) == 0
