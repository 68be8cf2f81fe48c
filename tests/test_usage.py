"""Tests for the usage counter stores."""

import json
from datetime import date

import pytest

from fileshrink.usage import JsonFileUsageStore, MemoryUsageStore


class Clock:
    def __init__(self, day: date):
        self.day = day

    def __call__(self) -> date:
        return self.day


@pytest.fixture
def clock() -> Clock:
    return Clock(date(2026, 3, 1))


@pytest.fixture
def store(tmp_path, clock) -> JsonFileUsageStore:
    return JsonFileUsageStore(tmp_path / "stats.json", today=clock)


class TestJsonFileUsageStore:
    def test_missing_file_is_empty(self, store):
        assert store.get_all() == {}

    def test_first_use_creates_entry(self, store):
        store.record_use("pdf")
        assert store.get_all() == {"pdf": {"total": 1, "today": 1, "lastDate": "2026-03-01"}}

    def test_same_day_increments_both(self, store):
        store.record_use("pdf")
        store.record_use("pdf")
        entry = store.get_all()["pdf"]
        assert entry["total"] == 2
        assert entry["today"] == 2

    def test_new_day_resets_today(self, store, clock):
        store.record_use("video")
        store.record_use("video")
        clock.day = date(2026, 3, 2)
        store.record_use("video")

        entry = store.get_all()["video"]
        assert entry == {"total": 3, "today": 1, "lastDate": "2026-03-02"}

    def test_tools_counted_separately(self, store):
        store.record_use("pdf")
        store.record_use("image")
        store.record_use("image")
        stats = store.get_all()
        assert stats["pdf"]["total"] == 1
        assert stats["image"]["total"] == 2

    def test_corrupt_file_treated_as_empty(self, store):
        store.path.write_text("{not json", encoding="utf-8")
        assert store.get_all() == {}

        store.record_use("audio")
        assert store.get_all()["audio"]["total"] == 1

    def test_persists_across_instances(self, tmp_path, clock):
        path = tmp_path / "stats.json"
        JsonFileUsageStore(path, today=clock).record_use("merge_pdf")
        JsonFileUsageStore(path, today=clock).record_use("merge_pdf")

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk["merge_pdf"]["total"] == 2

    def test_keeps_existing_totals_from_older_file(self, store):
        store.path.write_text(
            json.dumps({"pdf": {"total": 41, "today": 7, "lastDate": "2026-02-28"}}),
            encoding="utf-8",
        )
        store.record_use("pdf")
        assert store.get_all()["pdf"] == {"total": 42, "today": 1, "lastDate": "2026-03-01"}

    @pytest.mark.parametrize("junk", ["n/a", None, [], -5, "3.5"])
    def test_junk_counts_start_from_zero(self, store, junk):
        store.path.write_text(
            json.dumps({"pdf": {"total": junk, "today": junk, "lastDate": "2026-03-01"}}),
            encoding="utf-8",
        )
        store.record_use("pdf")
        assert store.get_all()["pdf"] == {"total": 1, "today": 1, "lastDate": "2026-03-01"}

    def test_numeric_strings_still_count(self, store):
        store.path.write_text(
            json.dumps({"pdf": {"total": "9", "today": "2", "lastDate": "2026-03-01"}}),
            encoding="utf-8",
        )
        store.record_use("pdf")
        assert store.get_all()["pdf"] == {"total": 10, "today": 3, "lastDate": "2026-03-01"}


class TestMemoryUsageStore:
    def test_record_and_rollover(self, clock):
        store = MemoryUsageStore(today=clock)
        store.record_use("mp4_to_mp3")
        clock.day = date(2026, 3, 5)
        store.record_use("mp4_to_mp3")
        assert store.get_all()["mp4_to_mp3"] == {"total": 2, "today": 1, "lastDate": "2026-03-05"}

    def test_get_all_returns_copy(self, clock):
        store = MemoryUsageStore(today=clock)
        store.record_use("pdf")
        snapshot = store.get_all()
        snapshot["pdf"]["total"] = 99
        assert store.get_all()["pdf"]["total"] == 1
