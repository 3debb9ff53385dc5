"""Unit tests for the dismissal cache and its key/value stores."""

import json
from datetime import timedelta

import pytest

from builders import NOW
from lifecycle_service.core.dismissals import STORAGE_KEY, DismissalCache
from lifecycle_service.infrastructure.storage import InMemoryKeyValueStore, JsonFileKeyValueStore


class BrokenStore(InMemoryKeyValueStore):
    def get(self, key):
        raise OSError("disk unavailable")

    def set(self, key, value):
        raise OSError("disk unavailable")


@pytest.mark.unit
class TestDismissalCache:

    def test_dismissed_within_ttl(self, dismissals):
        dismissals.dismiss("C1-wait-48", NOW)

        assert dismissals.is_dismissed("C1-wait-48", NOW + timedelta(days=6, hours=23))
        assert dismissals.is_dismissed("C1-wait-48", NOW + timedelta(days=7))
        assert not dismissals.is_dismissed("C1-wait-72", NOW)

    def test_expires_after_ttl(self, dismissals):
        dismissals.dismiss("C1-wait-48", NOW)

        assert not dismissals.is_dismissed("C1-wait-48", NOW + timedelta(days=7, seconds=1))

    def test_expired_records_are_pruned_from_storage(self):
        kv = InMemoryKeyValueStore()
        cache = DismissalCache(kv)
        cache.dismiss("old", NOW - timedelta(days=10))
        cache.dismiss("fresh", NOW)

        assert cache.prune(NOW) == 1
        assert set(json.loads(kv.get(STORAGE_KEY))) == {"fresh"}

    def test_uses_clock_when_no_time_given(self, dismissals):
        dismissals.dismiss("M1-meeting-today")
        assert dismissals.dismissed_ids(NOW) == {"M1-meeting-today"}

    def test_each_viewer_has_own_records(self, dismissals, admin, consultant):
        dismissals.for_viewer(admin).dismiss("C1-wait-48", NOW)

        assert dismissals.for_viewer(admin).is_dismissed("C1-wait-48", NOW)
        assert not dismissals.for_viewer(consultant).is_dismissed("C1-wait-48", NOW)
        assert dismissals.store.get(f"{STORAGE_KEY}:admin") is not None
        assert dismissals.store.get(f"{STORAGE_KEY}:kejdi") is None

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"C1-wait-48": "yesterday"}'])
    def test_corrupt_storage_reads_as_empty(self, raw):
        cache = DismissalCache(InMemoryKeyValueStore({STORAGE_KEY: raw}))

        assert cache.dismissed_ids(NOW) == set()
        cache.dismiss("C1-wait-48", NOW)
        assert cache.dismissed_ids(NOW) == {"C1-wait-48"}

    def test_unreachable_storage_degrades(self):
        cache = DismissalCache(BrokenStore())

        cache.dismiss("C1-wait-48", NOW)
        assert not cache.is_dismissed("C1-wait-48", NOW)

    def test_clear(self, dismissals):
        dismissals.dismiss("C1-wait-48", NOW)
        dismissals.clear()
        assert dismissals.dismissed_ids(NOW) == set()


@pytest.mark.unit
class TestJsonFileKeyValueStore:

    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "state" / "dismissed.json"
        DismissalCache(JsonFileKeyValueStore(path)).dismiss("CASE7-deadline-overdue", NOW)

        reopened = DismissalCache(JsonFileKeyValueStore(path))
        assert reopened.is_dismissed("CASE7-deadline-overdue", NOW + timedelta(days=1))

    def test_unreadable_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "dismissed.json"
        path.write_text("{truncated", encoding="utf-8")
        store = JsonFileKeyValueStore(path)

        assert store.get(STORAGE_KEY) is None
        store.set("k", "v")
        assert store.get("k") == "v"

    def test_delete_missing_key(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "kv.json")
        store.delete("missing")
        assert not (tmp_path / "kv.json").exists()
