"""Tests for the JSON store and reading history."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_record
from runecast import storage
from runecast.errors import StorageError
from runecast.storage import READINGS_KEY, HistoryStore, JsonStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestJsonStore:
    def test_get_missing_key_returns_default(self, tmp_path):
        store = JsonStore(tmp_path)
        assert store.get("nothing", []) == []

    def test_set_and_get(self, tmp_path):
        store = JsonStore(tmp_path / "nested")
        store.set("answer", {"value": 42})
        assert store.get("answer") == {"value": 42}
        # no temp files left behind
        assert [p.name for p in (tmp_path / "nested").iterdir()] == ["answer.json"]

    def test_corrupt_file_raises_storage_error(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            JsonStore(tmp_path).get("broken")

    def test_unwritable_directory_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("i am a file", encoding="utf-8")
        with pytest.raises(StorageError):
            JsonStore(blocker).set("key", [1, 2, 3])

    def test_delete(self, tmp_path):
        store = JsonStore(tmp_path)
        store.set("gone", 1)
        store.delete("gone")
        store.delete("gone")
        assert store.get("gone") is None


class TestHistoryStore:
    def test_empty_history(self, history):
        assert history.list() == []

    def test_append_lists_newest_first(self, history):
        history.append(make_record(1, NOW - timedelta(days=2)))
        history.append(make_record(2, NOW - timedelta(days=1)))
        history.append(make_record(3, NOW - timedelta(days=5)))
        assert [r.id for r in history.list()] == [2, 1, 3]

    def test_round_trip_keeps_record(self, history):
        record = make_record(7, NOW)
        history.append(record)
        assert history.get(7) == record
        assert history.get(8) is None

    def test_corrupt_store_reads_as_empty(self, tmp_path):
        (tmp_path / f"{READINGS_KEY}.json").write_text("][", encoding="utf-8")
        assert HistoryStore(JsonStore(tmp_path)).list() == []

    def test_non_list_store_reads_as_empty(self, tmp_path):
        (tmp_path / f"{READINGS_KEY}.json").write_text('{"id": 1}', encoding="utf-8")
        assert HistoryStore(JsonStore(tmp_path)).list() == []

    def test_invalid_records_are_skipped(self, tmp_path):
        good = make_record(1, NOW).model_dump(mode="json")
        (tmp_path / f"{READINGS_KEY}.json").write_text(
            json.dumps([good, {"id": "nope"}]), encoding="utf-8"
        )
        assert [r.id for r in HistoryStore(JsonStore(tmp_path)).list()] == [1]

    def test_delete(self, history):
        history.append(make_record(1, NOW))
        history.append(make_record(2, NOW))
        assert history.delete(1) is True
        assert history.delete(1) is False
        assert [r.id for r in history.list()] == [2]

    def test_clear(self, history):
        history.append(make_record(1, NOW))
        history.clear()
        assert history.list() == []

    def test_prune_boundary(self, history):
        for record_id, age in enumerate([10, 40, 91, 400], start=1):
            history.append(make_record(record_id, NOW - timedelta(days=age)))

        removed = history.prune_days(90, now=NOW)

        assert removed == 2
        kept_ages = sorted((NOW - r.created_at).days for r in history.list())
        assert kept_ages == [10, 40]

    @pytest.mark.parametrize("days", [0, -1])
    def test_prune_non_positive_keeps_everything(self, history, days):
        history.append(make_record(1, NOW - timedelta(days=4000)))
        assert history.prune_days(days, now=NOW) == 0
        assert len(history.list()) == 1

    def test_prune_with_cutoff(self, history):
        history.append(make_record(1, NOW - timedelta(hours=1)))
        history.append(make_record(2, NOW - timedelta(hours=3)))
        assert history.prune(NOW - timedelta(hours=2)) == 1
        assert [r.id for r in history.list()] == [1]

    def test_failed_write_keeps_previous_list(self, history, monkeypatch):
        history.append(make_record(1, NOW))

        def refuse(key, value):
            raise StorageError("read-only")

        monkeypatch.setattr(history.store, "set", refuse)
        with pytest.raises(StorageError):
            history.append(make_record(2, NOW))
        with pytest.raises(StorageError):
            history.prune_days(1, now=NOW + timedelta(days=10))
        assert [r.id for r in history.list()] == [1]

    def test_retention_setting(self, history):
        assert history.get_retention_days() == 90
        history.set_retention_days(365)
        assert history.get_retention_days() == 365
        history.set_retention_days(-1)
        assert history.get_retention_days() == -1

    def _unreadable(self, history, monkeypatch):
        real_get = history.store.get

        def flaky_get(key, default=None):
            if key == READINGS_KEY:
                raise StorageError("[Errno 5] Input/output error")
            return real_get(key, default)

        monkeypatch.setattr(history.store, "get", flaky_get)

    def test_failed_read_aborts_append(self, history, monkeypatch):
        for record_id in (1, 2, 3):
            history.append(make_record(record_id, NOW))
        path = history.store.directory / f"{READINGS_KEY}.json"
        before = path.read_bytes()

        self._unreadable(history, monkeypatch)
        with pytest.raises(StorageError):
            history.append(make_record(4, NOW))
        assert history.list() == []

        monkeypatch.undo()
        assert path.read_bytes() == before
        assert len(history.list()) == 3

    def test_failed_read_aborts_prune_and_delete(self, history, monkeypatch):
        for record_id in (1, 2, 3):
            history.append(make_record(record_id, NOW - timedelta(days=200)))
        path = history.store.directory / f"{READINGS_KEY}.json"
        before = path.read_bytes()

        self._unreadable(history, monkeypatch)
        with pytest.raises(StorageError):
            history.prune_days(90, now=NOW)
        with pytest.raises(StorageError):
            history.delete(1)

        monkeypatch.undo()
        assert path.read_bytes() == before
        assert len(history.list()) == 3

    def test_non_list_store_is_not_overwritten(self, tmp_path):
        path = tmp_path / f"{READINGS_KEY}.json"
        path.write_text('{"id": 1}', encoding="utf-8")
        history = HistoryStore(JsonStore(tmp_path))
        with pytest.raises(StorageError):
            history.append(make_record(1, NOW))
        assert path.read_text(encoding="utf-8") == '{"id": 1}'


def test_failed_cleanup_still_raises_storage_error(tmp_path, monkeypatch):
    def no_replace(src, dst):
        raise OSError("disk full")

    def no_unlink(path):
        raise PermissionError("locked")

    monkeypatch.setattr(storage.os, "replace", no_replace)
    monkeypatch.setattr(storage.os, "unlink", no_unlink)
    with pytest.raises(StorageError, match="disk full"):
        JsonStore(tmp_path).set("key", [1])
