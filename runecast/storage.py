"""Local persistence: a JSON-file key-value store and the reading history on top of it."""

import contextlib
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from .errors import StorageError
from .models import ReadingRecord, utcnow

log = logging.getLogger("runecast.storage")

READINGS_KEY = "runecast_readings"
RETENTION_KEY = "runecast_retention"


class JsonStore:
    """One JSON document per key, each written atomically (temp file + rename)."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.directory, prefix=f".{key}.", suffix=".tmp", delete=False
            ) as f:
                tmp_name = f.name
                json.dump(value, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            raise StorageError(f"Could not write {path}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not delete {key}: {e}") from e


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class HistoryStore:
    """Saved readings, newest first.

    Every read-modify-write runs under one lock and lands as a single file
    replacement, so readers never see a half-written list.
    """

    def __init__(self, store: JsonStore, default_retention_days: int = 90):
        self.store = store
        self.default_retention_days = default_retention_days
        self._lock = threading.RLock()

    def _load(self, strict: bool = False) -> List[ReadingRecord]:
        """Read the saved list.

        Readers get an empty list for an unreadable store. Writers pass
        `strict=True` so a failed read aborts the write instead of replacing
        the file with a partial list.
        """
        try:
            raw = self.store.get(READINGS_KEY, [])
        except StorageError as e:
            if strict:
                raise
            log.warning("reading history unreadable, treating as empty: %s", e)
            return []
        if not isinstance(raw, list):
            if strict:
                raise StorageError("reading history is not a list")
            log.warning("reading history is not a list, treating as empty")
            return []

        records: List[ReadingRecord] = []
        for item in raw:
            try:
                records.append(ReadingRecord.model_validate(item))
            except ValidationError as e:
                log.warning("skipping invalid reading record: %s", e)
        return records

    def _save(self, records: List[ReadingRecord]) -> None:
        self.store.set(READINGS_KEY, [r.model_dump(mode="json") for r in records])

    def list(self) -> List[ReadingRecord]:
        with self._lock:
            records = self._load()
        return sorted(records, key=lambda r: (_aware(r.created_at), r.id), reverse=True)

    def get(self, record_id: int) -> Optional[ReadingRecord]:
        for r in self.list():
            if r.id == record_id:
                return r
        return None

    def append(self, record: ReadingRecord) -> None:
        with self._lock:
            records = self._load(strict=True)
            records.insert(0, record)
            self._save(records)
        log.info("saved reading %s (%s)", record.id, record.spread.name)

    def delete(self, record_id: int) -> bool:
        with self._lock:
            records = self._load(strict=True)
            kept = [r for r in records if r.id != record_id]
            if len(kept) == len(records):
                return False
            self._save(kept)
        log.info("deleted reading %s", record_id)
        return True

    def clear(self) -> None:
        with self._lock:
            self._save([])

    def prune(self, cutoff: datetime) -> int:
        """Drop records created before `cutoff`. Returns how many were removed."""
        cutoff = _aware(cutoff)
        with self._lock:
            records = self._load(strict=True)
            kept = [r for r in records if _aware(r.created_at) >= cutoff]
            self._save(kept)
        removed = len(records) - len(kept)
        log.info("pruned %d reading(s) older than %s", removed, cutoff.isoformat())
        return removed

    def prune_days(self, retention_days: int, now: Optional[datetime] = None) -> int:
        # 0 or less means keep all
        if retention_days <= 0:
            return 0
        cutoff = _aware(now or utcnow()) - timedelta(days=retention_days)
        return self.prune(cutoff)

    def get_retention_days(self) -> int:
        try:
            value = self.store.get(RETENTION_KEY)
        except StorageError as e:
            log.warning("retention setting unreadable: %s", e)
            return self.default_retention_days
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return self.default_retention_days

    def set_retention_days(self, days: int) -> None:
        self.store.set(RETENTION_KEY, int(days))
