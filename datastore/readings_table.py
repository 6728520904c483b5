from __future__ import annotations

import json
import logging
import math
import os
from bisect import bisect_left, bisect_right, insort
from datetime import datetime, timedelta
from functools import lru_cache
from itertools import count
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from models.records import SensorReading
from settings import get_settings

logger = logging.getLogger(__name__)

RETENTION_PERIOD = timedelta(days=90)

_IndexEntry = Tuple[datetime, int]


class StorageError(RuntimeError):
    """Raised when a reading could not be made durable."""


class ReadingsTable:
    """Thread-safe reading store.

    Rows are keyed internally by an insertion sequence. ``unique_id`` is
    a sparse unique index, and each device keeps its rows ordered by
    ``(received_at, sequence)`` so latest and range lookups only touch
    that device's entries.

    Every write rewrites the whole JSON file under the lock, so insert cost
    grows with the store size. The file is replaced atomically, and a file
    that cannot be read refuses to load rather than starting empty.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._rows: Dict[int, SensorReading] = {}
        self._by_unique_id: Dict[str, int] = {}
        self._by_device: Dict[str, List[_IndexEntry]] = {}
        self._sequence = count()
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert(self, reading: SensorReading) -> bool:
        """Store ``reading``; ``False`` when its ``unique_id`` is already taken."""
        with self._lock:
            if reading.unique_id is not None and reading.unique_id in self._by_unique_id:
                return False
            row_id = self._add(reading)
            try:
                self._persist()
            except OSError as exc:
                self._remove(row_id)
                raise StorageError(f"Could not persist reading to {self.persistence_path}") from exc
            return True

    def exists(self, unique_id: str) -> bool:
        with self._lock:
            return unique_id in self._by_unique_id

    def find_latest(self, device_id: str) -> Optional[SensorReading]:
        with self._lock:
            entries = self._by_device.get(device_id)
            if not entries:
                return None
            return self._rows[entries[-1][1]]

    def find_range(
        self,
        device_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[SensorReading], int]:
        """Readings in ``[start, end]`` newest first, plus the total match count."""
        with self._lock:
            entries = self._by_device.get(device_id, [])
            lo = 0 if start is None else bisect_left(entries, (start, -1))
            hi = len(entries) if end is None else bisect_right(entries, (end, math.inf))
            total = max(hi - lo, 0)
            newest = hi - offset
            oldest = lo if limit is None else max(lo, newest - limit)
            if newest <= oldest:
                return [], total
            page = entries[oldest:newest]
            return [self._rows[row_id] for _, row_id in reversed(page)], total

    def find_recent(self, device_id: str, limit: int) -> list[SensorReading]:
        with self._lock:
            entries = self._by_device.get(device_id, [])
            recent = entries[-limit:] if limit > 0 else []
            return [self._rows[row_id] for _, row_id in reversed(recent)]

    def purge_expired(self, now: datetime) -> int:
        """Drop rows created before the retention horizon; returns how many."""
        cutoff = now - RETENTION_PERIOD
        with self._lock:
            expired = [
                row_id for row_id, reading in self._rows.items() if reading.created_at < cutoff
            ]
            if not expired:
                return 0
            removed = [self._remove(row_id) for row_id in expired]
            try:
                self._persist()
            except OSError as exc:
                for reading in removed:
                    self._add(reading)
                raise StorageError(f"Could not persist purge to {self.persistence_path}") from exc
            return len(expired)

    def count(self) -> int:
        with self._lock:
            return len(self._rows)

    def _add(self, reading: SensorReading) -> int:
        row_id = next(self._sequence)
        self._rows[row_id] = reading
        if reading.unique_id is not None:
            self._by_unique_id[reading.unique_id] = row_id
        insort(self._by_device.setdefault(reading.device_id, []), (reading.received_at, row_id))
        return row_id

    def _remove(self, row_id: int) -> SensorReading:
        reading = self._rows.pop(row_id)
        if reading.unique_id is not None:
            self._by_unique_id.pop(reading.unique_id, None)
        entries = self._by_device[reading.device_id]
        entries.remove((reading.received_at, row_id))
        if not entries:
            del self._by_device[reading.device_id]
        return reading

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = [reading.model_dump(mode="json") for reading in self._rows.values()]
        staging = self.persistence_path.with_name(self.persistence_path.name + ".tmp")
        try:
            staging.write_text(json.dumps(payload, indent=2))
            os.replace(staging, self.persistence_path)
        except OSError:
            staging.unlink(missing_ok=True)
            raise

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("store file does not hold a list of readings")
            readings = [SensorReading.model_validate(payload) for payload in data]
        except (OSError, ValueError, ValidationError) as exc:
            logger.error("Unreadable store file %s", self.persistence_path)
            raise StorageError(f"Could not load readings from {self.persistence_path}") from exc

        for reading in readings:
            if reading.unique_id is not None and reading.unique_id in self._by_unique_id:
                continue
            self._add(reading)


@lru_cache
def build_default_table(
    name: str = "sensor_readings",
    path: Optional[str] = None,
) -> ReadingsTable:
    settings = get_settings()
    table_path = settings.store_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return ReadingsTable(name=name, persistence_path=persistence)
