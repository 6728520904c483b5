"""Background enforcement of the reading retention horizon."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Event, Thread
from typing import Callable, Optional

from datastore.readings_table import ReadingsTable, StorageError

logger = logging.getLogger(__name__)


class RetentionReaper:
    """Periodically purges expired readings on a daemon thread.

    Each sweep is idempotent and independent of ingestion, so a missed or
    repeated sweep only delays removal.
    """

    def __init__(
        self,
        table: ReadingsTable,
        interval_seconds: float = 3600.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.table = table
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._stop = Event()
        self._thread: Optional[Thread] = None

    def sweep(self) -> int:
        try:
            removed = self.table.purge_expired(self._clock())
        except StorageError:
            logger.exception("Retention sweep failed")
            return 0
        if removed:
            logger.info("Purged expired readings", extra={"removed_count": removed})
        return removed

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="retention-reaper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            self.sweep()
            self._stop.wait(self.interval_seconds)
