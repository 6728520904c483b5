"""Read path: store lookups and aggregation for the sensor API."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Optional

from datastore.readings_table import ReadingsTable, build_default_table
from models.records import SensorReading
from services.aggregator import (
    DEFAULT_PERIOD,
    Aggregator,
    QualitySummary,
    StatisticsSummary,
    parse_period,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ReadingQueryService:
    """Raises ``KeyError`` when a device has nothing to report."""

    def __init__(
        self,
        table: ReadingsTable,
        aggregator: Aggregator,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.table = table
        self.aggregator = aggregator
        self._clock = clock

    def latest(self, device_id: str) -> SensorReading:
        reading = self.table.find_latest(device_id)
        if reading is None:
            raise KeyError(f"No readings found for device {device_id!r}.")
        return reading

    def readings(
        self,
        device_id: str,
        limit: int,
        skip: int = 0,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> tuple[list[SensorReading], int]:
        start, end = _as_utc(start), _as_utc(end)
        if start is not None and end is not None and start > end:
            raise ValueError("start_date must not be after end_date.")
        return self.table.find_range(device_id, start=start, end=end, limit=limit, offset=skip)

    def statistics(
        self, device_id: str, period: str = DEFAULT_PERIOD
    ) -> tuple[StatisticsSummary, datetime, datetime]:
        window = parse_period(period)
        end = self._clock()
        start = end - window
        readings, _ = self.table.find_range(device_id, start=start, end=end)
        summary = self.aggregator.statistics(readings, window)
        if summary is None:
            raise KeyError(f"No readings for device {device_id!r} in the last {period}.")
        return summary, start, end

    def quality(self, device_id: str, limit: int = 100) -> QualitySummary:
        summary = self.aggregator.signal_quality(self.table.find_recent(device_id, limit))
        if summary is None:
            raise KeyError(f"No readings found for device {device_id!r}.")
        return summary


@lru_cache
def build_default_query_service() -> ReadingQueryService:
    return ReadingQueryService(table=build_default_table(), aggregator=Aggregator())
