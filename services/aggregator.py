"""Read-side aggregation over fetched sensor readings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, Optional, Sequence

from models.records import SensorReading

PERIODS: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_PERIOD = "24h"

# Assumed duty cycle for the success-rate heuristic. Devices reporting on a
# different schedule get a meaningless rate; it is not a LoRaWAN constant.
NOMINAL_UPLINK_INTERVAL_SECONDS = 120

QUALITY_BANDS = ("excellent", "good", "fair", "poor")
_EXCELLENT_ABOVE_DBM = -70.0
_GOOD_ABOVE_DBM = -80.0
_FAIR_ABOVE_DBM = -90.0


def parse_period(period: str) -> timedelta:
    try:
        return PERIODS[period]
    except KeyError:
        supported = ", ".join(PERIODS)
        raise ValueError(f"Unsupported period {period!r}; expected one of {supported}.") from None


def classify_rssi(rssi: float) -> str:
    if rssi > _EXCELLENT_ABOVE_DBM:
        return "excellent"
    if rssi > _GOOD_ABOVE_DBM:
        return "good"
    if rssi > _FAIR_ABOVE_DBM:
        return "fair"
    return "poor"


@dataclass
class MetricSummary:
    min_value: float
    max_value: float
    mean_value: float


@dataclass
class StatisticsSummary:
    """Windowed statistics for one device."""

    count: int
    temperature: MetricSummary
    humidity: MetricSummary
    rssi: MetricSummary
    snr: MetricSummary
    expected_packets: int
    success_rate: float


@dataclass
class QualitySummary:
    sample_size: int
    mean_rssi: float
    mean_snr: float
    quality: str
    latest_rssi: float
    distribution: Dict[str, int] = field(default_factory=dict)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def summarize(self, values: Iterable[float]) -> Optional[MetricSummary]:
        count = 0
        total = 0.0
        low: float | None = None
        high: float | None = None

        for value in values:
            count += 1
            total += value
            if low is None or value < low:
                low = value
            if high is None or value > high:
                high = value

        if not count:
            return None
        return MetricSummary(min_value=low, max_value=high, mean_value=total / count)

    def statistics(
        self,
        readings: Sequence[SensorReading],
        window: timedelta,
    ) -> Optional[StatisticsSummary]:
        """Summaries over ``readings``, or ``None`` when there are none.

        ``success_rate`` compares the sample count with the packets a device
        on the nominal interval would send in ``window``. It is a liveness
        hint and is neither clamped nor corrected for other duty cycles.
        """
        if not readings:
            return None

        expected = int(window.total_seconds() // NOMINAL_UPLINK_INTERVAL_SECONDS)
        count = len(readings)
        success_rate = round(count / expected * 100, 2) if expected else 0.0
        return StatisticsSummary(
            count=count,
            temperature=self.summarize(r.temperature_celsius for r in readings),
            humidity=self.summarize(r.humidity_percent for r in readings),
            rssi=self.summarize(r.rssi for r in readings),
            snr=self.summarize(r.snr for r in readings),
            expected_packets=expected,
            success_rate=success_rate,
        )

    def signal_quality(self, readings: Sequence[SensorReading]) -> Optional[QualitySummary]:
        """Classify mean RSSI of ``readings`` (newest first)."""
        if not readings:
            return None

        distribution = {band: 0 for band in QUALITY_BANDS}
        for reading in readings:
            distribution[classify_rssi(reading.rssi)] += 1

        mean_rssi = sum(r.rssi for r in readings) / len(readings)
        mean_snr = sum(r.snr for r in readings) / len(readings)
        return QualitySummary(
            sample_size=len(readings),
            mean_rssi=mean_rssi,
            mean_snr=mean_snr,
            quality=classify_rssi(mean_rssi),
            latest_rssi=readings[0].rssi,
            distribution=distribution,
        )
