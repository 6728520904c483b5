"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from models.records import SensorReading


class SignalQuality(str, Enum):
    """Mean-RSSI bands reported by the quality endpoint."""

    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"


class IngestResponse(BaseModel):
    """Acknowledgement returned to the network server webhook."""

    success: bool
    message: str
    unique_id: str


class ReadingsPage(BaseModel):
    total: int = Field(..., ge=0)
    limit: int
    skip: int
    data: List[SensorReading] = Field(default_factory=list)


class MetricStats(BaseModel):
    min: float
    max: float
    avg: float


class StatisticsResponse(BaseModel):
    """Windowed statistics for a device."""

    device_id: str
    period: str
    start: datetime
    end: datetime
    count: int = Field(..., ge=1)
    temperature: MetricStats
    humidity: MetricStats
    rssi: MetricStats
    snr: MetricStats
    expected_packets: int = Field(
        ...,
        description="Packets a device uplinking every 2 minutes would send in the window.",
    )
    success_rate: float = Field(
        ...,
        description="count / expected_packets as a percentage; a heuristic liveness signal.",
    )


class QualityResponse(BaseModel):
    device_id: str
    sample_size: int = Field(..., ge=1)
    avg_rssi: float
    avg_snr: float
    quality: SignalQuality
    latest_rssi: float
    distribution: Dict[SignalQuality, int] = Field(default_factory=dict)
