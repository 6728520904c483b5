"""Domain models shared across services."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class GeoLocation(BaseModel):
    latitude: float
    longitude: float
    altitude: Optional[float] = None


class SensorReading(BaseModel):
    """A canonical uplink reading, persisted once and never mutated."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    dev_eui: str
    application_id: str

    temperature_celsius: float = 0.0
    humidity_percent: float = 0.0
    packet_counter: int = 0

    f_port: int = 0
    f_cnt: int = 0
    gateway_id: str = "unknown"
    gateway_eui: str = "unknown"
    rssi: float = 0.0
    snr: float = 0.0
    spreading_factor: int = 0
    bandwidth: int = 0
    frequency: int = 0

    location: Optional[GeoLocation] = None

    received_at: datetime
    created_at: datetime

    unique_id: Optional[str] = Field(
        default=None,
        description="Deduplication key; absent on records imported before dedup existed.",
    )
    full_payload: Dict[str, Any] = Field(default_factory=dict)
