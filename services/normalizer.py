"""Mapping of upstream uplink events onto canonical sensor readings."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from models.records import GeoLocation, SensorReading
from models.uplink import RxMetadata, UplinkEvent

UNKNOWN = "unknown"

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Network servers emit nanosecond fractions; anything past microseconds
    is dropped.
    """
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    candidate = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), candidate, count=1)

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp format: {value!r}") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def parse_frequency(value: Optional[str]) -> int:
    """Integer hertz from the textual frequency, ``0`` when not numeric."""
    if value is None:
        return 0
    try:
        parsed = int(value.strip())
    except ValueError:
        try:
            parsed = int(float(value))
        except (ValueError, OverflowError):
            return 0
    try:
        float(parsed)
    except OverflowError:
        return 0
    return parsed


def raw_received_at(event: UplinkEvent) -> Optional[str]:
    """The upstream timestamp string exactly as delivered, if any."""
    if event.uplink_message is not None and event.uplink_message.received_at:
        return event.uplink_message.received_at
    return event.received_at or None


def resolve_received_at(event: UplinkEvent, fallback: datetime) -> datetime:
    for raw in (
        event.uplink_message.received_at if event.uplink_message else None,
        event.received_at,
    ):
        if not raw:
            continue
        try:
            return parse_timestamp(raw)
        except ValueError:
            continue
    return fallback


def _first_rx(event: UplinkEvent) -> Optional[RxMetadata]:
    if event.uplink_message is None or not event.uplink_message.rx_metadata:
        return None
    return event.uplink_message.rx_metadata[0]


def _location(rx: Optional[RxMetadata]) -> Optional[GeoLocation]:
    if rx is None or rx.location is None:
        return None
    if rx.location.latitude is None or rx.location.longitude is None:
        return None
    return GeoLocation(
        latitude=rx.location.latitude,
        longitude=rx.location.longitude,
        altitude=rx.location.altitude,
    )


def normalize(
    event: UplinkEvent,
    payload: dict[str, Any],
    created_at: datetime,
) -> SensorReading:
    """Build a reading draft from ``event``; every absent field gets its default.

    ``payload`` is the raw body retained verbatim as ``full_payload``.
    The draft carries no ``unique_id``.
    """
    ids = event.end_device_ids
    uplink = event.uplink_message
    decoded = uplink.decoded_payload if uplink else None
    rx = _first_rx(event)
    gateway = rx.gateway_ids if rx else None
    tx = uplink.settings if uplink else None
    lora = tx.data_rate.lora if tx and tx.data_rate else None

    return SensorReading(
        device_id=(ids.device_id if ids else None) or UNKNOWN,
        dev_eui=(ids.dev_eui if ids else None) or UNKNOWN,
        application_id=(
            ids.application_ids.application_id if ids and ids.application_ids else None
        )
        or UNKNOWN,
        temperature_celsius=_or_zero(decoded.temperature_celsius if decoded else None),
        humidity_percent=_or_zero(decoded.humidity_percent if decoded else None),
        packet_counter=_or_zero(decoded.packet_counter if decoded else None),
        f_port=_or_zero(uplink.f_port if uplink else None),
        f_cnt=_or_zero(uplink.f_cnt if uplink else None),
        gateway_id=(gateway.gateway_id if gateway else None) or UNKNOWN,
        gateway_eui=(gateway.eui if gateway else None) or UNKNOWN,
        rssi=_or_zero(rx.rssi if rx else None),
        snr=_or_zero(rx.snr if rx else None),
        spreading_factor=_or_zero(lora.spreading_factor if lora else None),
        bandwidth=_or_zero(lora.bandwidth if lora else None),
        frequency=parse_frequency(tx.frequency if tx else None),
        location=_location(rx),
        received_at=resolve_received_at(event, fallback=created_at),
        created_at=created_at,
        full_payload=payload,
    )


def _or_zero(value: Any) -> Any:
    return 0 if value is None else value
