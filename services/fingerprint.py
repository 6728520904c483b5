"""Idempotency keys for uplink events."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from models.uplink import UplinkEvent
from services.normalizer import raw_received_at

FINGERPRINT_LENGTH = 16


def fingerprint(event: UplinkEvent, payload: dict[str, Any]) -> str:
    """Return the caller's token, or a hash of device, frame counter and timestamp.

    When the frame counter or the timestamp is missing, the canonical JSON
    of ``payload`` is hashed in as well, so a byte-identical retransmission
    still collides while distinct events with a drifted schema do not.
    """
    if event.unique_id and event.unique_id.strip():
        return event.unique_id

    device_id = (event.end_device_ids.device_id if event.end_device_ids else None) or ""
    f_cnt = event.uplink_message.f_cnt if event.uplink_message else None
    timestamp = raw_received_at(event)
    material = f"{device_id}-{'' if f_cnt is None else f_cnt}-{timestamp or ''}"
    if f_cnt is None or not timestamp:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        material = f"{material}-{canonical}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
