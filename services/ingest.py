"""Write path for webhook uplink deliveries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, List, Optional

from datastore.readings_table import ReadingsTable, build_default_table
from models.records import SensorReading
from models.uplink import UplinkEvent
from services.fingerprint import fingerprint
from services.normalizer import normalize
from services.validator import validate
from settings import get_settings

logger = logging.getLogger(__name__)


class InvalidEventError(ValueError):
    """Raised in strict mode when an event fails validation."""

    def __init__(self, reasons: List[str]) -> None:
        super().__init__("; ".join(reasons))
        self.reasons = reasons


@dataclass(frozen=True)
class IngestOutcome:
    unique_id: str
    created: bool
    reading: SensorReading


class IngestService:
    """Normalizes, validates, fingerprints and stores uplink events.

    In tolerant mode (the default) validation problems are only logged.
    With ``reject_invalid`` set they raise ``InvalidEventError`` and
    nothing is stored.
    """

    def __init__(
        self,
        table: ReadingsTable,
        reject_invalid: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.table = table
        self.reject_invalid = reject_invalid
        self._clock = clock

    def ingest(self, payload: dict[str, Any]) -> IngestOutcome:
        event = UplinkEvent.from_payload(payload)
        draft = normalize(event, payload, created_at=self._clock())

        report = validate(event, draft)
        if self.reject_invalid and not report.ok:
            raise InvalidEventError(report.reasons())

        unique_id = fingerprint(event, payload)
        reading = draft.model_copy(update={"unique_id": unique_id})
        context = {"device_id": reading.device_id, "unique_id": unique_id, "f_cnt": reading.f_cnt}

        # Advisory only; the table's unique index decides.
        if self.table.exists(unique_id):
            logger.info("Duplicate uplink ignored", extra=context)
            return IngestOutcome(unique_id=unique_id, created=False, reading=reading)

        created = self.table.insert(reading)
        if created:
            logger.info("Uplink stored", extra=context)
        else:
            logger.info("Duplicate uplink lost insert race", extra=context)
        return IngestOutcome(unique_id=unique_id, created=created, reading=reading)


@lru_cache
def build_default_ingest_service(reject_invalid: Optional[bool] = None) -> IngestService:
    settings = get_settings()
    strict = settings.reject_invalid if reject_invalid is None else reject_invalid
    return IngestService(table=build_default_table(), reject_invalid=strict)
