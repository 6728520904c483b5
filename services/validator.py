"""Non-blocking structural and physical-range checks for uplink readings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from models.records import SensorReading
from models.uplink import UplinkEvent
from services.normalizer import parse_timestamp

logger = logging.getLogger(__name__)

TEMPERATURE_RANGE_CELSIUS = (-40.0, 80.0)
HUMIDITY_RANGE_PERCENT = (0.0, 100.0)


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    reason: str


@dataclass
class ValidationReport:
    structural: List[ValidationIssue] = field(default_factory=list)
    physical: List[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.structural and not self.physical

    def reasons(self) -> List[str]:
        return [f"{issue.field}: {issue.reason}" for issue in self.structural + self.physical]


def check_structure(event: UplinkEvent) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    if event.end_device_ids is None:
        issues.append(ValidationIssue("end_device_ids", "missing device identity block"))
    elif not (event.end_device_ids.device_id or "").strip():
        issues.append(ValidationIssue("end_device_ids.device_id", "missing device_id"))

    if event.uplink_message is None:
        issues.append(ValidationIssue("uplink_message", "missing uplink block"))
    elif not event.uplink_message.received_at:
        issues.append(ValidationIssue("uplink_message.received_at", "missing timestamp"))
    else:
        try:
            parse_timestamp(event.uplink_message.received_at)
        except ValueError:
            issues.append(ValidationIssue("uplink_message.received_at", "invalid timestamp"))

    return issues


def check_ranges(reading: SensorReading) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    low, high = TEMPERATURE_RANGE_CELSIUS
    if not low <= reading.temperature_celsius <= high:
        issues.append(
            ValidationIssue(
                "temperature_celsius",
                f"{reading.temperature_celsius} outside [{low}, {high}]",
            )
        )
    low, high = HUMIDITY_RANGE_PERCENT
    if not low <= reading.humidity_percent <= high:
        issues.append(
            ValidationIssue(
                "humidity_percent",
                f"{reading.humidity_percent} outside [{low}, {high}]",
            )
        )
    return issues


def validate(event: UplinkEvent, reading: SensorReading) -> ValidationReport:
    """Run both checks and log every issue; never raises."""
    report = ValidationReport(
        structural=check_structure(event),
        physical=check_ranges(reading),
    )
    for issue in report.structural:
        logger.warning(
            "Structural problem in uplink event",
            extra={"device_id": reading.device_id, "field": issue.field, "reason": issue.reason},
        )
    for issue in report.physical:
        logger.warning(
            "Reading outside physical range, storing unchanged",
            extra={"device_id": reading.device_id, "field": issue.field, "reason": issue.reason},
        )
    return report
