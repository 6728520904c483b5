"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from app.schemas import (
    IngestResponse,
    MetricStats,
    QualityResponse,
    ReadingsPage,
    StatisticsResponse,
)
from datastore.readings_table import StorageError
from models.records import SensorReading
from services.aggregator import DEFAULT_PERIOD, MetricSummary
from services.ingest import IngestService, InvalidEventError, build_default_ingest_service
from services.queries import ReadingQueryService, build_default_query_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_ingest_service() -> IngestService:
    return build_default_ingest_service()


def get_query_service() -> ReadingQueryService:
    return build_default_query_service()


def _metric(summary: MetricSummary) -> MetricStats:
    return MetricStats(min=summary.min_value, max=summary.max_value, avg=summary.mean_value)


@router.post(
    "/ttn",
    response_model=IngestResponse,
    summary="Webhook receiver for network server uplink events.",
)
def receive_uplink(
    payload: Dict[str, Any] = Body(..., description="Uplink event as delivered by the network server."),
    service: IngestService = Depends(get_ingest_service),
) -> IngestResponse:
    try:
        outcome = service.ingest(payload)
    except InvalidEventError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StorageError as exc:
        logger.error("Failed to store uplink: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store uplink.",
        ) from exc

    message = "Data saved successfully" if outcome.created else "Duplicate data ignored"
    return IngestResponse(success=True, message=message, unique_id=outcome.unique_id)


@router.get(
    "/api/sensor/latest",
    response_model=SensorReading,
    summary="Most recent reading for a device.",
)
def latest_reading(
    device_id: str = Query(..., min_length=1),
    service: ReadingQueryService = Depends(get_query_service),
) -> SensorReading:
    try:
        return service.latest(device_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc


@router.get(
    "/api/sensor/readings",
    response_model=ReadingsPage,
    summary="Paginated readings for a device, newest first.",
)
def list_readings(
    device_id: str = Query(..., min_length=1),
    limit: int = Query(100, ge=1, le=1000),
    skip: int = Query(0, ge=0),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    service: ReadingQueryService = Depends(get_query_service),
) -> ReadingsPage:
    try:
        data, total = service.readings(
            device_id, limit=limit, skip=skip, start=start_date, end=end_date
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return ReadingsPage(total=total, limit=limit, skip=skip, data=data)


@router.get(
    "/api/sensor/statistics",
    response_model=StatisticsResponse,
    summary="Windowed statistics for a device.",
)
def reading_statistics(
    device_id: str = Query(..., min_length=1),
    period: str = Query(DEFAULT_PERIOD, description="One of 1h, 24h, 7d, 30d."),
    service: ReadingQueryService = Depends(get_query_service),
) -> StatisticsResponse:
    try:
        summary, start, end = service.statistics(device_id, period)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc
    return StatisticsResponse(
        device_id=device_id,
        period=period,
        start=start,
        end=end,
        count=summary.count,
        temperature=_metric(summary.temperature),
        humidity=_metric(summary.humidity),
        rssi=_metric(summary.rssi),
        snr=_metric(summary.snr),
        expected_packets=summary.expected_packets,
        success_rate=summary.success_rate,
    )


@router.get(
    "/api/sensor/quality",
    response_model=QualityResponse,
    summary="Signal quality classification over recent readings.",
)
def signal_quality(
    device_id: str = Query(..., min_length=1),
    limit: int = Query(100, ge=1, le=1000),
    service: ReadingQueryService = Depends(get_query_service),
) -> QualityResponse:
    try:
        summary = service.quality(device_id, limit=limit)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc
    return QualityResponse(
        device_id=device_id,
        sample_size=summary.sample_size,
        avg_rssi=summary.mean_rssi,
        avg_snr=summary.mean_snr,
        quality=summary.quality,
        latest_rssi=summary.latest_rssi,
        distribution=summary.distribution,
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
