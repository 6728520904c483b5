from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

_READING_FIELDS = (
    "device_id",
    "received_at",
    "temperature_celsius",
    "humidity_percent",
    "rssi",
    "snr",
    "f_cnt",
    "gateway_id",
)


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_ingest(payload: Dict[str, Any]) -> None:
    color = typer.colors.GREEN if payload.get("success") else typer.colors.RED
    typer.secho(f"{payload.get('message')} (unique_id={payload.get('unique_id')})", fg=color)


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Reading")
    echo_key_values((key, payload.get(key)) for key in _READING_FIELDS)


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading("Readings")
    echo_key_values(
        [
            ("total", payload.get("total")),
            ("limit", payload.get("limit")),
            ("skip", payload.get("skip")),
        ]
    )
    rows = payload.get("data") or []
    if not rows:
        typer.echo("No readings in range.")
        return
    for row in rows:
        typer.echo(
            f"  - {row.get('received_at')}: "
            f"{row.get('temperature_celsius')} C, {row.get('humidity_percent')} %, "
            f"rssi {row.get('rssi')}"
        )


def render_statistics(payload: Dict[str, Any]) -> None:
    echo_heading(f"Statistics ({payload.get('period')})")
    echo_key_values(
        [
            ("device_id", payload.get("device_id")),
            ("start", payload.get("start")),
            ("end", payload.get("end")),
            ("count", payload.get("count")),
            ("expected_packets", payload.get("expected_packets")),
            ("success_rate", payload.get("success_rate")),
        ]
    )
    for metric in ("temperature", "humidity", "rssi", "snr"):
        values = payload.get(metric) or {}
        typer.echo(
            f"  - {metric}: min={values.get('min')} max={values.get('max')} avg={values.get('avg')}"
        )


def render_quality(payload: Dict[str, Any]) -> None:
    echo_heading("Signal Quality")
    echo_key_values(
        [
            ("device_id", payload.get("device_id")),
            ("quality", payload.get("quality")),
            ("avg_rssi", payload.get("avg_rssi")),
            ("avg_snr", payload.get("avg_snr")),
            ("latest_rssi", payload.get("latest_rssi")),
            ("sample_size", payload.get("sample_size")),
        ]
    )
    distribution = payload.get("distribution") or {}
    if distribution:
        typer.echo("distribution:")
        for band, count in distribution.items():
            typer.echo(f"  - {band}: {count}")
