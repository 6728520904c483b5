from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the ingester service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_uplink(self, path: Path) -> Dict[str, Any]:
        try:
            payload = json.loads(path.read_text())
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"File {path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise typer.BadParameter(f"File {path} must contain a JSON object.")

        try:
            response = self._client.post("/ttn", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def latest(self, device_id: str) -> Dict[str, Any]:
        return self._get("/api/sensor/latest", {"device_id": device_id}, device_id)

    def readings(
        self,
        device_id: str,
        limit: int,
        skip: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"device_id": device_id, "limit": limit, "skip": skip}
        if start_date:
            params["start_date"] = start_date
        if end_date:
            params["end_date"] = end_date
        return self._get("/api/sensor/readings", params, device_id)

    def statistics(self, device_id: str, period: str) -> Dict[str, Any]:
        return self._get(
            "/api/sensor/statistics", {"device_id": device_id, "period": period}, device_id
        )

    def quality(self, device_id: str, limit: int) -> Dict[str, Any]:
        return self._get("/api/sensor/quality", {"device_id": device_id, "limit": limit}, device_id)

    def _get(self, path: str, params: Dict[str, Any], device_id: str) -> Dict[str, Any]:
        try:
            response = self._client.get(path, params=params)
            if response.status_code == 404:
                raise typer.BadParameter(f"No data for device {device_id}.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
