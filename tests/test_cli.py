from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.importer import ImportSummary


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.sent: List[Path] = []
        self.calls: List[tuple] = []
        self.closed = False

    def send_uplink(self, path: Path) -> Dict[str, Any]:
        self.sent.append(path)
        return {"success": True, "message": "Data saved successfully", "unique_id": "abc123"}

    def latest(self, device_id: str) -> Dict[str, Any]:
        self.calls.append(("latest", device_id))
        return {"device_id": device_id, "temperature_celsius": 21.5, "rssi": -72}

    def readings(self, device_id, limit, skip, start_date=None, end_date=None) -> Dict[str, Any]:
        self.calls.append(("readings", device_id, limit, skip, start_date, end_date))
        return {
            "total": 1,
            "limit": limit,
            "skip": skip,
            "data": [{"received_at": "2024-05-01T12:00:00Z", "temperature_celsius": 21.5}],
        }

    def statistics(self, device_id: str, period: str) -> Dict[str, Any]:
        self.calls.append(("statistics", device_id, period))
        return {
            "device_id": device_id,
            "period": period,
            "count": 3,
            "temperature": {"min": 20.0, "max": 24.0, "avg": 22.0},
            "success_rate": 10.0,
        }

    def quality(self, device_id: str, limit: int) -> Dict[str, Any]:
        self.calls.append(("quality", device_id, limit))
        return {
            "device_id": device_id,
            "quality": "good",
            "avg_rssi": -75.0,
            "distribution": {"excellent": 0, "good": 2, "fair": 0, "poor": 0},
        }

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return client


def test_send_replays_uplink(stub: StubClient, runner: CliRunner, tmp_path) -> None:
    event_path = tmp_path / "uplink.json"
    event_path.write_text(json.dumps({"end_device_ids": {"device_id": "sensor-01"}}))

    result = runner.invoke(app, ["--base-url", "http://ingester:3000/", "send", str(event_path)])

    assert result.exit_code == 0
    assert "Data saved successfully" in result.stdout
    assert stub.sent == [event_path]
    assert stub.config.base_url == "http://ingester:3000"
    assert stub.closed is True


def test_read_commands(stub: StubClient, runner: CliRunner) -> None:
    latest = runner.invoke(app, ["latest", "sensor-01"])
    readings = runner.invoke(app, ["readings", "sensor-01", "--limit", "5", "--start", "2024-05-01"])
    stats = runner.invoke(app, ["stats", "sensor-01", "--period", "7d"])
    quality = runner.invoke(app, ["quality", "sensor-01"])

    assert all(r.exit_code == 0 for r in (latest, readings, stats, quality))
    assert "temperature_celsius: 21.5" in latest.stdout
    assert "total: 1" in readings.stdout
    assert "Statistics (7d)" in stats.stdout
    assert "quality: good" in quality.stdout
    assert stub.calls == [
        ("latest", "sensor-01"),
        ("readings", "sensor-01", 5, 0, "2024-05-01", None),
        ("statistics", "sensor-01", "7d"),
        ("quality", "sensor-01", 100),
    ]


def test_import_requires_credentials(stub: StubClient, runner: CliRunner, monkeypatch) -> None:
    monkeypatch.delenv("JSONBIN_API_KEY", raising=False)
    monkeypatch.delenv("JSONBIN_COLLECTION_ID", raising=False)

    result = runner.invoke(app, ["import-jsonbin"])

    assert result.exit_code != 0


def test_import_reports_summary(stub: StubClient, runner: CliRunner, monkeypatch, tmp_path) -> None:
    class FakeImporter:
        def __init__(self, source, ingest) -> None:
            self.ingest = ingest

        def run(self, progress=None) -> ImportSummary:
            if progress is not None:
                progress(1, 1)
            return ImportSummary(bins=1, inserted=4, duplicates=2)

    created: List[FakeImporter] = []

    def factory(**kwargs):
        importer = FakeImporter(**kwargs)
        created.append(importer)
        return importer

    monkeypatch.setattr("cli.app.JsonBinImporter", factory)
    store = tmp_path / "imported.json"

    result = runner.invoke(
        app,
        [
            "import-jsonbin",
            "--api-key",
            "secret",
            "--collection",
            "col-1",
            "--store-path",
            str(store),
        ],
    )

    assert result.exit_code == 0
    assert "Processing bin 1/1" in result.stdout
    assert "4 inserted, 2 duplicates" in result.stdout
    assert created[0].ingest.table.persistence_path == store
