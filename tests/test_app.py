from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.api import get_ingest_service, get_query_service
from app.main import create_app
from datastore.readings_table import ReadingsTable, StorageError, build_default_table
from services.aggregator import Aggregator
from services.ingest import IngestService, build_default_ingest_service
from services.queries import ReadingQueryService, build_default_query_service
from settings import get_settings


def _iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@pytest.fixture
def table(tmp_path) -> ReadingsTable:
    return ReadingsTable(name="test", persistence_path=tmp_path / "readings.json")


@pytest.fixture
def api_client(table, monkeypatch) -> Iterator[TestClient]:
    def build_test_table(name: str = "test", path: str | None = None) -> ReadingsTable:
        return table

    build_test_table.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_table", build_test_table)
    app = create_app()
    app.dependency_overrides[get_ingest_service] = lambda: IngestService(table=table)
    app.dependency_overrides[get_query_service] = lambda: ReadingQueryService(
        table=table, aggregator=Aggregator()
    )
    with TestClient(app) as client:
        yield client


def _event(make_event, minutes_ago: float, f_cnt: int, **decoded):
    moment = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    payload = {"temperature_celsius": 21.0, "humidity_percent": 50.0}
    payload.update(decoded)
    return make_event(received_at=_iso(moment), f_cnt=f_cnt, decoded_payload=payload)


def test_lifespan_clears_service_caches(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("READINGS_STORE_PATH", str(tmp_path / "readings.json"))
    get_settings.cache_clear()
    try:
        with TestClient(create_app()):
            during = build_default_table()
            assert build_default_ingest_service().table is during
            assert build_default_query_service().table is during

        assert build_default_table() is not during
    finally:
        build_default_ingest_service.cache_clear()
        build_default_query_service.cache_clear()
        build_default_table.cache_clear()
        get_settings.cache_clear()


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").status_code == 200


def test_webhook_accepts_then_suppresses_duplicate(api_client, table, make_event) -> None:
    payload = make_event()

    first = api_client.post("/ttn", json=payload)
    second = api_client.post("/ttn", json=payload)

    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["message"] == "Data saved successfully"
    assert second.status_code == 200
    assert second.json() == {
        "success": True,
        "message": "Duplicate data ignored",
        "unique_id": first.json()["unique_id"],
    }
    assert table.count() == 1


def test_webhook_never_rejects_for_data_quality(api_client, table) -> None:
    response = api_client.post(
        "/ttn",
        json={"uplink_message": {"decoded_payload": {"temperature_celsius": 150}}},
    )

    assert response.status_code == 200
    assert table.find_latest("unknown").temperature_celsius == 150


def test_webhook_accepts_numbers_too_large_for_float(api_client, table, make_event) -> None:
    huge = 10**400
    payload = make_event(decoded_payload={"temperature": huge}, settings={"frequency": str(huge)})

    response = api_client.post("/ttn", json=payload)

    assert response.status_code == 200
    stored = table.find_latest("sensor-01")
    assert stored.temperature_celsius == 0
    assert stored.frequency == 0


def test_webhook_strict_mode_returns_bad_request(api_client, table, make_event) -> None:
    api_client.app.dependency_overrides[get_ingest_service] = lambda: IngestService(
        table=table, reject_invalid=True
    )

    response = api_client.post("/ttn", json=make_event(decoded_payload={"temperature_celsius": 150}))

    assert response.status_code == 400
    assert "temperature_celsius" in response.json()["detail"]
    assert table.count() == 0


def test_webhook_storage_failure_returns_server_error(api_client, make_event) -> None:
    class FailingTable(ReadingsTable):
        def insert(self, reading):
            raise StorageError("unavailable")

    api_client.app.dependency_overrides[get_ingest_service] = lambda: IngestService(
        table=FailingTable(name="broken")
    )

    response = api_client.post("/ttn", json=make_event())

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to store uplink."


def test_webhook_requires_json_object(api_client) -> None:
    assert api_client.post("/ttn", json=[1, 2, 3]).status_code == 422


def test_concurrent_duplicate_deliveries_store_one(api_client, table, make_event) -> None:
    payload = make_event()

    with ThreadPoolExecutor(max_workers=10) as pool:
        responses = list(pool.map(lambda _: api_client.post("/ttn", json=payload), range(50)))

    assert all(response.status_code == 200 for response in responses)
    messages = [response.json()["message"] for response in responses]
    assert messages.count("Data saved successfully") == 1
    assert table.count() == 1


def test_unknown_device_reports_not_found_everywhere(api_client) -> None:
    params = {"device_id": "ghost"}

    assert api_client.get("/api/sensor/latest", params=params).status_code == 404
    assert api_client.get("/api/sensor/statistics", params=params).status_code == 404
    assert api_client.get("/api/sensor/quality", params=params).status_code == 404


def test_latest_and_paginated_readings(api_client, make_event) -> None:
    for index, minutes_ago in enumerate((30, 20, 10)):
        api_client.post("/ttn", json=_event(make_event, minutes_ago, f_cnt=index))

    latest = api_client.get("/api/sensor/latest", params={"device_id": "sensor-01"})
    assert latest.status_code == 200
    assert latest.json()["f_cnt"] == 2

    page = api_client.get(
        "/api/sensor/readings",
        params={"device_id": "sensor-01", "limit": 2, "skip": 1},
    ).json()
    assert page["total"] == 3
    assert page["limit"] == 2
    assert page["skip"] == 1
    assert [row["f_cnt"] for row in page["data"]] == [1, 0]

    start = _iso(datetime.now(timezone.utc) - timedelta(minutes=15))
    ranged = api_client.get(
        "/api/sensor/readings",
        params={"device_id": "sensor-01", "start_date": start},
    ).json()
    assert ranged["total"] == 1


def test_readings_rejects_inverted_range(api_client) -> None:
    response = api_client.get(
        "/api/sensor/readings",
        params={
            "device_id": "sensor-01",
            "start_date": "2024-02-01T00:00:00Z",
            "end_date": "2024-01-01T00:00:00Z",
        },
    )

    assert response.status_code == 400


def test_statistics_over_window(api_client, make_event) -> None:
    for index, temperature in enumerate((20.0, 22.0, 24.0)):
        api_client.post(
            "/ttn",
            json=_event(make_event, 10 + index, f_cnt=index, temperature_celsius=temperature),
        )
    api_client.post("/ttn", json=_event(make_event, 180, f_cnt=99, temperature_celsius=99.0))

    response = api_client.get(
        "/api/sensor/statistics", params={"device_id": "sensor-01", "period": "1h"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    assert body["temperature"] == {"min": 20.0, "max": 24.0, "avg": pytest.approx(22.0)}
    assert body["expected_packets"] == 30
    assert body["success_rate"] == 10.0

    wider = api_client.get("/api/sensor/statistics", params={"device_id": "sensor-01"}).json()
    assert wider["period"] == "24h"
    assert wider["count"] == 4


def test_statistics_rejects_unknown_period(api_client) -> None:
    response = api_client.get(
        "/api/sensor/statistics", params={"device_id": "sensor-01", "period": "2w"}
    )

    assert response.status_code == 400


def test_quality_endpoint(api_client, make_event) -> None:
    for index, rssi in enumerate((-95, -85, -70)):
        event = _event(make_event, 10 - index, f_cnt=index)
        event["uplink_message"]["rx_metadata"][0]["rssi"] = rssi
        api_client.post("/ttn", json=event)

    response = api_client.get("/api/sensor/quality", params={"device_id": "sensor-01", "limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["sample_size"] == 2
    assert body["avg_rssi"] == pytest.approx(-77.5)
    assert body["quality"] == "good"
    assert body["latest_rssi"] == -70
    assert body["distribution"] == {"excellent": 0, "good": 1, "fair": 1, "poor": 0}
