from __future__ import annotations

from typing import Iterable

from datastore.readings_table import build_default_table
from services.ingest import build_default_ingest_service
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    store_path = tmp_path / "readings.json"

    monkeypatch.setenv("READINGS_STORE_PATH", str(store_path))
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("INGEST_REJECT_INVALID", "true")
    monkeypatch.setenv("RETENTION_SWEEP_SECONDS", "60")

    caches = (get_settings, build_default_table, build_default_ingest_service)
    _clear_caches(caches)

    try:
        settings = get_settings()
        service = build_default_ingest_service()

        assert settings.port == 8080
        assert settings.log_level == "DEBUG"
        assert settings.retention_sweep_seconds == 60.0
        assert service.reject_invalid is True
        assert service.table.persistence_path == store_path
    finally:
        _clear_caches(caches)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("READINGS_STORE_PATH", "  ")
    monkeypatch.setenv("PORT", "-1")
    monkeypatch.setenv("INGEST_REJECT_INVALID", "maybe")
    monkeypatch.setenv("RETENTION_SWEEP_SECONDS", "soon")
    get_settings.cache_clear()

    try:
        settings = get_settings()

        assert settings.store_path is None
        assert settings.port == 3000
        assert settings.reject_invalid is False
        assert settings.retention_sweep_seconds == 3600.0
    finally:
        get_settings.cache_clear()
