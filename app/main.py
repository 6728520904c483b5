from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI

from app.api import router
from datastore.readings_table import build_default_table
from logging_config import configure_logging
from services.ingest import build_default_ingest_service
from services.queries import build_default_query_service
from services.retention import RetentionReaper
from settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    table = build_default_table()
    reaper = RetentionReaper(table, interval_seconds=get_settings().retention_sweep_seconds)
    reaper.start()
    try:
        yield
    finally:
        reaper.stop()
        build_default_ingest_service.cache_clear()
        build_default_query_service.cache_clear()
        build_default_table.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="LoRaWAN Uplink Ingester",
        description="Webhook ingestion and windowed aggregation for LoRaWAN sensor uplinks.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
