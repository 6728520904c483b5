"""One-off import of historical uplinks stored as JSONBin bins."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional

import httpx

from cli.config import JsonBinConfig
from services.ingest import IngestService

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
REQUEST_DELAY_SECONDS = 0.05


class JsonBinSource:
    """Reads bins of one JSONBin collection."""

    def __init__(self, config: JsonBinConfig, client: Optional[httpx.Client] = None) -> None:
        self._config = config
        self._client = client or httpx.Client(
            base_url=config.base_url,
            headers={"X-Master-Key": config.api_key},
            timeout=30.0,
        )

    def close(self) -> None:
        self._client.close()

    def list_bin_ids(self) -> List[str]:
        try:
            response = self._client.get(f"/c/{self._config.collection_id}/bins")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Could not list JSONBin collection: %s", exc)
            return []
        data = response.json()
        if isinstance(data, dict):
            bins = data.get("record") or data.get("records") or []
        else:
            bins = data
        return [item["id"] for item in bins if isinstance(item, dict) and item.get("id")]

    def fetch_bin(self, bin_id: str) -> Optional[Any]:
        try:
            response = self._client.get(f"/b/{bin_id}/latest")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Skipping unreadable bin: %s", exc, extra={"bin_id": bin_id})
            return None
        payload = response.json()
        return payload.get("record") if isinstance(payload, dict) else None


@dataclass
class ImportSummary:
    bins: int = 0
    failed_bins: int = 0
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0


def _batches(items: List[str], size: int) -> Iterator[List[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class JsonBinImporter:
    """Replays archived uplink events through the ingest pipeline.

    A bin holds one event or a list of them. Records already stored are
    counted as duplicates, and anything that is not a JSON object is
    skipped. ``StorageError`` aborts the import.
    """

    def __init__(
        self,
        source: JsonBinSource,
        ingest: IngestService,
        batch_size: int = BATCH_SIZE,
        delay_seconds: float = REQUEST_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self.ingest = ingest
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def run(self, progress: Optional[Callable[[int, int], None]] = None) -> ImportSummary:
        summary = ImportSummary()
        bin_ids = self.source.list_bin_ids()
        summary.bins = len(bin_ids)

        processed = 0
        for batch in _batches(bin_ids, self.batch_size):
            records: List[Any] = []
            for bin_id in batch:
                processed += 1
                if progress is not None:
                    progress(processed, summary.bins)
                data = self.source.fetch_bin(bin_id)
                if data is None:
                    summary.failed_bins += 1
                elif isinstance(data, list):
                    records.extend(data)
                else:
                    records.append(data)
                self._sleep(self.delay_seconds)

            inserted, duplicates = self._store(records, summary)
            logger.info(
                "Imported batch",
                extra={"inserted_count": inserted, "duplicate_count": duplicates},
            )
        return summary

    def _store(self, records: List[Any], summary: ImportSummary) -> tuple[int, int]:
        inserted = duplicates = 0
        for record in records:
            if not isinstance(record, dict):
                summary.skipped += 1
                continue
            outcome = self.ingest.ingest(record)
            if outcome.created:
                inserted += 1
            else:
                duplicates += 1
        summary.inserted += inserted
        summary.duplicates += duplicates
        return inserted, duplicates
