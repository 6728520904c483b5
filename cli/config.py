from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_JSONBIN_URL = "https://api.jsonbin.io/v3"
DEFAULT_TIMEOUT = 30.0

_BASE_URL_ENV = "API_BASE_URL"
_TIMEOUT_ENV = "CLI_HTTP_TIMEOUT"
_JSONBIN_URL_ENV = "JSONBIN_BASE_URL"
_JSONBIN_KEY_ENV = "JSONBIN_API_KEY"
_JSONBIN_COLLECTION_ENV = "JSONBIN_COLLECTION_ID"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class JsonBinConfig:
    api_key: str
    collection_id: str
    base_url: str = DEFAULT_JSONBIN_URL


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    if timeout is None:
        timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    return CLIConfig(base_url=url.rstrip("/"), timeout=timeout)


def load_jsonbin_config(
    api_key: Optional[str] = None,
    collection_id: Optional[str] = None,
) -> JsonBinConfig:
    """Resolve JSONBin credentials; raises ``ValueError`` when one is missing."""
    key = api_key or os.getenv(_JSONBIN_KEY_ENV)
    collection = collection_id or os.getenv(_JSONBIN_COLLECTION_ENV)
    if not key:
        raise ValueError(f"JSONBin API key missing; pass --api-key or set {_JSONBIN_KEY_ENV}.")
    if not collection:
        raise ValueError(
            f"JSONBin collection missing; pass --collection or set {_JSONBIN_COLLECTION_ENV}."
        )
    url = os.getenv(_JSONBIN_URL_ENV) or DEFAULT_JSONBIN_URL
    return JsonBinConfig(api_key=key, collection_id=collection, base_url=url.rstrip("/"))
