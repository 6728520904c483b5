"""Optional-field view of an upstream uplink webhook event.

Network-server releases add, rename and drop fields over time, so every
field here is optional and a leaf of the wrong type is read as absent
instead of failing the whole event.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field


def _dict_or_none(value: Any) -> Any:
    return value if isinstance(value, dict) else None


def _dicts_only(value: Any) -> list[Any]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _str_or_none(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        try:
            return str(value)
        except ValueError:
            return None
    return None


def _float_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    try:
        parsed = float(value)
    except OverflowError:
        return None
    return parsed if math.isfinite(parsed) else None


def _int_or_none(value: Any) -> Optional[int]:
    parsed = _float_or_none(value)
    if parsed is None or not parsed.is_integer():
        return None
    return int(parsed)


LenientStr = Annotated[Optional[str], BeforeValidator(_str_or_none)]
LenientFloat = Annotated[Optional[float], BeforeValidator(_float_or_none)]
LenientInt = Annotated[Optional[int], BeforeValidator(_int_or_none)]


class _UpstreamModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ApplicationIds(_UpstreamModel):
    application_id: LenientStr = None


class EndDeviceIds(_UpstreamModel):
    device_id: LenientStr = None
    dev_eui: LenientStr = None
    application_ids: Annotated[Optional[ApplicationIds], BeforeValidator(_dict_or_none)] = None


class DecodedPayload(_UpstreamModel):
    """Decoder output; older device firmware used the short key names."""

    temperature_celsius: LenientFloat = Field(
        default=None,
        validation_alias=AliasChoices("temperature_celsius", "temperature"),
    )
    humidity_percent: LenientFloat = Field(
        default=None,
        validation_alias=AliasChoices("humidity_percent", "humidity"),
    )
    packet_counter: LenientInt = Field(
        default=None,
        validation_alias=AliasChoices("packet_counter", "counter"),
    )


class GatewayIds(_UpstreamModel):
    gateway_id: LenientStr = None
    eui: LenientStr = None


class Location(_UpstreamModel):
    latitude: LenientFloat = None
    longitude: LenientFloat = None
    altitude: LenientFloat = None


class RxMetadata(_UpstreamModel):
    gateway_ids: Annotated[Optional[GatewayIds], BeforeValidator(_dict_or_none)] = None
    rssi: LenientFloat = None
    snr: LenientFloat = None
    location: Annotated[Optional[Location], BeforeValidator(_dict_or_none)] = None


class LoraDataRate(_UpstreamModel):
    spreading_factor: LenientInt = None
    bandwidth: LenientInt = None


class DataRate(_UpstreamModel):
    lora: Annotated[Optional[LoraDataRate], BeforeValidator(_dict_or_none)] = None


class TxSettings(_UpstreamModel):
    data_rate: Annotated[Optional[DataRate], BeforeValidator(_dict_or_none)] = None
    frequency: LenientStr = None


class UplinkMessage(_UpstreamModel):
    f_port: LenientInt = None
    f_cnt: LenientInt = None
    received_at: LenientStr = None
    decoded_payload: Annotated[Optional[DecodedPayload], BeforeValidator(_dict_or_none)] = None
    rx_metadata: Annotated[List[RxMetadata], BeforeValidator(_dicts_only)] = Field(
        default_factory=list
    )
    settings: Annotated[Optional[TxSettings], BeforeValidator(_dict_or_none)] = None


class UplinkEvent(_UpstreamModel):
    """Top-level webhook body.

    ``unique_id`` is an optional caller-supplied idempotency token.
    """

    end_device_ids: Annotated[Optional[EndDeviceIds], BeforeValidator(_dict_or_none)] = None
    uplink_message: Annotated[Optional[UplinkMessage], BeforeValidator(_dict_or_none)] = None
    received_at: LenientStr = None
    unique_id: LenientStr = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "UplinkEvent":
        return cls.model_validate(payload)
