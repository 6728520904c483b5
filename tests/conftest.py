from __future__ import annotations

import copy
from typing import Any, Callable, Dict

import pytest

_BASE_EVENT: Dict[str, Any] = {
    "end_device_ids": {
        "device_id": "sensor-01",
        "application_ids": {"application_id": "greenhouse"},
        "dev_eui": "70B3D57ED005A1B2",
    },
    "received_at": "2024-05-01T12:00:00.987654321Z",
    "uplink_message": {
        "f_port": 2,
        "f_cnt": 41,
        "decoded_payload": {
            "temperature_celsius": 21.5,
            "humidity_percent": 55.0,
            "packet_counter": 41,
        },
        "rx_metadata": [
            {
                "gateway_ids": {"gateway_id": "gw-rooftop", "eui": "B827EBFFFE000001"},
                "rssi": -72,
                "snr": 9.25,
                "location": {"latitude": -23.55, "longitude": -46.63, "altitude": 760},
            }
        ],
        "settings": {
            "data_rate": {"lora": {"bandwidth": 125000, "spreading_factor": 7}},
            "frequency": "916800000",
        },
        "received_at": "2024-05-01T12:00:00.123456789Z",
    },
}


def build_event(**uplink_overrides: Any) -> Dict[str, Any]:
    event = copy.deepcopy(_BASE_EVENT)
    event["uplink_message"].update(uplink_overrides)
    return event


@pytest.fixture
def make_event() -> Callable[..., Dict[str, Any]]:
    """Factory for webhook bodies; keyword arguments override uplink fields."""
    return build_event
