"""Telemetry normalizer — maps firmware payload variants onto canonical metrics.

Firmware revisions renamed fields over time (particulate as `dust` or
`pm25`, gases as `mq135`/`MQ135`, ...). Each canonical metric owns an
ordered alias list in the metric registry; the first alias that is present
and numeric wins.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any

from airsense.config import DEFAULT_DEVICE_ID
from airsense.errors import MalformedPayloadError
from airsense.services._registry import METRIC_REGISTRY

__all__ = [
    "NormalizedReading",
    "decode_payload",
    "normalize_reading",
    "extract_device_id",
    "coerce_number",
]


@dataclass(frozen=True)
class NormalizedReading:
    """Canonical metric values. A metric missing from `values` is absent."""

    values: dict[str, float] = field(default_factory=dict)

    def get(self, metric: str) -> float | None:
        return self.values.get(metric)

    def as_columns(self) -> dict[str, float | None]:
        """All canonical metrics, absent ones as None."""
        return {name: self.values.get(name) for name in METRIC_REGISTRY}


def decode_payload(raw: bytes | str) -> dict[str, Any]:
    """Decode a raw MQTT body into a JSON object."""
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayloadError(f"Payload is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedPayloadError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def coerce_number(value: Any) -> float | None:
    """Convert a payload value to float; anything non-numeric is absent."""
    # bool is an int subclass but never a measurement
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            number = float(stripped)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_reading(data: dict[str, Any]) -> NormalizedReading | None:
    """Resolve every canonical metric through its alias list.

    Returns None when the payload carries no recognized numeric field
    (heartbeats and keepalives); the caller should drop the message.
    """
    values: dict[str, float] = {}
    for name, config in METRIC_REGISTRY.items():
        for alias in config.aliases:
            if alias not in data:
                continue
            number = coerce_number(data[alias])
            if number is not None:
                values[name] = number
                break

    if not values:
        return None
    return NormalizedReading(values=values)


def extract_device_id(data: dict[str, Any]) -> str:
    """Device id from the payload, falling back to the configured default."""
    for key in ("deviceId", "device_id"):
        value = data.get(key)
        if value is None or isinstance(value, bool):
            continue
        text = str(value).strip()
        if text:
            return text
    return DEFAULT_DEVICE_ID
