"""Command service layer — publishes control messages to devices.

Publishing is fire-and-forget: a returned CommandResult means the message
was handed to the MQTT client, not that the device received it.
"""

import json
import logging
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from airsense.clock import utcnow
from airsense.config import (
    PUBLISH_INTERVAL_MAX_SECONDS,
    PUBLISH_INTERVAL_MIN_SECONDS,
    TOPIC_ALARM_OFF,
    TOPIC_CHANGE_RATE,
    TOPIC_CHANGE_THRESHOLD,
    TOPIC_COMMAND,
    TOPIC_GET_DATA,
)
from airsense.errors import PartialDispatchError, TransportUnavailableError, ValidationError
from airsense.models import Device
from airsense.schemas.commands import CommandResult
from airsense.services import device_service

__all__ = [
    "CommandTransport",
    "request_data",
    "validate_thresholds",
    "set_thresholds",
    "silence_alarm",
    "set_publish_interval",
    "send_custom_command",
]

logger = logging.getLogger(__name__)

# Firmware key for each threshold field
THRESHOLD_PAYLOAD_KEYS = {
    "mq135_threshold": "THRESHOLD34",
    "mq2_threshold": "THRESHOLD35",
    "humidity_threshold": "THRESHOLD_HUMD",
    "temperature_threshold": "THRESHOLD_TEMP",
    "pm25_threshold": "THRESHOLD_PM25",
}

# Inclusive (low, high) per threshold field; None means unbounded
THRESHOLD_RANGES: dict[str, tuple[float, float | None]] = {
    "mq135_threshold": (0, None),
    "mq2_threshold": (0, None),
    "pm25_threshold": (0, None),
    "humidity_threshold": (0, 100),
    "temperature_threshold": (-50, 100),
}


class CommandTransport(Protocol):
    @property
    def is_connected(self) -> bool: ...

    def publish(self, topic: str, payload: bytes) -> None: ...


def _require_connected(transport: CommandTransport | None) -> CommandTransport:
    if transport is None or not transport.is_connected:
        raise TransportUnavailableError("MQTT broker is not connected")
    return transport


def _timestamp(now: datetime | None = None) -> str:
    return (now or utcnow()).isoformat(timespec="milliseconds") + "Z"


def _publish(
    transport: CommandTransport,
    topic: str,
    device_id: str,
    fields: dict[str, Any],
) -> CommandResult:
    payload = {"deviceId": device_id, **fields, "timestamp": _timestamp()}
    transport.publish(topic, json.dumps(payload).encode("utf-8"))
    logger.info("[MQTT] Published %s to %s", fields.get("command", topic), device_id)
    return CommandResult(device_id=device_id, topic=topic, payload=payload)


def request_data(transport: CommandTransport | None, device_id: str) -> CommandResult:
    """Ask a device to publish a reading now."""
    return _publish(_require_connected(transport), TOPIC_GET_DATA, device_id, {"command": "GET_DATA"})


def validate_thresholds(values: dict[str, float | None]) -> None:
    """Raise ValidationError for unknown fields or out-of-range values."""
    unknown = set(values) - set(THRESHOLD_RANGES)
    if unknown:
        raise ValidationError(f"Unknown threshold fields: {', '.join(sorted(unknown))}")

    for name, value in values.items():
        if value is None:
            continue
        low, high = THRESHOLD_RANGES[name]
        if value < low or (high is not None and value > high):
            bound = f">= {low:g}" if high is None else f"between {low:g} and {high:g}"
            raise ValidationError(f"{name} must be {bound} (got {value:g})")


async def set_thresholds(
    session: AsyncSession,
    transport: CommandTransport | None,
    device_id: str,
    values: dict[str, float | None],
) -> tuple[Device, CommandResult]:
    """Validate, persist, then publish new thresholds.

    If publishing fails after the thresholds were stored, PartialDispatchError
    carries the updated device. Stored thresholds are not rolled back.
    """
    if not values:
        raise ValidationError("At least one threshold is required")
    validate_thresholds(values)
    _require_connected(transport)

    await device_service.resolve_device(session, device_id)
    device = await device_service.update_thresholds(session, device_id, values)

    fields = {THRESHOLD_PAYLOAD_KEYS[name]: value for name, value in values.items()}
    fields["command"] = "CHANGE_THRESHOLD"
    try:
        result = _publish(transport, TOPIC_CHANGE_THRESHOLD, device_id, fields)
    except TransportUnavailableError as exc:
        logger.warning("Thresholds for %s stored but not published: %s", device_id, exc)
        raise PartialDispatchError(
            f"Thresholds stored for {device_id} but not sent to the device: {exc}",
            device=device,
        ) from exc
    return device, result


def silence_alarm(transport: CommandTransport | None, device_id: str) -> CommandResult:
    return _publish(_require_connected(transport), TOPIC_ALARM_OFF, device_id, {"command": "ALARM_OFF"})


def set_publish_interval(
    transport: CommandTransport | None,
    device_id: str,
    seconds: int,
) -> CommandResult:
    """Change how often a device publishes readings."""
    if not PUBLISH_INTERVAL_MIN_SECONDS <= seconds <= PUBLISH_INTERVAL_MAX_SECONDS:
        raise ValidationError(
            f"Publish interval must be between {PUBLISH_INTERVAL_MIN_SECONDS} "
            f"and {PUBLISH_INTERVAL_MAX_SECONDS} seconds (got {seconds})"
        )
    return _publish(
        _require_connected(transport),
        TOPIC_CHANGE_RATE,
        device_id,
        {"command": "CHANGE_RATE", "publish_ms": seconds * 1000},
    )


def send_custom_command(
    transport: CommandTransport | None,
    device_id: str,
    command: str,
    params: dict[str, Any] | None = None,
) -> CommandResult:
    if not command:
        raise ValidationError("command is required")
    return _publish(
        _require_connected(transport),
        TOPIC_COMMAND,
        device_id,
        {"command": command, "params": params or {}},
    )
