"""Ingestion pipeline — routes inbound MQTT messages by topic.

Data topic:   normalize, store, broadcast, evaluate, notify.
Alert topic:  store any metrics, then raise the device-declared event.
Status topic: status transitions and metadata.

The reading is committed before any notification work starts, so a failing
policy can never cost a stored reading.
"""

import logging
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from airsense.clock import utcnow
from airsense.config import (
    TOPIC_ALARM_OFF,
    TOPIC_ALERT,
    TOPIC_CHANGE_RATE,
    TOPIC_CHANGE_THRESHOLD,
    TOPIC_COMMAND,
    TOPIC_DATA,
    TOPIC_GET_DATA,
    TOPIC_STATUS,
)
from airsense.database import async_session
from airsense.errors import AirSenseError, MalformedPayloadError
from airsense.live import broadcaster as default_broadcaster
from airsense.models import Device, DeviceStatus, Notification, Reading
from airsense.schemas.readings import ReadingPoint
from airsense.services import device_service, notification_service, readings_service
from airsense.services.normalizer import decode_payload, extract_device_id, normalize_reading
from airsense.services.threshold_service import (
    DEVICE_OFFLINE_CATEGORY,
    CandidateEvent,
    evaluate_reading,
    severity_for_event,
)

__all__ = ["process_message", "handle_message", "COMMAND_TOPICS"]

logger = logging.getLogger(__name__)

# Published by us; the wildcard subscription echoes them back
COMMAND_TOPICS = frozenset(
    {TOPIC_GET_DATA, TOPIC_CHANGE_THRESHOLD, TOPIC_ALARM_OFF, TOPIC_CHANGE_RATE, TOPIC_COMMAND}
)


class Broadcaster(Protocol):
    def publish(self, event: str, data: dict[str, Any]) -> None: ...


async def process_message(
    session: AsyncSession,
    topic: str,
    payload: bytes | str,
    broadcaster: Broadcaster | None = None,
    now: datetime | None = None,
) -> None:
    """Handle one inbound message. Raises on malformed payloads and storage errors."""
    if topic in COMMAND_TOPICS:
        return

    handlers = {
        TOPIC_DATA: _handle_data,
        TOPIC_ALERT: _handle_alert,
        TOPIC_STATUS: _handle_status,
    }
    handler = handlers.get(topic)
    if handler is None:
        logger.debug("Ignoring message on unhandled topic %s", topic)
        return

    data = decode_payload(payload)
    device_id = extract_device_id(data)
    await handler(session, device_id, data, broadcaster, now or utcnow())


async def _mark_online(session: AsyncSession, device_id: str, now: datetime) -> Device:
    await device_service.resolve_device(session, device_id, now)
    return await device_service.set_status(session, device_id, DeviceStatus.ONLINE, now)


def _emit_reading(broadcaster: Broadcaster | None, device_id: str, record: Reading) -> None:
    if broadcaster is None:
        return
    broadcaster.publish(
        "reading",
        {
            "deviceId": device_id,
            "data": ReadingPoint.model_validate(record).model_dump(mode="json", by_alias=True),
            "timestamp": record.created_at.isoformat(),
        },
    )


def _emit_notifications(
    broadcaster: Broadcaster | None,
    device_id: str,
    delivered: list[tuple[CandidateEvent, Notification]],
) -> None:
    if broadcaster is None:
        return
    for event, notification in delivered:
        broadcaster.publish(
            "notification",
            {
                **event.to_dict(),
                "deviceId": device_id,
                "notificationId": notification.id,
                "timestamp": notification.created_at.isoformat(),
            },
        )


async def _handle_data(
    session: AsyncSession,
    device_id: str,
    data: dict[str, Any],
    broadcaster: Broadcaster | None,
    now: datetime,
) -> None:
    device = await _mark_online(session, device_id, now)
    reading = normalize_reading(data)
    if reading is None:
        await session.commit()
        logger.warning("No recognized metrics from %s, dropping (keys=%s)", device_id, sorted(data))
        return

    record = await readings_service.append_reading(session, device, reading, now)
    await session.commit()
    logger.info("Stored reading %d for %s", record.id, device_id)
    _emit_reading(broadcaster, device_id, record)

    events = evaluate_reading(device, reading)
    delivered = await notification_service.dispatch_candidates(
        session, device, events, reading_id=record.id, now=now
    )
    _emit_notifications(broadcaster, device_id, delivered)


async def _handle_alert(
    session: AsyncSession,
    device_id: str,
    data: dict[str, Any],
    broadcaster: Broadcaster | None,
    now: datetime,
) -> None:
    device = await _mark_online(session, device_id, now)

    record = None
    reading = normalize_reading(data)
    if reading is not None:
        record = await readings_service.append_reading(session, device, reading, now)
    await session.commit()
    if record is not None:
        _emit_reading(broadcaster, device_id, record)

    event_type = str(data.get("event") or "alert")
    event = CandidateEvent(
        category=event_type,
        message=str(data.get("message") or f"Alert: {event_type}"),
        severity=severity_for_event(event_type),
    )
    logger.info("Device %s raised %s", device_id, event_type)

    delivered = await notification_service.dispatch_candidates(
        session, device, [event], reading_id=record.id if record else None, now=now
    )
    _emit_notifications(broadcaster, device_id, delivered)


async def _handle_status(
    session: AsyncSession,
    device_id: str,
    data: dict[str, Any],
    broadcaster: Broadcaster | None,
    now: datetime,
) -> None:
    status = str(data.get("status") or DeviceStatus.ONLINE.value)
    device = await device_service.resolve_device(session, device_id, now)
    was_offline = device.status == DeviceStatus.OFFLINE.value

    device = await device_service.set_status(session, device_id, status, now)

    metadata = {
        field: data[key]
        for key, field in (("firmwareVersion", "firmware_version"), ("location", "location"))
        if data.get(key)
    }
    if metadata:
        device = await device_service.update_metadata(session, device_id, metadata)
    await session.commit()
    logger.info("Device %s status -> %s", device_id, device.status)

    if broadcaster is not None:
        broadcaster.publish(
            "status", {"deviceId": device_id, "status": device.status, "timestamp": now.isoformat()}
        )

    if status == DeviceStatus.OFFLINE.value and not was_offline:
        event = CandidateEvent(
            category=DEVICE_OFFLINE_CATEGORY,
            message=f"Device {device_id} went offline",
            severity="warning",
        )
        delivered = await notification_service.dispatch_candidates(session, device, [event], now=now)
        _emit_notifications(broadcaster, device_id, delivered)


async def handle_message(
    topic: str,
    payload: bytes,
    broadcaster: Broadcaster | None = default_broadcaster,
    session_factory: async_sessionmaker = async_session,
) -> None:
    """Transport entry point. Logs every failure so one bad message never stops ingestion."""
    try:
        async with session_factory() as session:
            await process_message(session, topic, payload, broadcaster)
            await session.commit()
    except MalformedPayloadError as exc:
        logger.warning("Dropping malformed message on %s: %s", topic, exc)
    except AirSenseError as exc:
        logger.error("Failed to process message on %s: %s", topic, exc)
    except Exception:
        logger.exception("Unexpected error processing message on %s", topic)
