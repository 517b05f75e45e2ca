"""Device registry — identity, thresholds, status, and uptime accounting.

Every read-modify-write on a device is a single conditional UPDATE so that
MQTT ingestion and API requests touching the same device never lose updates.
The open-session predicate is `status == online`: `last_online_at` marks the
start of the current session and `total_uptime_seconds` only grows when that
session is closed.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from airsense.clock import utcnow
from airsense.errors import NotFoundError, PersistenceError, ValidationError
from airsense.models import DEFAULT_THRESHOLDS, Device, DeviceStatus
from airsense.schemas.device import DeviceUptime, UptimeBreakdown

__all__ = [
    "resolve_device",
    "get_device",
    "list_devices",
    "set_status",
    "close_session",
    "get_uptime",
    "update_thresholds",
    "update_metadata",
]

logger = logging.getLogger(__name__)

THRESHOLD_FIELDS = frozenset(DEFAULT_THRESHOLDS)
METADATA_FIELDS = frozenset({"firmware_version", "location", "description"})


async def _find_device(
    session: AsyncSession,
    device_id: str,
    refresh: bool = False,
) -> Device | None:
    query = select(Device).where(Device.device_id == device_id)
    if refresh:
        # Core-style UPDATEs bypass the identity map
        query = query.execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def resolve_device(
    session: AsyncSession,
    device_id: str,
    now: datetime | None = None,
) -> Device:
    """Find a device by external id, creating it with default thresholds if missing."""
    try:
        device = await _find_device(session, device_id)
        if device is not None:
            return device

        now = now or utcnow()
        # INSERT OR IGNORE keeps concurrent first contacts from colliding
        await session.execute(
            sqlite_insert(Device)
            .values(
                device_id=device_id,
                status=DeviceStatus.OFFLINE.value,
                total_uptime_seconds=0,
                created_at=now,
                updated_at=now,
                **DEFAULT_THRESHOLDS,
            )
            .on_conflict_do_nothing(index_elements=["device_id"])
        )
        device = await _find_device(session, device_id)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not resolve device {device_id}") from exc

    logger.info("Registered new device %s", device_id)
    return device


async def get_device(session: AsyncSession, device_id: str) -> Device:
    """Get an existing device, raising NotFoundError if unknown."""
    device = await _find_device(session, device_id)
    if device is None:
        raise NotFoundError(f"Device {device_id} not found")
    return device


async def list_devices(session: AsyncSession) -> list[Device]:
    result = await session.execute(select(Device).order_by(Device.id))
    return list(result.scalars().all())


def _coerce_status(status: str | DeviceStatus) -> DeviceStatus:
    try:
        return DeviceStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in DeviceStatus)
        raise ValidationError(f"Invalid status '{status}' (expected one of: {allowed})") from None


async def _end_session(
    session: AsyncSession,
    device: Device,
    next_status: DeviceStatus,
    now: datetime,
) -> bool:
    """Commit the open session's elapsed time and leave the online state.

    Guarded on the observed `last_online_at` so a concurrent close or a new
    session started in between is never double counted.
    """
    if device.status != DeviceStatus.ONLINE.value or device.last_online_at is None:
        return False

    elapsed = max(0, int((now - device.last_online_at).total_seconds()))
    result = await session.execute(
        update(Device)
        .where(
            Device.id == device.id,
            Device.status == DeviceStatus.ONLINE.value,
            Device.last_online_at == device.last_online_at,
        )
        .values(
            total_uptime_seconds=Device.total_uptime_seconds + elapsed,
            status=next_status.value,
            status_changed_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        logger.info(
            "Device %s session closed after %ss (now %s)",
            device.device_id,
            elapsed,
            next_status.value,
        )
        return True
    return False


async def set_status(
    session: AsyncSession,
    device_id: str,
    status: str | DeviceStatus,
    now: datetime | None = None,
) -> Device:
    """Transition a device's status.

    Going online opens a session (stamping `last_online_at` and, once,
    `first_online_at`) unless one is already open. Leaving online for any
    other state commits the session's uptime first.
    """
    new_status = _coerce_status(status)
    now = now or utcnow()

    try:
        device = await _find_device(session, device_id)
        if device is None:
            raise NotFoundError(f"Device {device_id} not found")

        if new_status is DeviceStatus.ONLINE:
            await session.execute(
                update(Device)
                .where(Device.id == device.id, Device.status != DeviceStatus.ONLINE.value)
                .values(
                    status=DeviceStatus.ONLINE.value,
                    status_changed_at=now,
                    last_online_at=now,
                    first_online_at=func.coalesce(Device.first_online_at, now),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
        elif not await _end_session(session, device, new_status, now):
            await session.execute(
                update(Device)
                .where(Device.id == device.id, Device.status != new_status.value)
                .values(status=new_status.value, status_changed_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )

        return await _find_device(session, device_id, refresh=True)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not update status of {device_id}") from exc


async def close_session(
    session: AsyncSession,
    device_id: str,
    now: datetime | None = None,
) -> Device:
    """Close the open uptime session and mark the device offline.

    A no-op when no session is open, so calling it twice is safe.
    """
    now = now or utcnow()
    try:
        device = await _find_device(session, device_id)
        if device is None:
            raise NotFoundError(f"Device {device_id} not found")
        if not await _end_session(session, device, DeviceStatus.OFFLINE, now):
            return device
        return await _find_device(session, device_id, refresh=True)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not close session of {device_id}") from exc


def _breakdown(total_seconds: int) -> UptimeBreakdown:
    hours = total_seconds // 3600
    return UptimeBreakdown(
        days=hours // 24,
        hours=hours % 24,
        minutes=(total_seconds % 3600) // 60,
        seconds=total_seconds % 60,
    )


async def get_uptime(
    session: AsyncSession,
    device_id: str,
    now: datetime | None = None,
) -> DeviceUptime:
    """Committed uptime plus the elapsed time of the open session. Read-only."""
    device = await get_device(session, device_id)
    now = now or utcnow()

    current = 0
    if device.status == DeviceStatus.ONLINE.value and device.last_online_at is not None:
        current = max(0, int((now - device.last_online_at).total_seconds()))

    total = device.total_uptime_seconds + current
    return DeviceUptime(
        device_id=device.device_id,
        status=device.status,
        last_online_at=device.last_online_at,
        first_online_at=device.first_online_at,
        current_uptime_seconds=current,
        total_uptime_seconds=total,
        uptime_formatted=_breakdown(total),
        firmware_version=device.firmware_version,
        location=device.location,
    )


async def _partial_update(
    session: AsyncSession,
    device_id: str,
    partial: dict[str, Any],
    allowed: frozenset[str],
) -> Device:
    unknown = set(partial) - allowed
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    try:
        if not partial:
            return await get_device(session, device_id)

        result = await session.execute(
            update(Device)
            .where(Device.device_id == device_id)
            .values(**partial, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Device {device_id} not found")
        return await _find_device(session, device_id, refresh=True)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not update device {device_id}") from exc


async def update_thresholds(
    session: AsyncSession,
    device_id: str,
    partial: dict[str, float | None],
) -> Device:
    """Apply only the provided threshold fields. None clears a threshold."""
    return await _partial_update(session, device_id, partial, THRESHOLD_FIELDS)


async def update_metadata(
    session: AsyncSession,
    device_id: str,
    partial: dict[str, str | None],
) -> Device:
    """Apply only the provided firmware/location/description fields."""
    return await _partial_update(session, device_id, partial, METADATA_FIELDS)
