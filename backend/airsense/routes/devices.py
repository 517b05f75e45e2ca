"""Device API routes: registry, status, uptime, thresholds, metadata."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from airsense.database import get_db
from airsense.schemas import DeviceOut, DeviceUptime, MetadataUpdate, StatusUpdate, ThresholdUpdate
from airsense.services import command_service, device_service

router = APIRouter(prefix="/api/devices", tags=["devices"])


@router.get("", response_model=list[DeviceOut])
async def list_devices(session: AsyncSession = Depends(get_db)):
    """Get all known devices."""
    return await device_service.list_devices(session)


@router.get("/{device_id}", response_model=DeviceOut)
async def get_device(device_id: str, session: AsyncSession = Depends(get_db)):
    """Get a device, registering it with default thresholds on first lookup."""
    device = await device_service.resolve_device(session, device_id)
    await session.commit()
    return device


@router.get("/{device_id}/status", response_model=DeviceUptime)
async def get_status(device_id: str, session: AsyncSession = Depends(get_db)) -> DeviceUptime:
    """Get status and uptime, including the currently open session."""
    return await device_service.get_uptime(session, device_id)


@router.put("/{device_id}/status", response_model=DeviceOut)
async def update_status(
    device_id: str,
    body: StatusUpdate,
    session: AsyncSession = Depends(get_db),
):
    device = await device_service.set_status(session, device_id, body.status)
    await session.commit()
    return device


@router.post("/{device_id}/close-session", response_model=DeviceOut)
async def close_session(device_id: str, session: AsyncSession = Depends(get_db)):
    """Commit the open session's uptime and mark the device offline."""
    device = await device_service.close_session(session, device_id)
    await session.commit()
    return device


@router.put("/{device_id}/thresholds", response_model=DeviceOut)
async def update_thresholds(
    device_id: str,
    body: ThresholdUpdate,
    session: AsyncSession = Depends(get_db),
):
    """Store thresholds without notifying the device (see POST /api/mqtt/change-threshold)."""
    values = body.model_dump(exclude_unset=True)
    command_service.validate_thresholds(values)
    device = await device_service.update_thresholds(session, device_id, values)
    await session.commit()
    return device


@router.put("/{device_id}/metadata", response_model=DeviceOut)
async def update_metadata(
    device_id: str,
    body: MetadataUpdate,
    session: AsyncSession = Depends(get_db),
):
    device = await device_service.update_metadata(
        session, device_id, body.model_dump(exclude_unset=True)
    )
    await session.commit()
    return device
