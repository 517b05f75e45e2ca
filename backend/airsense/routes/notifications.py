"""Notification API routes: listing, read state, settings, cleanup."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from airsense.clock import to_naive_utc
from airsense.database import get_db
from airsense.schemas import (
    NotificationCreate,
    NotificationListResponse,
    NotificationOut,
    NotificationSettingsOut,
    NotificationSettingsUpdate,
    NotificationStats,
    ToggleRequest,
)
from airsense.schemas.notification import SeverityLiteral
from airsense.services import device_service, notification_service
from airsense.services.threshold_service import CandidateEvent

DEFAULT_LIMIT = 50
MAX_LIMIT = 500

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/{device_id}", response_model=NotificationListResponse)
async def list_notifications(
    device_id: str,
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Max notifications to return"),
    severity: SeverityLiteral | None = Query(None, description="Filter by severity"),
    is_read: bool | None = Query(None, alias="isRead", description="Filter by read state"),
    category: str | None = Query(None, description="Filter by category"),
    start: datetime | None = Query(None, description="Start of time range (ISO format)"),
    end: datetime | None = Query(None, description="End of time range (ISO format)"),
    session: AsyncSession = Depends(get_db),
) -> NotificationListResponse:
    """Get notifications for a device, newest first."""
    device = await device_service.get_device(session, device_id)
    notifications = await notification_service.list_notifications(
        session,
        device,
        limit=limit,
        severity=severity,
        is_read=is_read,
        category=category,
        start=to_naive_utc(start) if start else None,
        end=to_naive_utc(end) if end else None,
    )
    return NotificationListResponse(
        device_id=device_id,
        notifications=[NotificationOut.model_validate(n) for n in notifications],
        total_count=len(notifications),
    )


@router.get("/{device_id}/unread-count")
async def get_unread_count(device_id: str, session: AsyncSession = Depends(get_db)) -> dict:
    device = await device_service.get_device(session, device_id)
    return {
        "deviceId": device_id,
        "unreadCount": await notification_service.count_unread(session, device),
    }


@router.get("/{device_id}/stats", response_model=NotificationStats)
async def get_stats(
    device_id: str,
    days: int = Query(7, ge=1, le=90, description="Days to summarize"),
    session: AsyncSession = Depends(get_db),
) -> NotificationStats:
    """Get per-category notification counts."""
    device = await device_service.get_device(session, device_id)
    return await notification_service.notification_stats(session, device, days=days)


@router.get("/{device_id}/settings", response_model=NotificationSettingsOut)
async def get_settings(device_id: str, session: AsyncSession = Depends(get_db)):
    """Get delivery settings, creating defaults on first access."""
    device = await device_service.get_device(session, device_id)
    settings = await notification_service.get_settings(session, device)
    await session.commit()
    return settings


@router.put("/{device_id}/settings", response_model=NotificationSettingsOut)
async def update_settings(
    device_id: str,
    body: NotificationSettingsUpdate,
    session: AsyncSession = Depends(get_db),
):
    device = await device_service.get_device(session, device_id)
    settings = await notification_service.update_settings(
        session, device, body.model_dump(exclude_unset=True, exclude_none=True)
    )
    await session.commit()
    return settings


@router.put("/{device_id}/toggle", response_model=NotificationSettingsOut)
async def toggle_notifications(
    device_id: str,
    body: ToggleRequest,
    session: AsyncSession = Depends(get_db),
):
    device = await device_service.get_device(session, device_id)
    settings = await notification_service.toggle_notifications(session, device, body.enabled)
    await session.commit()
    return settings


@router.post("/{device_id}")
async def create_notification(
    device_id: str,
    body: NotificationCreate,
    session: AsyncSession = Depends(get_db),
) -> dict:
    """Raise a notification by hand. It is subject to the same delivery policy."""
    device = await device_service.resolve_device(session, device_id)
    event = CandidateEvent(category=body.category, message=body.message, severity=body.severity)
    notification = await notification_service.deliver_candidate(session, device, event)
    await session.commit()
    return {
        "delivered": notification is not None,
        "notification": (
            NotificationOut.model_validate(notification).model_dump(mode="json", by_alias=True)
            if notification
            else None
        ),
    }


@router.put("/{device_id}/read-all")
async def mark_all_as_read(device_id: str, session: AsyncSession = Depends(get_db)) -> dict:
    device = await device_service.get_device(session, device_id)
    updated = await notification_service.mark_all_as_read(session, device)
    await session.commit()
    return {"deviceId": device_id, "updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_as_read(notification_id: int, session: AsyncSession = Depends(get_db)):
    notification = await notification_service.mark_as_read(session, notification_id)
    await session.commit()
    return notification


@router.delete("/{device_id}/old")
async def delete_old_notifications(
    device_id: str,
    days: int = Query(30, ge=1, description="Delete notifications older than this many days"),
    session: AsyncSession = Depends(get_db),
) -> dict:
    device = await device_service.get_device(session, device_id)
    deleted = await notification_service.delete_old_notifications(session, device, days_old=days)
    await session.commit()
    return {"deviceId": device_id, "deleted": deleted}


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(notification_id: int, session: AsyncSession = Depends(get_db)):
    await notification_service.delete_notification(session, notification_id)
    await session.commit()
