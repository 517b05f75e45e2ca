"""Notification service layer — delivery policy and notification management.

A candidate event becomes a Notification only after passing, in order: the
global enable flag, quiet hours, the category toggle, and the sliding-window
rate cap. Alerting is best-effort: `dispatch_candidates` never lets a policy
failure reach the telemetry path.
"""

import logging
from datetime import UTC, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from airsense.clock import utcnow
from airsense.config import (
    DEFAULT_MAX_NOTIFICATIONS_PER_HOUR,
    QUIET_HOURS_TIMEZONE,
    RATE_WINDOW_MINUTES,
)
from airsense.errors import NotFoundError, PersistenceError, ValidationError
from airsense.models import Device, Notification, NotificationSettings, NotificationSeverity
from airsense.schemas.notification import CategoryStats, NotificationStats
from airsense.services._registry import METRIC_REGISTRY
from airsense.services.threshold_service import DEVICE_OFFLINE_CATEGORY, CandidateEvent

__all__ = [
    "get_settings",
    "update_settings",
    "toggle_notifications",
    "is_in_quiet_hours",
    "category_toggle",
    "count_recent_notifications",
    "deliver_candidate",
    "dispatch_candidates",
    "list_notifications",
    "count_unread",
    "mark_as_read",
    "mark_all_as_read",
    "delete_notification",
    "delete_old_notifications",
    "notification_stats",
]

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = frozenset(
    {
        "enabled",
        "pm25",
        "mq135",
        "mq2",
        "temperature",
        "humidity",
        "device_offline",
        "quiet_hours_enabled",
        "quiet_hours_start",
        "quiet_hours_end",
        "max_notifications_per_hour",
    }
)

# Category -> settings toggle. Unmapped categories are never silenced by a toggle.
CATEGORY_TOGGLES: dict[str, str] = {
    **{config.category: config.toggle for config in METRIC_REGISTRY.values()},
    "pm25_alert": "pm25",
    "mq135_alert": "mq135",
    "mq2_alert": "mq2",
    "temp_alert": "temperature",
    "humidity_alert": "humidity",
    DEVICE_OFFLINE_CATEGORY: "device_offline",
    "device_online": "device_offline",
}

SEVERITIES = frozenset(s.value for s in NotificationSeverity)


# --- Settings ---


async def _find_settings(
    session: AsyncSession,
    device: Device,
    user_id: str | None,
    refresh: bool = False,
) -> NotificationSettings | None:
    user_filter = (
        NotificationSettings.user_id.is_(None)
        if user_id is None
        else NotificationSettings.user_id == user_id
    )
    query = select(NotificationSettings).where(
        NotificationSettings.device_pk == device.id, user_filter
    )
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_settings(
    session: AsyncSession,
    device: Device,
    user_id: str | None = None,
    now: datetime | None = None,
) -> NotificationSettings:
    """Get settings for a device, creating all-enabled defaults on first lookup."""
    settings = await _find_settings(session, device, user_id)
    if settings is not None:
        return settings

    now = now or utcnow()
    # A concurrent first lookup may win the insert; either way one row survives
    await session.execute(
        sqlite_insert(NotificationSettings)
        .values(
            device_pk=device.id,
            user_id=user_id,
            enabled=True,
            pm25=True,
            mq135=True,
            mq2=True,
            temperature=True,
            humidity=True,
            device_offline=True,
            quiet_hours_enabled=False,
            max_notifications_per_hour=DEFAULT_MAX_NOTIFICATIONS_PER_HOUR,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing()
    )
    return await _find_settings(session, device, user_id)


def _parse_hhmm(value: str) -> time:
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM") from None


async def update_settings(
    session: AsyncSession,
    device: Device,
    partial: dict[str, Any],
    user_id: str | None = None,
) -> NotificationSettings:
    """Apply only the provided settings fields."""
    unknown = set(partial) - SETTINGS_FIELDS
    if unknown:
        raise ValidationError(f"Unknown settings fields: {', '.join(sorted(unknown))}")
    for key in ("quiet_hours_start", "quiet_hours_end"):
        if partial.get(key) is not None:
            _parse_hhmm(partial[key])
    cap = partial.get("max_notifications_per_hour")
    if cap is not None and cap < 0:
        raise ValidationError("max_notifications_per_hour must be >= 0")

    settings = await get_settings(session, device, user_id)
    if not partial:
        return settings

    try:
        await session.execute(
            update(NotificationSettings)
            .where(NotificationSettings.id == settings.id)
            .values(**partial, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not update settings for {device.device_id}") from exc
    return await _find_settings(session, device, user_id, refresh=True)


async def toggle_notifications(
    session: AsyncSession,
    device: Device,
    enabled: bool,
    user_id: str | None = None,
) -> NotificationSettings:
    return await update_settings(session, device, {"enabled": enabled}, user_id)


# --- Policy ---


def is_in_quiet_hours(start: str | time, end: str | time, at: str | time) -> bool:
    """Whether `at` falls in the quiet window, at minute resolution.

    start <= end: active when start <= at <= end.
    start > end (wraps midnight): active when at >= start or at <= end.
    """
    start_t = start if isinstance(start, time) else _parse_hhmm(start)
    end_t = end if isinstance(end, time) else _parse_hhmm(end)
    at_t = at if isinstance(at, time) else _parse_hhmm(at)
    at_t = at_t.replace(second=0, microsecond=0)

    if start_t <= end_t:
        return start_t <= at_t <= end_t
    return at_t >= start_t or at_t <= end_t


def _wall_clock(now: datetime) -> time:
    """Local wall-clock time for a naive UTC timestamp."""
    return now.replace(tzinfo=UTC).astimezone(ZoneInfo(QUIET_HOURS_TIMEZONE)).time()


def _quiet_hours_active(settings: NotificationSettings, now: datetime) -> bool:
    if not settings.quiet_hours_enabled:
        return False
    if not settings.quiet_hours_start or not settings.quiet_hours_end:
        return False
    return is_in_quiet_hours(settings.quiet_hours_start, settings.quiet_hours_end, _wall_clock(now))


def category_toggle(category: str) -> str | None:
    return CATEGORY_TOGGLES.get(category)


async def count_recent_notifications(
    session: AsyncSession,
    device: Device,
    now: datetime | None = None,
    minutes: int = RATE_WINDOW_MINUTES,
) -> int:
    """Notifications created for a device within the trailing window."""
    now = now or utcnow()
    result = await session.execute(
        select(func.count(Notification.id)).where(
            Notification.device_pk == device.id,
            Notification.created_at >= now - timedelta(minutes=minutes),
        )
    )
    return result.scalar_one()


async def deliver_candidate(
    session: AsyncSession,
    device: Device,
    event: CandidateEvent,
    reading_id: int | None = None,
    now: datetime | None = None,
) -> Notification | None:
    """Run one candidate through the delivery policy; persist it if it survives."""
    now = now or utcnow()
    settings = await get_settings(session, device, now=now)

    if not settings.enabled:
        logger.info("Notifications disabled for %s, dropping %s", device.device_id, event.category)
        return None

    if _quiet_hours_active(settings, now):
        logger.info("Quiet hours for %s, dropping %s", device.device_id, event.category)
        return None

    toggle = category_toggle(event.category)
    if toggle is not None and not getattr(settings, toggle):
        logger.info("Category %s disabled for %s", toggle, device.device_id)
        return None

    recent = await count_recent_notifications(session, device, now)
    if recent >= settings.max_notifications_per_hour:
        logger.info(
            "Rate cap reached for %s (%d/%d in %d min), dropping %s",
            device.device_id,
            recent,
            settings.max_notifications_per_hour,
            RATE_WINDOW_MINUTES,
            event.category,
        )
        return None

    severity = event.severity if event.severity in SEVERITIES else NotificationSeverity.WARNING.value
    notification = Notification(
        device_pk=device.id,
        reading_id=reading_id,
        category=event.category or "alert",
        message=event.message or f"Alert: {event.category}",
        severity=severity,
        is_read=False,
        created_at=now,
    )
    session.add(notification)
    await session.flush()
    return notification


async def dispatch_candidates(
    session: AsyncSession,
    device: Device,
    events: list[CandidateEvent],
    reading_id: int | None = None,
    now: datetime | None = None,
) -> list[tuple[CandidateEvent, Notification]]:
    """Deliver candidates and commit. Never raises.

    Returns each delivered candidate with the notification it produced.

    Must run after the triggering reading has been committed: on any failure
    the session is rolled back, which discards only notification work.
    """
    if not events:
        return []

    device_id = device.device_id
    try:
        notifications = []
        for event in events:
            notification = await deliver_candidate(session, device, event, reading_id, now)
            if notification is not None:
                notifications.append((event, notification))
        await session.commit()
    except Exception:
        logger.exception("Notification policy failed for %s, no notifications produced", device_id)
        await session.rollback()
        return []

    if notifications:
        logger.info("Created %d notifications for %s", len(notifications), device_id)
    return notifications


# --- Management ---


async def list_notifications(
    session: AsyncSession,
    device: Device,
    limit: int = 50,
    severity: str | None = None,
    is_read: bool | None = None,
    category: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Notification]:
    """Notifications for a device, newest first, with optional filters."""
    query = select(Notification).where(Notification.device_pk == device.id)
    if severity:
        query = query.where(Notification.severity == severity)
    if is_read is not None:
        query = query.where(Notification.is_read == is_read)
    if category:
        query = query.where(Notification.category == category)
    if start and end:
        query = query.where(and_(Notification.created_at >= start, Notification.created_at <= end))

    query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def count_unread(session: AsyncSession, device: Device) -> int:
    result = await session.execute(
        select(func.count(Notification.id)).where(
            Notification.device_pk == device.id, Notification.is_read.is_(False)
        )
    )
    return result.scalar_one()


async def mark_as_read(session: AsyncSession, notification_id: int) -> Notification:
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    notification.is_read = True
    await session.flush()
    return notification


async def mark_all_as_read(session: AsyncSession, device: Device) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.device_pk == device.id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_notification(session: AsyncSession, notification_id: int) -> None:
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    await session.delete(notification)
    await session.flush()


async def delete_old_notifications(
    session: AsyncSession,
    device: Device,
    days_old: int = 30,
    now: datetime | None = None,
) -> int:
    """Delete a device's notifications older than `days_old` days."""
    cutoff = (now or utcnow()) - timedelta(days=days_old)
    result = await session.execute(
        delete(Notification)
        .where(Notification.device_pk == device.id, Notification.created_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def notification_stats(
    session: AsyncSession,
    device: Device,
    days: int = 7,
    now: datetime | None = None,
) -> NotificationStats:
    """Per-category totals and unread counts over the last `days` days."""
    since = (now or utcnow()) - timedelta(days=days)
    unread = func.sum(case((Notification.is_read.is_(False), 1), else_=0))

    result = await session.execute(
        select(Notification.category, func.count(Notification.id), unread)
        .where(Notification.device_pk == device.id, Notification.created_at >= since)
        .group_by(Notification.category)
        .order_by(func.count(Notification.id).desc())
    )
    by_category = [
        CategoryStats(category=category, count=count, unread_count=unread_count or 0)
        for category, count, unread_count in result
    ]

    return NotificationStats(
        device_id=device.device_id,
        by_category=by_category,
        total=sum(item.count for item in by_category),
        unread_total=await count_unread(session, device),
        period_days=days,
    )
