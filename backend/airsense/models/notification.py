"""Notification and notification settings models."""

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from airsense.database import Base


class NotificationSeverity(str, enum.Enum):
    """Alert severity levels"""

    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"


class NotificationSettings(Base):
    """Per-device delivery preferences, optionally scoped to a user."""

    __tablename__ = "notification_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_pk: Mapped[int] = mapped_column(Integer, ForeignKey("devices.id"), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Category toggles
    pm25: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    mq135: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    mq2: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    temperature: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    humidity: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    device_offline: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Quiet hours as "HH:MM"; start > end wraps midnight
    quiet_hours_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiet_hours_start: Mapped[str | None] = mapped_column(String(5), nullable=True)
    quiet_hours_end: Mapped[str | None] = mapped_column(String(5), nullable=True)

    max_notifications_per_hour: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("device_pk", "user_id", name="uq_settings_device_user"),
        # NULLs are distinct in a unique constraint, so the device-wide row needs its own index
        Index(
            "uq_settings_device_default",
            "device_pk",
            unique=True,
            sqlite_where=text("user_id IS NULL"),
        ),
    )


class Notification(Base):
    """A policy-approved alert derived from a reading or device event."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_pk: Mapped[int] = mapped_column(Integer, ForeignKey("devices.id"), nullable=False)
    # Null only for status events (e.g. device offline) that carry no reading
    reading_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("readings.id"), nullable=True
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_notifications_device_time", "device_pk", "created_at"),
        Index("ix_notifications_device_read", "device_pk", "is_read"),
    )
