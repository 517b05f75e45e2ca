"""Pydantic schemas for notifications and notification settings."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SeverityLiteral = Literal["info", "warning", "danger", "critical"]

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    reading_id: int | None = Field(default=None, serialization_alias="readingId")
    category: str
    message: str
    severity: SeverityLiteral
    is_read: bool = Field(serialization_alias="isRead")
    created_at: datetime = Field(serialization_alias="createdAt")


class NotificationListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    notifications: list[NotificationOut]
    total_count: int = Field(serialization_alias="totalCount")


class CategoryStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: str
    count: int
    unread_count: int = Field(serialization_alias="unreadCount")


class NotificationStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    by_category: list[CategoryStats] = Field(serialization_alias="byCategory")
    total: int
    unread_total: int = Field(serialization_alias="unreadTotal")
    period_days: int = Field(serialization_alias="periodDays")


class NotificationSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    user_id: str | None = Field(default=None, serialization_alias="userId")
    enabled: bool
    pm25: bool
    mq135: bool
    mq2: bool
    temperature: bool
    humidity: bool
    device_offline: bool = Field(serialization_alias="deviceOffline")
    quiet_hours_enabled: bool = Field(serialization_alias="quietHoursEnabled")
    quiet_hours_start: str | None = Field(default=None, serialization_alias="quietHoursStart")
    quiet_hours_end: str | None = Field(default=None, serialization_alias="quietHoursEnd")
    max_notifications_per_hour: int = Field(serialization_alias="maxNotificationsPerHour")
    updated_at: datetime = Field(serialization_alias="updatedAt")


class NotificationSettingsUpdate(BaseModel):
    """Partial settings update; omitted fields keep their stored value."""

    enabled: bool | None = None
    pm25: bool | None = None
    mq135: bool | None = None
    mq2: bool | None = None
    temperature: bool | None = None
    humidity: bool | None = None
    device_offline: bool | None = None
    quiet_hours_enabled: bool | None = None
    quiet_hours_start: str | None = Field(None, pattern=HHMM_PATTERN)
    quiet_hours_end: str | None = Field(None, pattern=HHMM_PATTERN)
    max_notifications_per_hour: int | None = Field(None, ge=0, le=1000)


class ToggleRequest(BaseModel):
    enabled: bool


class NotificationCreate(BaseModel):
    """Manually raised notification; still subject to the delivery policy."""

    category: str = Field(..., min_length=1, max_length=50)
    message: str = Field(..., min_length=1, max_length=500)
    severity: SeverityLiteral = "warning"
