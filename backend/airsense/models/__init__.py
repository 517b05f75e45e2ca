"""SQLAlchemy models."""

from airsense.models.device import DEFAULT_THRESHOLDS, Device, DeviceStatus
from airsense.models.notification import (
    Notification,
    NotificationSettings,
    NotificationSeverity,
)
from airsense.models.readings import Reading

__all__ = [
    "Device",
    "DeviceStatus",
    "DEFAULT_THRESHOLDS",
    "Reading",
    "Notification",
    "NotificationSettings",
    "NotificationSeverity",
]
