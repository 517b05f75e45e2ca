"""Pydantic schemas for API request/response models."""

from airsense.schemas.commands import (
    ChangeRateCommand,
    ChangeThresholdCommand,
    CommandResult,
    CustomCommand,
    DeviceCommand,
    TransportStatus,
)
from airsense.schemas.device import (
    DeviceOut,
    DeviceUptime,
    MetadataUpdate,
    StatusUpdate,
    ThresholdUpdate,
    UptimeBreakdown,
)
from airsense.schemas.notification import (
    CategoryStats,
    NotificationCreate,
    NotificationListResponse,
    NotificationOut,
    NotificationSettingsOut,
    NotificationSettingsUpdate,
    NotificationStats,
    ToggleRequest,
)
from airsense.schemas.readings import (
    GroupedReadingsResponse,
    MetricStats,
    MetricSuggestion,
    ReadingBucket,
    ReadingPoint,
    ReadingsResponse,
    StatisticsResponse,
    ThresholdSuggestion,
)

__all__ = [
    # Device schemas
    "DeviceOut",
    "DeviceUptime",
    "UptimeBreakdown",
    "ThresholdUpdate",
    "MetadataUpdate",
    "StatusUpdate",
    # Reading schemas
    "ReadingPoint",
    "ReadingsResponse",
    "MetricStats",
    "StatisticsResponse",
    "ReadingBucket",
    "GroupedReadingsResponse",
    "MetricSuggestion",
    "ThresholdSuggestion",
    # Notification schemas
    "NotificationCreate",
    "NotificationOut",
    "NotificationListResponse",
    "CategoryStats",
    "NotificationStats",
    "NotificationSettingsOut",
    "NotificationSettingsUpdate",
    "ToggleRequest",
    # Command schemas
    "DeviceCommand",
    "ChangeThresholdCommand",
    "ChangeRateCommand",
    "CustomCommand",
    "CommandResult",
    "TransportStatus",
]
