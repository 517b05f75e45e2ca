"""Pydantic schemas for devices, thresholds, and uptime."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DeviceStatusLiteral = Literal["online", "offline", "error", "maintenance"]


class DeviceOut(BaseModel):
    """Device record as returned by the API."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    status: DeviceStatusLiteral
    status_changed_at: datetime | None = Field(default=None, serialization_alias="statusChangedAt")
    mq135_threshold: float | None = Field(default=None, serialization_alias="mq135Threshold")
    mq2_threshold: float | None = Field(default=None, serialization_alias="mq2Threshold")
    humidity_threshold: float | None = Field(default=None, serialization_alias="humidityThreshold")
    temperature_threshold: float | None = Field(
        default=None, serialization_alias="temperatureThreshold"
    )
    pm25_threshold: float | None = Field(default=None, serialization_alias="pm25Threshold")
    last_online_at: datetime | None = Field(default=None, serialization_alias="lastOnlineAt")
    first_online_at: datetime | None = Field(default=None, serialization_alias="firstOnlineAt")
    total_uptime_seconds: int = Field(serialization_alias="totalUptimeSeconds")
    firmware_version: str | None = Field(default=None, serialization_alias="firmwareVersion")
    location: str | None = None
    description: str | None = None
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")


class UptimeBreakdown(BaseModel):
    days: int
    hours: int
    minutes: int
    seconds: int


class DeviceUptime(BaseModel):
    """Committed uptime plus the still-open session, computed on demand."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    status: DeviceStatusLiteral
    last_online_at: datetime | None = Field(serialization_alias="lastOnlineAt")
    first_online_at: datetime | None = Field(serialization_alias="firstOnlineAt")
    current_uptime_seconds: int = Field(serialization_alias="currentUptimeSeconds")
    total_uptime_seconds: int = Field(serialization_alias="totalUptimeSeconds")
    uptime_formatted: UptimeBreakdown = Field(serialization_alias="uptimeFormatted")
    firmware_version: str | None = Field(serialization_alias="firmwareVersion")
    location: str | None = None


# --- Request bodies ---


class ThresholdUpdate(BaseModel):
    """Partial threshold update; omitted fields keep their stored value."""

    mq135_threshold: float | None = None
    mq2_threshold: float | None = None
    humidity_threshold: float | None = None
    temperature_threshold: float | None = None
    pm25_threshold: float | None = None


class MetadataUpdate(BaseModel):
    """Partial metadata update; omitted fields keep their stored value."""

    firmware_version: str | None = Field(None, max_length=50)
    location: str | None = Field(None, max_length=255)
    description: str | None = None


class StatusUpdate(BaseModel):
    status: DeviceStatusLiteral
