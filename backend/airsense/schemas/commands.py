"""Pydantic schemas for outbound device commands."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from airsense.config import DEFAULT_DEVICE_ID


class DeviceCommand(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(DEFAULT_DEVICE_ID, alias="deviceId", min_length=1, max_length=100)


class ChangeThresholdCommand(DeviceCommand):
    """Range checks happen in the command service so they apply to every caller."""

    mq135_threshold: float | None = None
    mq2_threshold: float | None = None
    humidity_threshold: float | None = None
    temperature_threshold: float | None = None
    pm25_threshold: float | None = None


class ChangeRateCommand(DeviceCommand):
    seconds: int


class CustomCommand(DeviceCommand):
    command: str = Field(..., min_length=1, max_length=100)
    params: dict[str, Any] = Field(default_factory=dict)


class CommandResult(BaseModel):
    """What was handed to the transport. Not a delivery receipt."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    topic: str
    payload: dict[str, Any]


class TransportStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    connected: bool
    broker: str
    subscription: str
