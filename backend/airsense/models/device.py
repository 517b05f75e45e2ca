"""Device model."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from airsense.database import Base


class DeviceStatus(str, enum.Enum):
    """Device connectivity states."""

    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"
    MAINTENANCE = "maintenance"


# Defaults for lazily created devices. 0 means "not enforced".
DEFAULT_THRESHOLDS: dict[str, float | None] = {
    "mq135_threshold": 1000.0,
    "mq2_threshold": 1000.0,
    "humidity_threshold": 0.0,
    "temperature_threshold": 0.0,
    "pm25_threshold": None,
}


class Device(Base):
    """Air-quality sensor node, identified by its external device id."""

    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)

    # Thresholds: gas 1 (MQ135), gas 2 (MQ2), humidity, temperature, particulate
    mq135_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    mq2_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    humidity_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    temperature_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    pm25_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DeviceStatus.OFFLINE.value
    )
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Uptime accounting; total only grows when a session closes
    last_online_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    first_online_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    total_uptime_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    firmware_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
