"""Sensor reading model."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from airsense.database import Base


class Reading(Base):
    """One telemetry message from a device. Every metric is optional."""

    __tablename__ = "readings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_pk: Mapped[int] = mapped_column(Integer, ForeignKey("devices.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    pm25: Mapped[float | None] = mapped_column(Float, nullable=True)
    mq135: Mapped[float | None] = mapped_column(Float, nullable=True)
    mq2: Mapped[float | None] = mapped_column(Float, nullable=True)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    humidity: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (Index("ix_readings_device_time", "device_pk", "created_at"),)
