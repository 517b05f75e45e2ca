"""Service layer modules."""

from airsense.services import (
    baseline_service,
    command_service,
    device_service,
    ingest_service,
    notification_service,
    readings_service,
)

__all__ = [
    "baseline_service",
    "command_service",
    "device_service",
    "ingest_service",
    "notification_service",
    "readings_service",
]
