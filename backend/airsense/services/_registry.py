"""Metric registry for eliminating repetitive per-metric branching."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import InstrumentedAttribute

from airsense.config import PM25_ALERT_LEVEL, PM25_DANGER_LEVEL
from airsense.models import NotificationSeverity, Reading


@dataclass(frozen=True)
class MetricConfig:
    """How one canonical metric is parsed, stored, and alerted on."""

    name: str
    column: InstrumentedAttribute[Any]
    # Payload keys accepted for this metric, in priority order
    aliases: tuple[str, ...]
    unit: str
    label: str
    # Device attribute holding the configured threshold
    threshold_field: str
    category: str
    # NotificationSettings toggle that can silence this category
    toggle: str
    severity: str = NotificationSeverity.WARNING.value
    # Graduated severity, overrides `severity` when set
    severity_for: Callable[[float], str] | None = None
    # Ceiling used when the device has no threshold configured
    fallback_threshold: float | None = None


def _pm25_severity(value: float) -> str:
    if value > PM25_DANGER_LEVEL:
        return NotificationSeverity.CRITICAL.value
    return NotificationSeverity.WARNING.value


METRIC_REGISTRY: dict[str, MetricConfig] = {
    "pm25": MetricConfig(
        name="pm25",
        column=Reading.pm25,
        aliases=("pm25", "dust", "pm2_5"),
        unit="µg/m³",
        label="PM2.5",
        threshold_field="pm25_threshold",
        category="high_pm25",
        toggle="pm25",
        severity_for=_pm25_severity,
        fallback_threshold=PM25_ALERT_LEVEL,
    ),
    "mq135": MetricConfig(
        name="mq135",
        column=Reading.mq135,
        aliases=("mq135", "MQ135", "gas1"),
        unit="ppm",
        label="MQ135",
        threshold_field="mq135_threshold",
        category="high_mq135",
        toggle="mq135",
    ),
    "mq2": MetricConfig(
        name="mq2",
        column=Reading.mq2,
        aliases=("mq2", "MQ2", "gas2"),
        unit="ppm",
        label="MQ2",
        threshold_field="mq2_threshold",
        category="high_mq2",
        toggle="mq2",
    ),
    "temperature": MetricConfig(
        name="temperature",
        column=Reading.temperature,
        aliases=("temperature", "temp"),
        unit="°C",
        label="Temperature",
        threshold_field="temperature_threshold",
        category="high_temperature",
        toggle="temperature",
    ),
    "humidity": MetricConfig(
        name="humidity",
        column=Reading.humidity,
        aliases=("humidity", "hum", "humd"),
        unit="%",
        label="Humidity",
        threshold_field="humidity_threshold",
        category="high_humidity",
        toggle="humidity",
        severity=NotificationSeverity.INFO.value,
    ),
}

METRIC_NAMES: tuple[str, ...] = tuple(METRIC_REGISTRY)


def get_metric_config(name: str) -> MetricConfig | None:
    """Get configuration for a metric."""
    return METRIC_REGISTRY.get(name)
