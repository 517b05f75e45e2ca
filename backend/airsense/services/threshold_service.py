"""Threshold evaluation — turns a reading into candidate alert events.

Pure functions only: no session, no clock, no settings. Whether a candidate
becomes a notification is decided by the notification service.
"""

from dataclasses import dataclass
from typing import Protocol

from airsense.models import NotificationSeverity
from airsense.services._registry import METRIC_REGISTRY, MetricConfig
from airsense.services.normalizer import NormalizedReading

__all__ = [
    "CandidateEvent",
    "evaluate_reading",
    "effective_threshold",
    "severity_for_event",
    "DEVICE_OFFLINE_CATEGORY",
]

DEVICE_OFFLINE_CATEGORY = "device_offline"

# Severity of events declared by the device itself on the alert topic
CRITICAL_EVENTS = frozenset({"fire_detected", "gas_leak", "critical_pm25"})
INFO_EVENTS = frozenset({"high_humidity", "device_online", "threshold_changed"})


class HasThresholds(Protocol):
    mq135_threshold: float | None
    mq2_threshold: float | None
    humidity_threshold: float | None
    temperature_threshold: float | None
    pm25_threshold: float | None


@dataclass(frozen=True)
class CandidateEvent:
    """An alert condition not yet approved for delivery."""

    category: str
    message: str
    severity: str
    metric: str | None = None
    value: float | None = None
    threshold: float | None = None

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "message": self.message,
            "severity": self.severity,
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
        }


def effective_threshold(config: MetricConfig, device: HasThresholds) -> float | None:
    """The ceiling enforced for a metric, or None when the metric is not alerted on.

    0 disables the metric outright. Particulate falls back to the fixed alert
    level only when the device has no threshold set at all.
    """
    configured = getattr(device, config.threshold_field, None)
    if configured is None:
        return config.fallback_threshold
    if configured == 0:
        return None
    return configured


def _format_value(value: float) -> str:
    return f"{value:g}"


def evaluate_reading(device: HasThresholds, reading: NormalizedReading) -> list[CandidateEvent]:
    """One candidate per metric whose value exceeds its threshold, in registry order."""
    events: list[CandidateEvent] = []

    for name, config in METRIC_REGISTRY.items():
        value = reading.get(name)
        if value is None:
            continue

        threshold = effective_threshold(config, device)
        if threshold is None or value <= threshold:
            continue

        severity = config.severity_for(value) if config.severity_for else config.severity
        events.append(
            CandidateEvent(
                category=config.category,
                message=(
                    f"{config.label} high: {_format_value(value)} {config.unit} "
                    f"(threshold {_format_value(threshold)} {config.unit})"
                ),
                severity=severity,
                metric=name,
                value=value,
                threshold=threshold,
            )
        )

    return events


def severity_for_event(event_type: str | None) -> str:
    """Severity for an event type reported by the device; unknown types are warnings."""
    if event_type in CRITICAL_EVENTS:
        return NotificationSeverity.CRITICAL.value
    if event_type in INFO_EVENTS:
        return NotificationSeverity.INFO.value
    return NotificationSeverity.WARNING.value
