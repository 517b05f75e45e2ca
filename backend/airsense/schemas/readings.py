"""Pydantic schemas for readings, statistics, and threshold suggestions."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Granularity = Literal["hour", "day", "week"]

# --- Reading Schemas ---


class ReadingPoint(BaseModel):
    """A single stored reading. Absent metrics are null, never zero."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    created_at: datetime = Field(serialization_alias="timestamp")
    pm25: float | None = None
    mq135: float | None = None
    mq2: float | None = None
    temperature: float | None = None
    humidity: float | None = None


class ReadingsResponse(BaseModel):
    """Response for history and time-range queries."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    count: int
    readings: list[ReadingPoint]


# --- Aggregate Schemas ---


class MetricStats(BaseModel):
    avg: float | None
    min: float | None
    max: float | None


class StatisticsResponse(BaseModel):
    """Per-metric aggregates over a time window."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    start: datetime
    end: datetime
    count: int
    metrics: dict[str, MetricStats]


class ReadingBucket(BaseModel):
    """One time bucket of grouped readings."""

    model_config = ConfigDict(populate_by_name=True)

    bucket: str  # "2026-01-29 10:00", "2026-01-29", or the Monday of the week
    start: datetime
    count: int
    averages: dict[str, float | None]
    maxima: dict[str, float | None]


class GroupedReadingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    granularity: Granularity
    buckets: list[ReadingBucket]


# --- Threshold Suggestion Schemas ---


class MetricSuggestion(BaseModel):
    """Mean + k·stddev margin for a single metric."""

    model_config = ConfigDict(populate_by_name=True)

    mean: float
    std_dev: float = Field(serialization_alias="stdDev")
    suggested: float
    min: float
    max: float
    sample_count: int = Field(serialization_alias="sampleCount")


class ThresholdSuggestion(BaseModel):
    """Result of the threshold suggestion heuristic.

    When `sufficient_data` is false, `metrics` is empty and `message`
    explains why no suggestion was produced.
    """

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(serialization_alias="deviceId")
    sufficient_data: bool = Field(serialization_alias="sufficientData")
    data_points: int = Field(serialization_alias="dataPoints")
    required_data_points: int = Field(serialization_alias="requiredDataPoints")
    analyzed_days: int = Field(serialization_alias="analyzedDays")
    generated_at: datetime = Field(serialization_alias="generatedAt")
    message: str | None = None
    metrics: dict[str, MetricSuggestion | None] = Field(default_factory=dict)
