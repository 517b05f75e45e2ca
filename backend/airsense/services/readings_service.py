"""Readings service layer — persists readings and serves history and aggregates."""

import logging
from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from airsense.clock import utcnow
from airsense.errors import PersistenceError
from airsense.models import Device, Reading
from airsense.schemas.readings import (
    Granularity,
    GroupedReadingsResponse,
    MetricStats,
    ReadingBucket,
    StatisticsResponse,
)
from airsense.services._registry import METRIC_REGISTRY
from airsense.services.normalizer import NormalizedReading

__all__ = [
    "append_reading",
    "get_latest_reading",
    "get_history",
    "get_readings_in_range",
    "get_statistics",
    "get_grouped_readings",
]

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
DEFAULT_RANGE_LIMIT = 1000


async def append_reading(
    session: AsyncSession,
    device: Device,
    reading: NormalizedReading,
    now: datetime | None = None,
) -> Reading:
    """Persist one reading for an already-resolved device."""
    record = Reading(
        device_pk=device.id,
        created_at=now or utcnow(),
        **reading.as_columns(),
    )
    try:
        session.add(record)
        await session.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not store reading for {device.device_id}") from exc
    return record


def _newest_first(query):
    return query.order_by(Reading.created_at.desc(), Reading.id.desc())


async def get_latest_reading(session: AsyncSession, device: Device) -> Reading | None:
    result = await session.execute(
        _newest_first(select(Reading).where(Reading.device_pk == device.id)).limit(1)
    )
    return result.scalar_one_or_none()


async def get_history(
    session: AsyncSession,
    device: Device,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> list[Reading]:
    """Most recent readings, newest first."""
    result = await session.execute(
        _newest_first(select(Reading).where(Reading.device_pk == device.id)).limit(limit)
    )
    return list(result.scalars().all())


def _in_window(device: Device, start: datetime, end: datetime):
    return and_(
        Reading.device_pk == device.id,
        Reading.created_at >= start,
        Reading.created_at <= end,
    )


async def get_readings_in_range(
    session: AsyncSession,
    device: Device,
    start: datetime,
    end: datetime,
    limit: int = DEFAULT_RANGE_LIMIT,
) -> list[Reading]:
    """Readings within [start, end], newest first."""
    result = await session.execute(
        _newest_first(select(Reading).where(_in_window(device, start, end))).limit(limit)
    )
    return list(result.scalars().all())


async def get_statistics(
    session: AsyncSession,
    device: Device,
    start: datetime,
    end: datetime,
) -> StatisticsResponse:
    """Average, min, and max per metric over a window.

    SQL aggregates skip NULLs, so a metric with no values in range gets null
    aggregates rather than zeros.
    """
    columns = [func.count(Reading.id)]
    for config in METRIC_REGISTRY.values():
        columns.extend(
            [func.avg(config.column), func.min(config.column), func.max(config.column)]
        )

    result = await session.execute(select(*columns).where(_in_window(device, start, end)))
    row = list(result.one())
    count = row.pop(0)

    metrics: dict[str, MetricStats] = {}
    for index, name in enumerate(METRIC_REGISTRY):
        avg, min_val, max_val = row[index * 3 : index * 3 + 3]
        metrics[name] = MetricStats(
            avg=round(float(avg), 2) if avg is not None else None,
            min=min_val,
            max=max_val,
        )

    return StatisticsResponse(
        device_id=device.device_id,
        start=start,
        end=end,
        count=count,
        metrics=metrics,
    )


def _bucket_expression(granularity: Granularity):
    if granularity == "hour":
        return func.strftime("%Y-%m-%d %H:00", Reading.created_at)
    if granularity == "day":
        return func.strftime("%Y-%m-%d", Reading.created_at)
    # Monday of the week: jump forward to Sunday, then back six days
    return func.date(Reading.created_at, "weekday 0", "-6 days")


def _parse_bucket(bucket: str, granularity: Granularity) -> datetime:
    if granularity == "hour":
        return datetime.strptime(bucket, "%Y-%m-%d %H:%M")
    return datetime.strptime(bucket, "%Y-%m-%d")


async def get_grouped_readings(
    session: AsyncSession,
    device: Device,
    granularity: Granularity,
    start: datetime,
    end: datetime,
) -> GroupedReadingsResponse:
    """Readings aggregated into hour, day, or week buckets, oldest bucket first."""
    bucket = _bucket_expression(granularity).label("bucket")

    columns = [bucket, func.count(Reading.id).label("cnt")]
    for config in METRIC_REGISTRY.values():
        columns.extend([func.avg(config.column), func.max(config.column)])

    result = await session.execute(
        select(*columns)
        .where(_in_window(device, start, end))
        .group_by(bucket)
        .order_by(bucket)
    )

    buckets: list[ReadingBucket] = []
    for row in result:
        bucket_key, count, *aggregates = row
        averages: dict[str, float | None] = {}
        maxima: dict[str, float | None] = {}
        for index, name in enumerate(METRIC_REGISTRY):
            avg, max_val = aggregates[index * 2 : index * 2 + 2]
            averages[name] = round(float(avg), 2) if avg is not None else None
            maxima[name] = max_val
        buckets.append(
            ReadingBucket(
                bucket=bucket_key,
                start=_parse_bucket(bucket_key, granularity),
                count=count,
                averages=averages,
                maxima=maxima,
            )
        )

    return GroupedReadingsResponse(
        device_id=device.device_id,
        granularity=granularity,
        buckets=buckets,
    )
