"""Baseline service layer — suggests alert thresholds from recent readings.

The suggestion is an anomaly-margin heuristic: mean + 1.5 × population
standard deviation over the lookback window. It is a starting point for a
human to review, not a statistical model of normal behavior.
"""

import math
from datetime import datetime, timedelta

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from airsense.clock import utcnow
from airsense.config import SUGGESTION_MIN_SAMPLES, SUGGESTION_STDDEV_FACTOR
from airsense.models import Device, Reading
from airsense.schemas.readings import MetricSuggestion, ThresholdSuggestion
from airsense.services._registry import METRIC_REGISTRY

__all__ = ["suggest_thresholds"]

DEFAULT_LOOKBACK_DAYS = 7


async def suggest_thresholds(
    session: AsyncSession,
    device: Device,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    now: datetime | None = None,
) -> ThresholdSuggestion:
    """
    Compute per-metric threshold suggestions for a device.

    Requires at least SUGGESTION_MIN_SAMPLES readings in the window; with
    fewer, returns an insufficient-data result instead of a suggestion.
    """
    end_time = now or utcnow()
    start_time = end_time - timedelta(days=lookback_days)
    window = and_(
        Reading.device_pk == device.id,
        Reading.created_at >= start_time,
        Reading.created_at <= end_time,
    )

    count_result = await session.execute(select(func.count(Reading.id)).where(window))
    data_points = count_result.scalar_one()

    base = dict(
        device_id=device.device_id,
        data_points=data_points,
        required_data_points=SUGGESTION_MIN_SAMPLES,
        analyzed_days=lookback_days,
        generated_at=end_time,
    )

    if data_points < SUGGESTION_MIN_SAMPLES:
        return ThresholdSuggestion(
            **base,
            sufficient_data=False,
            message=(
                f"Not enough data to suggest thresholds "
                f"({data_points} readings, need at least {SUGGESTION_MIN_SAMPLES})"
            ),
        )

    metrics: dict[str, MetricSuggestion | None] = {}
    for name, config in METRIC_REGISTRY.items():
        metrics[name] = await _suggest_for_metric(session, config.column, window)

    return ThresholdSuggestion(**base, sufficient_data=True, metrics=metrics)


async def _suggest_for_metric(session: AsyncSession, column, window) -> MetricSuggestion | None:
    # Single query to get count, avg, min, max
    result = await session.execute(
        select(
            func.count(column),
            func.avg(column),
            func.min(column),
            func.max(column),
        ).where(window)
    )
    count, avg, min_val, max_val = result.one()

    if count == 0 or avg is None:
        return None

    std_dev = await _compute_std_dev(session, column, window, avg)
    suggested = avg + SUGGESTION_STDDEV_FACTOR * std_dev

    return MetricSuggestion(
        mean=round(avg, 2),
        std_dev=round(std_dev, 2),
        suggested=round(suggested, 2),
        min=min_val,
        max=max_val,
        sample_count=count,
    )


async def _compute_std_dev(session: AsyncSession, column, window, mean: float) -> float:
    """
    Population standard deviation, computed manually since SQLite lacks stdev.

    Uses the formula: sqrt(avg((value - mean)^2))
    """
    deviation = column - mean
    result = await session.execute(
        select(func.avg(deviation * deviation)).where(and_(window, column.is_not(None)))
    )
    variance = result.scalar()

    if variance is None or variance < 0:
        return 0.0

    return math.sqrt(variance)
