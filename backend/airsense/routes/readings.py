"""Reading API routes: latest, history, ranges, aggregates, suggestions."""

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from airsense.clock import to_naive_utc, utcnow
from airsense.database import get_db
from airsense.schemas import (
    GroupedReadingsResponse,
    ReadingPoint,
    ReadingsResponse,
    StatisticsResponse,
    ThresholdSuggestion,
)
from airsense.schemas.readings import Granularity
from airsense.services import baseline_service, device_service, readings_service

# Maximum time range limits
MAX_RANGE_DAYS = 90
MAX_LIMIT = 5000

router = APIRouter(prefix="/api/data", tags=["readings"])


def _resolve_window(
    start: datetime | None,
    end: datetime | None,
    default: timedelta = timedelta(hours=24),
) -> tuple[datetime, datetime]:
    end = to_naive_utc(end) if end else utcnow()
    start = to_naive_utc(start) if start else end - default

    if start >= end:
        raise HTTPException(status_code=400, detail="start must be before end")
    if end - start > timedelta(days=MAX_RANGE_DAYS):
        raise HTTPException(
            status_code=400,
            detail=f"Time range cannot exceed {MAX_RANGE_DAYS} days",
        )
    return start, end


@router.get("/{device_id}/latest", response_model=ReadingPoint)
async def get_latest(device_id: str, session: AsyncSession = Depends(get_db)):
    """Get the most recent reading for a device."""
    device = await device_service.get_device(session, device_id)
    reading = await readings_service.get_latest_reading(session, device)
    if reading is None:
        raise HTTPException(status_code=404, detail="No readings for this device")
    return reading


@router.get("/{device_id}/history", response_model=ReadingsResponse)
async def get_history(
    device_id: str,
    limit: int = Query(50, ge=1, le=MAX_LIMIT, description="Max readings to return"),
    session: AsyncSession = Depends(get_db),
) -> ReadingsResponse:
    """Get the most recent readings, newest first."""
    device = await device_service.get_device(session, device_id)
    readings = await readings_service.get_history(session, device, limit)
    return ReadingsResponse(
        device_id=device_id,
        count=len(readings),
        readings=[ReadingPoint.model_validate(r) for r in readings],
    )


@router.get("/{device_id}/range", response_model=ReadingsResponse)
async def get_range(
    device_id: str,
    start: datetime | None = Query(None, description="Start of time range (ISO format)"),
    end: datetime | None = Query(None, description="End of time range (ISO format)"),
    limit: int = Query(1000, ge=1, le=MAX_LIMIT, description="Max readings to return"),
    session: AsyncSession = Depends(get_db),
) -> ReadingsResponse:
    """Get readings within a time range, newest first. Defaults to the last 24 hours."""
    start, end = _resolve_window(start, end)
    device = await device_service.get_device(session, device_id)
    readings = await readings_service.get_readings_in_range(session, device, start, end, limit)
    return ReadingsResponse(
        device_id=device_id,
        count=len(readings),
        readings=[ReadingPoint.model_validate(r) for r in readings],
    )


@router.get("/{device_id}/statistics", response_model=StatisticsResponse)
async def get_statistics(
    device_id: str,
    start: datetime | None = Query(None, description="Start of time range (ISO format)"),
    end: datetime | None = Query(None, description="End of time range (ISO format)"),
    session: AsyncSession = Depends(get_db),
) -> StatisticsResponse:
    """Get average, min, and max per metric. Defaults to the last 24 hours."""
    start, end = _resolve_window(start, end)
    device = await device_service.get_device(session, device_id)
    return await readings_service.get_statistics(session, device, start, end)


@router.get("/{device_id}/grouped", response_model=GroupedReadingsResponse)
async def get_grouped(
    device_id: str,
    granularity: Granularity = Query("hour", description="Bucket size"),
    start: datetime | None = Query(None, description="Start of time range (ISO format)"),
    end: datetime | None = Query(None, description="End of time range (ISO format)"),
    session: AsyncSession = Depends(get_db),
) -> GroupedReadingsResponse:
    """Get readings aggregated into hour, day, or week buckets. Defaults to the last 7 days."""
    start, end = _resolve_window(start, end, default=timedelta(days=7))
    device = await device_service.get_device(session, device_id)
    return await readings_service.get_grouped_readings(session, device, granularity, start, end)


@router.get("/{device_id}/suggest-thresholds", response_model=ThresholdSuggestion)
async def suggest_thresholds(
    device_id: str,
    days: int = Query(7, ge=1, le=30, description="Days of data to analyze"),
    session: AsyncSession = Depends(get_db),
) -> ThresholdSuggestion:
    """Suggest alert thresholds from recent readings (mean + 1.5 standard deviations)."""
    device = await device_service.get_device(session, device_id)
    return await baseline_service.suggest_thresholds(session, device, lookback_days=days)
