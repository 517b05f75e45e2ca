#!/usr/bin/env python3
"""Generate a week of readings for the default device with a particulate spike baked in."""

import asyncio
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import delete, select

from airsense.clock import utcnow
from airsense.config import DEFAULT_DEVICE_ID
from airsense.database import async_session
from airsense.models import Device, Notification, Reading
from airsense.services.device_service import resolve_device

# Fixed seed for reproducibility
RANDOM_SEED = 42

# Time configuration
DAYS_TO_GENERATE = 7
INTERVAL_MINUTES = 15

# Indoor baselines
BASELINES = {
    "pm25": 35.0,  # µg/m³
    "mq135": 420.0,
    "mq2": 300.0,
    "temperature": 24.0,  # °C
    "humidity": 55.0,  # %
}


def generate_readings(device: Device, start_time: datetime, end_time: datetime) -> list[Reading]:
    """Generate readings with a smoke incident over the last 3 hours."""
    readings = []
    current_time = start_time
    incident_start = end_time - timedelta(hours=3)

    while current_time <= end_time:
        # Warmer in the afternoon
        daily = 2.0 if 12 <= current_time.hour <= 17 else 0.0

        pm25 = BASELINES["pm25"] + random.uniform(-10, 10)
        mq2 = BASELINES["mq2"] + random.uniform(-40, 40)
        if current_time >= incident_start:
            hours_into_incident = (current_time - incident_start).total_seconds() / 3600
            pm25 += hours_into_incident * 70  # past the 100 µg/m³ alert level within 2h
            mq2 += hours_into_incident * 250

        readings.append(
            Reading(
                device_pk=device.id,
                created_at=current_time,
                pm25=round(pm25, 1),
                mq135=round(BASELINES["mq135"] + random.uniform(-50, 50), 0),
                mq2=round(mq2, 0),
                temperature=round(BASELINES["temperature"] + daily + random.uniform(-0.5, 0.5), 1),
                humidity=round(BASELINES["humidity"] + random.uniform(-5, 5), 1),
            )
        )
        current_time += timedelta(minutes=INTERVAL_MINUTES)

    return readings


async def generate_all_data(device_id: str = DEFAULT_DEVICE_ID) -> None:
    """Generate a week of readings for one device."""
    random.seed(RANDOM_SEED)

    end_time = utcnow().replace(second=0, microsecond=0)
    start_time = end_time - timedelta(days=DAYS_TO_GENERATE)

    print(f"Generating data for {device_id} from {start_time} to {end_time}")

    async with async_session() as session:
        device = await resolve_device(session, device_id)

        # Check if data already exists
        result = await session.execute(select(Reading).where(Reading.device_pk == device.id).limit(1))
        if result.scalar_one_or_none():
            print("Data already exists. Run with --reset to regenerate.")
            return

        readings = generate_readings(device, start_time, end_time)
        session.add_all(readings)
        await session.commit()
        print(f"Generated {len(readings)} readings for {device_id}.")


async def clear_readings() -> None:
    """Clear all reading data and the notifications that point at it."""
    async with async_session() as session:
        await session.execute(delete(Notification))
        await session.execute(delete(Reading))
        await session.commit()
    print("Cleared all readings.")


async def reset_and_generate() -> None:
    """Clear existing data and regenerate."""
    await clear_readings()
    await generate_all_data()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "--reset":
        asyncio.run(reset_and_generate())
    else:
        asyncio.run(generate_all_data())
