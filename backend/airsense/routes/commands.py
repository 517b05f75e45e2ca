"""MQTT command routes. Each returns what was handed to the broker client."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from airsense.config import MQTT_BROKER_HOST, MQTT_BROKER_PORT, TOPIC_SUBSCRIBE
from airsense.database import get_db
from airsense.dependencies import get_transport
from airsense.errors import PartialDispatchError
from airsense.mqtt import MQTTTransport
from airsense.schemas import (
    ChangeRateCommand,
    ChangeThresholdCommand,
    CommandResult,
    CustomCommand,
    DeviceCommand,
    DeviceOut,
    TransportStatus,
)
from airsense.services import command_service

router = APIRouter(prefix="/api/mqtt", tags=["mqtt"])


@router.get("/status", response_model=TransportStatus)
async def get_status(transport: MQTTTransport | None = Depends(get_transport)) -> TransportStatus:
    """Get the broker connection state."""
    if transport is None:
        return TransportStatus(
            connected=False,
            broker=f"{MQTT_BROKER_HOST}:{MQTT_BROKER_PORT}",
            subscription=TOPIC_SUBSCRIBE,
        )
    return TransportStatus(**transport.status())


@router.post("/get-data", response_model=CommandResult)
async def get_data(
    body: DeviceCommand | None = None,
    transport: MQTTTransport | None = Depends(get_transport),
) -> CommandResult:
    """Ask a device to publish a reading now."""
    body = body or DeviceCommand()
    return command_service.request_data(transport, body.device_id)


@router.post("/change-threshold")
async def change_threshold(
    body: ChangeThresholdCommand,
    session: AsyncSession = Depends(get_db),
    transport: MQTTTransport | None = Depends(get_transport),
) -> dict:
    """Store new thresholds and send them to the device."""
    values = body.model_dump(exclude_unset=True, exclude={"device_id"})
    try:
        device, result = await command_service.set_thresholds(
            session, transport, body.device_id, values
        )
    except PartialDispatchError:
        # Stored thresholds stay even when publishing fails
        await session.commit()
        raise
    await session.commit()
    return {
        "device": DeviceOut.model_validate(device).model_dump(mode="json", by_alias=True),
        "command": result.model_dump(mode="json", by_alias=True),
    }


@router.post("/alarm-off", response_model=CommandResult)
async def alarm_off(
    body: DeviceCommand | None = None,
    transport: MQTTTransport | None = Depends(get_transport),
) -> CommandResult:
    body = body or DeviceCommand()
    return command_service.silence_alarm(transport, body.device_id)


@router.post("/change-rate", response_model=CommandResult)
async def change_rate(
    body: ChangeRateCommand,
    transport: MQTTTransport | None = Depends(get_transport),
) -> CommandResult:
    """Change how often a device publishes readings."""
    return command_service.set_publish_interval(transport, body.device_id, body.seconds)


@router.post("/send-command", response_model=CommandResult)
async def send_command(
    body: CustomCommand,
    transport: MQTTTransport | None = Depends(get_transport),
) -> CommandResult:
    return command_service.send_custom_command(transport, body.device_id, body.command, body.params)
