"""FastAPI dependencies for process-wide singletons."""

from fastapi import Request

from airsense.live import LiveBroadcaster, broadcaster
from airsense.mqtt import MQTTTransport


def get_transport(request: Request) -> MQTTTransport | None:
    """The running MQTT transport, or None when MQTT is disabled."""
    return getattr(request.app.state, "transport", None)


def get_broadcaster() -> LiveBroadcaster:
    return broadcaster
