"""MQTT broker connectivity."""

from airsense.mqtt.transport import MessageHandler, MQTTTransport

__all__ = ["MQTTTransport", "MessageHandler"]
