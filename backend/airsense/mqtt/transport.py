"""paho-mqtt client wrapper.

paho runs its network loop on its own thread. Inbound messages are handed to
a single async handler, scheduled onto the application event loop captured
in `connect()`. The transport knows nothing about services.
"""

import asyncio
import logging
import ssl
from collections.abc import Awaitable, Callable
from concurrent.futures import Future

import paho.mqtt.client as mqtt

from airsense.config import (
    MQTT_BROKER_HOST,
    MQTT_BROKER_PORT,
    MQTT_CLIENT_ID,
    MQTT_PASSWORD,
    MQTT_USE_TLS,
    MQTT_USERNAME,
    TOPIC_SUBSCRIBE,
)
from airsense.errors import TransportUnavailableError

logger = logging.getLogger("airsense.mqtt")

MessageHandler = Callable[[str, bytes], Awaitable[None]]

KEEPALIVE_SECONDS = 60


class MQTTTransport:
    """Connection to the broker, one wildcard subscription, one message handler."""

    def __init__(
        self,
        broker_host: str = MQTT_BROKER_HOST,
        broker_port: int = MQTT_BROKER_PORT,
        username: str | None = MQTT_USERNAME,
        password: str | None = MQTT_PASSWORD,
        client_id: str = MQTT_CLIENT_ID,
        subscription: str = TOPIC_SUBSCRIBE,
        use_tls: bool = MQTT_USE_TLS,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = client_id
        self.subscription = subscription
        self.use_tls = use_tls

        self._client: mqtt.Client | None = None
        self._connected = False
        self._closing = False
        self._handler: MessageHandler | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    def connect(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Start connecting in the background; paho keeps reconnecting on its own."""
        self._loop = loop or asyncio.get_running_loop()
        self._closing = False

        self._client = mqtt.Client(
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

        if self.username and self.password:
            self._client.username_pw_set(self.username, self.password)
        if self.use_tls:
            self._client.tls_set(cert_reqs=ssl.CERT_REQUIRED)
        self._client.reconnect_delay_set(min_delay=1, max_delay=30)

        logger.info("[MQTT] Connecting to %s:%d", self.broker_host, self.broker_port)
        self._client.connect_async(self.broker_host, self.broker_port, keepalive=KEEPALIVE_SECONDS)
        self._client.loop_start()

    def disconnect(self) -> None:
        self._closing = True
        if self._client is not None:
            self._client.disconnect()
            self._client.loop_stop()
        self._connected = False
        logger.info("[MQTT] Disconnected from broker")

    @property
    def is_connected(self) -> bool:
        return self._connected

    def status(self) -> dict:
        return {
            "connected": self._connected,
            "broker": f"{self.broker_host}:{self.broker_port}",
            "subscription": self.subscription,
        }

    def publish(self, topic: str, payload: bytes, qos: int = 1) -> None:
        """Hand a message to paho. Raises TransportUnavailableError if it is refused."""
        if self._client is None or not self._connected:
            raise TransportUnavailableError("MQTT broker is not connected")

        info = self._client.publish(topic, payload, qos=qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportUnavailableError(
                f"Publish to {topic} rejected: {mqtt.error_string(info.rc)}"
            )

    # --- paho callbacks (network thread) ---

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            self._connected = False
            logger.error("[MQTT] Connection refused: %s", reason_code)
            return

        self._connected = True
        logger.info("[MQTT] Connected to broker")
        client.subscribe(self.subscription, qos=1)
        logger.info("[MQTT] Subscribed to %s", self.subscription)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        self._connected = False
        if self._closing:
            return
        logger.warning("[MQTT] Disconnected (%s), reconnecting", reason_code)

    def _on_message(self, client, userdata, msg):
        if self._handler is None or self._loop is None:
            return
        future = asyncio.run_coroutine_threadsafe(
            self._handler(msg.topic, msg.payload), self._loop
        )
        future.add_done_callback(self._log_handler_failure)

    @staticmethod
    def _log_handler_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("[MQTT] Message handler failed: %s", exc)
