#!/usr/bin/env python3
"""Publish a sample device message to the broker, as a device would."""

import argparse
import json
import sys
import time
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import paho.mqtt.client as mqtt

from airsense.config import (
    DEFAULT_DEVICE_ID,
    MQTT_BROKER_HOST,
    MQTT_BROKER_PORT,
    MQTT_PASSWORD,
    MQTT_USE_TLS,
    MQTT_USERNAME,
    TOPIC_ALERT,
    TOPIC_DATA,
    TOPIC_STATUS,
)

SAMPLES = {
    "data": (
        TOPIC_DATA,
        {"temp": 21.75, "humidity": 70, "mq135": 1036, "mq2": 679, "dust": 146, "publish_ms": 2000},
    ),
    "alert": (TOPIC_ALERT, {"event": "gas_leak", "message": "Gas concentration critical", "mq2": 2400}),
    "online": (TOPIC_STATUS, {"status": "online", "firmwareVersion": "1.2.0"}),
    "offline": (TOPIC_STATUS, {"status": "offline"}),
}


def publish(kind: str, device_id: str) -> None:
    topic, body = SAMPLES[kind]
    payload = json.dumps({"deviceId": device_id, **body})

    client = mqtt.Client(
        client_id=f"airsense-sample-{int(time.time())}",
        protocol=mqtt.MQTTv311,
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
    )
    if MQTT_USERNAME and MQTT_PASSWORD:
        client.username_pw_set(MQTT_USERNAME, MQTT_PASSWORD)
    if MQTT_USE_TLS:
        client.tls_set()

    print(f"Connecting to {MQTT_BROKER_HOST}:{MQTT_BROKER_PORT}")
    client.connect(MQTT_BROKER_HOST, MQTT_BROKER_PORT, keepalive=60)
    client.loop_start()

    print(f"Publishing to {topic}: {payload}")
    info = client.publish(topic, payload, qos=1)
    info.wait_for_publish(timeout=5)
    print("Published." if info.is_published() else "Publish not acknowledged.")

    client.loop_stop()
    client.disconnect()


def main():
    parser = argparse.ArgumentParser(description="Publish a sample AirSense device message")
    parser.add_argument("kind", choices=sorted(SAMPLES), help="Message to publish")
    parser.add_argument("-d", "--device", default=DEFAULT_DEVICE_ID, help="Device id")
    args = parser.parse_args()

    publish(args.kind, args.device)


if __name__ == "__main__":
    main()
