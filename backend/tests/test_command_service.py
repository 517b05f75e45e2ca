"""Tests for outbound device commands."""

import pytest

from airsense.config import (
    TOPIC_ALARM_OFF,
    TOPIC_CHANGE_RATE,
    TOPIC_CHANGE_THRESHOLD,
    TOPIC_COMMAND,
    TOPIC_GET_DATA,
)
from airsense.errors import PartialDispatchError, TransportUnavailableError, ValidationError
from airsense.services import command_service, device_service


def test_request_data_publishes_get_data(transport):
    result = command_service.request_data(transport, "esp-1")

    topic, payload = transport.published[0]
    assert topic == TOPIC_GET_DATA
    assert payload["deviceId"] == "esp-1"
    assert payload["command"] == "GET_DATA"
    assert payload["timestamp"].endswith("Z")
    assert result.topic == TOPIC_GET_DATA
    assert result.payload == payload


@pytest.mark.parametrize(
    "send",
    [
        lambda t: command_service.request_data(t, "esp-1"),
        lambda t: command_service.silence_alarm(t, "esp-1"),
        lambda t: command_service.set_publish_interval(t, "esp-1", 30),
        lambda t: command_service.send_custom_command(t, "esp-1", "REBOOT"),
    ],
)
def test_commands_require_connected_transport(transport, send):
    transport.connected = False
    with pytest.raises(TransportUnavailableError):
        send(transport)
    assert transport.published == []


def test_missing_transport_is_unavailable():
    with pytest.raises(TransportUnavailableError):
        command_service.request_data(None, "esp-1")


def test_silence_alarm(transport):
    command_service.silence_alarm(transport, "esp-1")
    topic, payload = transport.published[0]
    assert topic == TOPIC_ALARM_OFF
    assert payload["command"] == "ALARM_OFF"


class TestPublishInterval:
    def test_interval_is_sent_in_milliseconds(self, transport):
        command_service.set_publish_interval(transport, "esp-1", 30)
        topic, payload = transport.published[0]
        assert topic == TOPIC_CHANGE_RATE
        assert payload["publish_ms"] == 30000

    @pytest.mark.parametrize("seconds", [2, 600])
    def test_bounds_are_inclusive(self, transport, seconds):
        command_service.set_publish_interval(transport, "esp-1", seconds)
        assert len(transport.published) == 1

    @pytest.mark.parametrize("seconds", [0, 1, 601, 3600])
    def test_out_of_bounds_rejected(self, transport, seconds):
        with pytest.raises(ValidationError):
            command_service.set_publish_interval(transport, "esp-1", seconds)
        assert transport.published == []


def test_custom_command_carries_params(transport):
    command_service.send_custom_command(transport, "esp-1", "CALIBRATE", {"sensor": "mq2"})
    topic, payload = transport.published[0]
    assert topic == TOPIC_COMMAND
    assert payload["command"] == "CALIBRATE"
    assert payload["params"] == {"sensor": "mq2"}


class TestSetThresholds:
    async def test_persists_then_publishes(self, session, transport):
        device, result = await command_service.set_thresholds(
            session, transport, "esp-1", {"mq135_threshold": 800.0, "humidity_threshold": 75.0}
        )

        assert device.mq135_threshold == 800
        assert device.humidity_threshold == 75
        assert device.mq2_threshold == 1000

        topic, payload = transport.published[0]
        assert topic == TOPIC_CHANGE_THRESHOLD
        assert payload["THRESHOLD34"] == 800.0
        assert payload["THRESHOLD_HUMD"] == 75.0
        assert "THRESHOLD35" not in payload
        assert result.device_id == "esp-1"

    @pytest.mark.parametrize(
        "values",
        [
            {"humidity_threshold": 150.0},
            {"humidity_threshold": -1.0},
            {"temperature_threshold": -60.0},
            {"temperature_threshold": 120.0},
            {"mq2_threshold": -5.0},
            {"co2_threshold": 5.0},
            {},
        ],
    )
    async def test_invalid_values_change_nothing(self, session, transport, values):
        await device_service.resolve_device(session, "esp-1")

        with pytest.raises(ValidationError):
            await command_service.set_thresholds(session, transport, "esp-1", values)

        device = await device_service.get_device(session, "esp-1")
        assert device.humidity_threshold == 0
        assert device.mq2_threshold == 1000
        assert transport.published == []

    async def test_disconnected_transport_persists_nothing(self, session, transport):
        await device_service.resolve_device(session, "esp-1")
        transport.connected = False

        with pytest.raises(TransportUnavailableError) as exc_info:
            await command_service.set_thresholds(session, transport, "esp-1", {"mq2_threshold": 500.0})
        assert not isinstance(exc_info.value, PartialDispatchError)

        device = await device_service.get_device(session, "esp-1")
        assert device.mq2_threshold == 1000

    async def test_publish_failure_after_persist_is_partial(self, session, transport):
        transport.fail_publish = True

        with pytest.raises(PartialDispatchError) as exc_info:
            await command_service.set_thresholds(session, transport, "esp-1", {"mq2_threshold": 500.0})

        assert exc_info.value.device.mq2_threshold == 500
        device = await device_service.get_device(session, "esp-1")
        assert device.mq2_threshold == 500
