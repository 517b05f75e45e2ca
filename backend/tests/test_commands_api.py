"""Tests for MQTT command endpoints."""

import pytest
from httpx import AsyncClient

from airsense.config import TOPIC_CHANGE_THRESHOLD, TOPIC_GET_DATA


@pytest.mark.asyncio
async def test_status_reports_transport_state(client: AsyncClient):
    response = await client.get("/api/mqtt/status")
    assert response.status_code == 200
    assert response.json()["connected"] is True


@pytest.mark.asyncio
async def test_get_data_defaults_device_id(client: AsyncClient, transport):
    response = await client.post("/api/mqtt/get-data")
    assert response.status_code == 200
    assert response.json()["deviceId"] == "esp32"

    topic, payload = transport.published[0]
    assert topic == TOPIC_GET_DATA
    assert payload["deviceId"] == "esp32"


@pytest.mark.asyncio
async def test_get_data_for_named_device(client: AsyncClient, transport):
    response = await client.post("/api/mqtt/get-data", json={"deviceId": "kitchen"})
    assert response.status_code == 200
    assert transport.published[0][1]["deviceId"] == "kitchen"


@pytest.mark.asyncio
async def test_disconnected_broker_is_503_with_retry_after(client: AsyncClient, transport):
    transport.connected = False

    response = await client.post("/api/mqtt/alarm-off", json={"deviceId": "esp-1"})
    assert response.status_code == 503
    assert "Retry-After" in response.headers


@pytest.mark.asyncio
async def test_change_rate_out_of_bounds_is_400(client: AsyncClient, transport):
    response = await client.post("/api/mqtt/change-rate", json={"deviceId": "esp-1", "seconds": 1})
    assert response.status_code == 400
    assert transport.published == []


@pytest.mark.asyncio
async def test_change_rate(client: AsyncClient, transport):
    response = await client.post("/api/mqtt/change-rate", json={"deviceId": "esp-1", "seconds": 10})
    assert response.status_code == 200
    assert response.json()["payload"]["publish_ms"] == 10000


@pytest.mark.asyncio
async def test_change_threshold_persists_and_publishes(client: AsyncClient, transport):
    response = await client.post(
        "/api/mqtt/change-threshold",
        json={"deviceId": "esp-1", "mq135_threshold": 900, "temperature_threshold": 35},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["device"]["mq135Threshold"] == 900
    assert data["command"]["topic"] == TOPIC_CHANGE_THRESHOLD

    _, payload = transport.published[0]
    assert payload["THRESHOLD34"] == 900
    assert payload["THRESHOLD_TEMP"] == 35


@pytest.mark.asyncio
async def test_change_threshold_validation_error(client: AsyncClient, transport):
    response = await client.post(
        "/api/mqtt/change-threshold", json={"deviceId": "esp-1", "humidity_threshold": 101}
    )
    assert response.status_code == 400
    assert transport.published == []


@pytest.mark.asyncio
async def test_change_threshold_partial_dispatch_keeps_stored_values(client: AsyncClient, transport):
    transport.fail_publish = True

    response = await client.post(
        "/api/mqtt/change-threshold", json={"deviceId": "esp-1", "mq2_threshold": 420}
    )
    assert response.status_code == 503
    assert response.json()["device"]["mq2Threshold"] == 420

    response = await client.get("/api/devices/esp-1")
    assert response.json()["mq2Threshold"] == 420


@pytest.mark.asyncio
async def test_send_custom_command(client: AsyncClient, transport):
    response = await client.post(
        "/api/mqtt/send-command",
        json={"deviceId": "esp-1", "command": "REBOOT", "params": {"delay": 5}},
    )
    assert response.status_code == 200
    assert transport.published[0][1]["params"] == {"delay": 5}
