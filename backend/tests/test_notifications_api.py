"""Tests for notification API endpoints."""

import pytest
from httpx import AsyncClient


async def raise_notification(client: AsyncClient, category="high_pm25", severity="warning"):
    response = await client.post(
        "/api/notifications/esp-1",
        json={"category": category, "message": f"{category} raised", "severity": severity},
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_manual_notification_goes_through_policy(client: AsyncClient):
    data = await raise_notification(client)
    assert data["delivered"] is True
    assert data["notification"]["category"] == "high_pm25"
    assert data["notification"]["isRead"] is False

    await client.put("/api/notifications/esp-1/toggle", json={"enabled": False})
    data = await raise_notification(client)
    assert data["delivered"] is False
    assert data["notification"] is None


@pytest.mark.asyncio
async def test_list_and_filters(client: AsyncClient):
    await raise_notification(client, "high_pm25", "warning")
    await raise_notification(client, "gas_leak", "critical")

    response = await client.get("/api/notifications/esp-1")
    assert response.status_code == 200
    data = response.json()
    assert data["totalCount"] == 2
    assert data["notifications"][0]["category"] == "gas_leak"

    response = await client.get("/api/notifications/esp-1", params={"severity": "critical"})
    assert [n["category"] for n in response.json()["notifications"]] == ["gas_leak"]


@pytest.mark.asyncio
async def test_unknown_device_is_404(client: AsyncClient):
    response = await client.get("/api/notifications/ghost")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_read_state_flow(client: AsyncClient):
    first = (await raise_notification(client))["notification"]
    await raise_notification(client)

    response = await client.get("/api/notifications/esp-1/unread-count")
    assert response.json() == {"deviceId": "esp-1", "unreadCount": 2}

    response = await client.put(f"/api/notifications/{first['id']}/read")
    assert response.status_code == 200
    assert response.json()["isRead"] is True

    response = await client.get("/api/notifications/esp-1", params={"isRead": "false"})
    assert response.json()["totalCount"] == 1

    response = await client.put("/api/notifications/esp-1/read-all")
    assert response.json()["updated"] == 1

    response = await client.get("/api/notifications/esp-1/unread-count")
    assert response.json()["unreadCount"] == 0


@pytest.mark.asyncio
async def test_mark_unknown_notification_is_404(client: AsyncClient):
    response = await client.put("/api/notifications/9999/read")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete(client: AsyncClient):
    notification = (await raise_notification(client))["notification"]

    response = await client.delete(f"/api/notifications/{notification['id']}")
    assert response.status_code == 204

    response = await client.get("/api/notifications/esp-1")
    assert response.json()["totalCount"] == 0


@pytest.mark.asyncio
async def test_delete_old_keeps_recent(client: AsyncClient):
    await raise_notification(client)
    response = await client.delete("/api/notifications/esp-1/old", params={"days": 30})
    assert response.status_code == 200
    assert response.json()["deleted"] == 0


@pytest.mark.asyncio
async def test_stats(client: AsyncClient):
    await raise_notification(client, "high_pm25")
    await raise_notification(client, "high_pm25")
    await raise_notification(client, "high_mq2")

    response = await client.get("/api/notifications/esp-1/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["byCategory"][0] == {"category": "high_pm25", "count": 2, "unreadCount": 2}
    assert data["periodDays"] == 7


@pytest.mark.asyncio
async def test_settings_defaults_and_update(client: AsyncClient):
    await client.get("/api/devices/esp-1")

    response = await client.get("/api/notifications/esp-1/settings")
    assert response.status_code == 200
    data = response.json()
    assert data["enabled"] is True
    assert data["maxNotificationsPerHour"] == 10
    assert data["quietHoursEnabled"] is False

    response = await client.put(
        "/api/notifications/esp-1/settings",
        json={
            "quiet_hours_enabled": True,
            "quiet_hours_start": "22:00",
            "quiet_hours_end": "07:00",
            "pm25": False,
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["quietHoursStart"] == "22:00"
    assert data["pm25"] is False
    assert data["mq2"] is True


@pytest.mark.asyncio
async def test_settings_reject_malformed_quiet_hours(client: AsyncClient):
    await client.get("/api/devices/esp-1")
    response = await client.put(
        "/api/notifications/esp-1/settings", json={"quiet_hours_start": "25:00"}
    )
    assert response.status_code == 422
