"""Tests for the notification delivery policy and notification management."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from airsense.errors import NotFoundError, ValidationError
from airsense.models import Notification, NotificationSettings, Reading
from airsense.services import device_service, notification_service, readings_service
from airsense.services.normalizer import NormalizedReading
from airsense.services.notification_service import (
    category_toggle,
    deliver_candidate,
    dispatch_candidates,
    is_in_quiet_hours,
)
from airsense.services.threshold_service import CandidateEvent

T0 = datetime(2026, 1, 15, 12, 0, 0)

PM25_EVENT = CandidateEvent(category="high_pm25", message="PM2.5 high", severity="warning")
MQ135_EVENT = CandidateEvent(category="high_mq135", message="Gas 1 high", severity="warning")


@pytest.fixture
async def device(session):
    return await device_service.resolve_device(session, "esp-1", now=T0)


class TestQuietHours:
    @pytest.mark.parametrize("at", ["23:30", "02:00", "06:59", "22:00", "07:00"])
    def test_inside_overnight_window(self, at):
        assert is_in_quiet_hours("22:00", "07:00", at) is True

    @pytest.mark.parametrize("at", ["07:01", "21:59", "12:00"])
    def test_outside_overnight_window(self, at):
        assert is_in_quiet_hours("22:00", "07:00", at) is False

    def test_same_day_window(self):
        assert is_in_quiet_hours("13:00", "14:00", "13:30") is True
        assert is_in_quiet_hours("13:00", "14:00", "12:00") is False
        assert is_in_quiet_hours("13:00", "14:00", "15:00") is False

    def test_invalid_time_raises(self):
        with pytest.raises(ValidationError):
            is_in_quiet_hours("25:00", "07:00", "01:00")


def test_category_toggles():
    assert category_toggle("high_pm25") == "pm25"
    assert category_toggle("pm25_alert") == "pm25"
    assert category_toggle("temp_alert") == "temperature"
    assert category_toggle("device_offline") == "device_offline"
    assert category_toggle("gas_leak") is None


class TestSettings:
    async def test_defaults_are_created_all_enabled(self, session, device):
        settings = await notification_service.get_settings(session, device)

        assert settings.enabled is True
        assert settings.pm25 and settings.mq135 and settings.device_offline
        assert settings.quiet_hours_enabled is False
        assert settings.max_notifications_per_hour == 10

    async def test_get_settings_is_lazy_singleton(self, session, device):
        first = await notification_service.get_settings(session, device)
        second = await notification_service.get_settings(session, device)
        assert first.id == second.id

    async def test_device_wide_settings_row_is_unique(self, session, device):
        await notification_service.get_settings(session, device, now=T0)
        session.add(
            NotificationSettings(
                device_pk=device.id,
                user_id=None,
                max_notifications_per_hour=10,
                created_at=T0,
                updated_at=T0,
            )
        )
        with pytest.raises(IntegrityError):
            await session.flush()
        await session.rollback()

    async def test_get_settings_reuses_row_from_another_session(self, session_factory):
        async with session_factory() as first:
            device = await device_service.resolve_device(first, "esp-2", now=T0)
            created = await notification_service.get_settings(first, device, now=T0)
            await first.commit()

        async with session_factory() as second:
            device = await device_service.get_device(second, "esp-2")
            found = await notification_service.get_settings(second, device)
            total = await second.execute(select(func.count(NotificationSettings.id)))

        assert found.id == created.id
        assert total.scalar_one() == 1

    async def test_update_applies_only_given_fields(self, session, device):
        settings = await notification_service.update_settings(
            session, device, {"pm25": False, "max_notifications_per_hour": 3}
        )
        assert settings.pm25 is False
        assert settings.mq135 is True
        assert settings.max_notifications_per_hour == 3

    async def test_update_rejects_bad_quiet_hours(self, session, device):
        with pytest.raises(ValidationError):
            await notification_service.update_settings(
                session, device, {"quiet_hours_start": "7pm"}
            )

    async def test_update_rejects_unknown_field(self, session, device):
        with pytest.raises(ValidationError):
            await notification_service.update_settings(session, device, {"sms": True})

    async def test_toggle(self, session, device):
        settings = await notification_service.toggle_notifications(session, device, False)
        assert settings.enabled is False


class TestDeliveryPolicy:
    async def test_candidate_is_persisted(self, session, device):
        notification = await deliver_candidate(session, device, PM25_EVENT, now=T0)

        assert notification.id is not None
        assert notification.category == "high_pm25"
        assert notification.severity == "warning"
        assert notification.is_read is False
        assert notification.reading_id is None

    async def test_globally_disabled_drops_everything(self, session, device):
        await notification_service.toggle_notifications(session, device, False)
        assert await deliver_candidate(session, device, PM25_EVENT, now=T0) is None

    async def test_category_toggle_drops_only_that_category(self, session, device):
        await notification_service.update_settings(session, device, {"pm25": False})

        assert await deliver_candidate(session, device, PM25_EVENT, now=T0) is None
        assert await deliver_candidate(session, device, MQ135_EVENT, now=T0) is not None

    async def test_quiet_hours_suppress(self, session, device):
        await notification_service.update_settings(
            session,
            device,
            {"quiet_hours_enabled": True, "quiet_hours_start": "22:00", "quiet_hours_end": "07:00"},
        )

        night = datetime(2026, 1, 15, 23, 30)
        assert await deliver_candidate(session, device, PM25_EVENT, now=night) is None
        assert await deliver_candidate(session, device, PM25_EVENT, now=T0) is not None

    async def test_quiet_hours_ignored_when_disabled(self, session, device):
        await notification_service.update_settings(
            session, device, {"quiet_hours_start": "00:00", "quiet_hours_end": "23:59"}
        )
        assert await deliver_candidate(session, device, PM25_EVENT, now=T0) is not None

    async def test_rate_cap_with_sliding_window(self, session, device):
        await notification_service.update_settings(
            session, device, {"max_notifications_per_hour": 3}
        )

        for _ in range(3):
            assert await deliver_candidate(session, device, PM25_EVENT, now=T0) is not None
        assert await deliver_candidate(session, device, PM25_EVENT, now=T0) is None
        assert (
            await deliver_candidate(session, device, PM25_EVENT, now=T0 + timedelta(minutes=30))
            is None
        )

        later = T0 + timedelta(minutes=61)
        assert await deliver_candidate(session, device, PM25_EVENT, now=later) is not None

    async def test_zero_cap_drops_everything(self, session, device):
        await notification_service.update_settings(
            session, device, {"max_notifications_per_hour": 0}
        )
        assert await deliver_candidate(session, device, PM25_EVENT, now=T0) is None

    async def test_unknown_category_is_not_silenced_by_toggles(self, session, device):
        await notification_service.update_settings(
            session, device, {"pm25": False, "mq135": False, "mq2": False}
        )
        event = CandidateEvent(category="gas_leak", message="Gas!", severity="critical")

        notification = await deliver_candidate(session, device, event, now=T0)
        assert notification.severity == "critical"


class TestDispatch:
    async def test_returns_delivered_pairs_and_commits(self, session, device):
        delivered = await dispatch_candidates(session, device, [PM25_EVENT, MQ135_EVENT], now=T0)

        assert [event.category for event, _ in delivered] == ["high_pm25", "high_mq135"]
        assert all(notification.id for _, notification in delivered)

    async def test_policy_failure_keeps_committed_reading(self, session, device, monkeypatch):
        record = await readings_service.append_reading(
            session, device, NormalizedReading({"pm25": 150}), now=T0
        )
        reading_id = record.id
        await session.commit()

        async def broken(*args, **kwargs):
            raise RuntimeError("policy store unavailable")

        monkeypatch.setattr(notification_service, "deliver_candidate", broken)

        delivered = await dispatch_candidates(session, device, [PM25_EVENT], reading_id=reading_id)
        assert delivered == []

        readings = await session.execute(select(func.count(Reading.id)))
        notifications = await session.execute(select(func.count(Notification.id)))
        assert readings.scalar_one() == 1
        assert notifications.scalar_one() == 0


class TestManagement:
    async def seed(self, session, device):
        for minutes in (0, 10, 20):
            await deliver_candidate(session, device, PM25_EVENT, now=T0 + timedelta(minutes=minutes))
        info = CandidateEvent(category="high_humidity", message="Humid", severity="info")
        await deliver_candidate(session, device, info, now=T0 + timedelta(minutes=30))

    async def test_list_newest_first_with_filters(self, session, device):
        await self.seed(session, device)

        everything = await notification_service.list_notifications(session, device)
        assert [n.category for n in everything][0] == "high_humidity"
        assert len(everything) == 4

        warnings = await notification_service.list_notifications(session, device, severity="warning")
        assert len(warnings) == 3

        humidity = await notification_service.list_notifications(
            session, device, category="high_humidity"
        )
        assert len(humidity) == 1

    async def test_read_state(self, session, device):
        await self.seed(session, device)
        assert await notification_service.count_unread(session, device) == 4

        latest = (await notification_service.list_notifications(session, device, limit=1))[0]
        await notification_service.mark_as_read(session, latest.id)
        assert await notification_service.count_unread(session, device) == 3

        unread = await notification_service.list_notifications(session, device, is_read=False)
        assert latest.id not in {n.id for n in unread}

        assert await notification_service.mark_all_as_read(session, device) == 3
        assert await notification_service.count_unread(session, device) == 0

    async def test_mark_unknown_as_read_raises(self, session):
        with pytest.raises(NotFoundError):
            await notification_service.mark_as_read(session, 9999)

    async def test_delete(self, session, device):
        notification = await deliver_candidate(session, device, PM25_EVENT, now=T0)
        await notification_service.delete_notification(session, notification.id)

        assert await notification_service.list_notifications(session, device) == []
        with pytest.raises(NotFoundError):
            await notification_service.delete_notification(session, notification.id)

    async def test_delete_old(self, session, device):
        await deliver_candidate(session, device, PM25_EVENT, now=T0 - timedelta(days=40))
        await deliver_candidate(session, device, PM25_EVENT, now=T0)

        deleted = await notification_service.delete_old_notifications(session, device, days_old=30, now=T0)
        assert deleted == 1
        assert len(await notification_service.list_notifications(session, device)) == 1

    async def test_stats_by_category(self, session, device):
        await self.seed(session, device)

        stats = await notification_service.notification_stats(
            session, device, days=7, now=T0 + timedelta(hours=1)
        )
        counts = {item.category: (item.count, item.unread_count) for item in stats.by_category}
        assert counts == {"high_pm25": (3, 3), "high_humidity": (1, 1)}
        assert stats.total == 4
        assert stats.unread_total == 4
        assert stats.by_category[0].category == "high_pm25"
