"""Tests for the session start-notification scheduler.

Uses a real APScheduler (in-memory job store) started on the test's event
loop, with the webhook client mocked out.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from guildhall.enums import SessionStatus
from guildhall.notifications.scheduler import (
    ScheduleOutcome,
    StartNotificationScheduler,
    session_key,
)
from guildhall.schedule import AllDaySchedule, NoSchedule, TimedSchedule
from guildhall.sessions.models import NotificationSettings, Participant, Session

WEBHOOK_URL = "https://discord.com/api/webhooks/1/token"
ENABLED = NotificationSettings()


def make_session(schedule, session_id="s1"):
    return Session(
        id=session_id,
        title="Friday Raid",
        max_players=4,
        status=SessionStatus.open,
        created_at=datetime.now(timezone.utc),
        guild_id="g1",
        schedule=schedule,
    )


def starting_in(delta: timedelta) -> TimedSchedule:
    return TimedSchedule(start_at=datetime.now(timezone.utc) + delta)


@pytest.fixture
def webhook():
    mock = MagicMock()
    mock.send = AsyncMock(return_value=True)
    return mock


@pytest_asyncio.fixture
async def notifier(webhook):
    scheduler = StartNotificationScheduler(webhook)
    scheduler.start()
    yield scheduler
    await scheduler.shutdown()


class TestSessionKey:
    def test_combines_guild_and_session(self):
        assert session_key("g1", "s1") == "g1:s1"


class TestSchedule:
    @pytest.mark.asyncio
    async def test_arms_job_for_future_start(self, notifier, webhook):
        schedule = starting_in(timedelta(hours=1))

        outcome = notifier.schedule("g1", make_session(schedule), WEBHOOK_URL, ENABLED)

        assert outcome == ScheduleOutcome.armed
        assert notifier.pending_keys() == ["g1:s1"]
        assert notifier.get_pending("g1", "s1") == schedule.start_at
        webhook.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rescheduling_replaces_existing_job(self, notifier):
        notifier.schedule(
            "g1", make_session(starting_in(timedelta(hours=1))), WEBHOOK_URL, ENABLED
        )
        later = starting_in(timedelta(hours=2))

        notifier.schedule("g1", make_session(later), WEBHOOK_URL, ENABLED)

        assert notifier.pending_keys() == ["g1:s1"]
        assert notifier.get_pending("g1", "s1") == later.start_at

    @pytest.mark.asyncio
    async def test_disabling_cancels_existing_job(self, notifier):
        session = make_session(starting_in(timedelta(hours=1)))
        notifier.schedule("g1", session, WEBHOOK_URL, ENABLED)

        outcome = notifier.schedule(
            "g1", session, WEBHOOK_URL, NotificationSettings(on_session_start=False)
        )

        assert outcome == ScheduleOutcome.disabled
        assert notifier.pending_keys() == []

    @pytest.mark.asyncio
    async def test_missing_webhook_is_disabled(self, notifier):
        outcome = notifier.schedule(
            "g1", make_session(starting_in(timedelta(hours=1))), None, ENABLED
        )

        assert outcome == ScheduleOutcome.disabled
        assert notifier.pending_keys() == []

    @pytest.mark.asyncio
    async def test_unscheduled_session_cancels_existing_job(self, notifier):
        notifier.schedule(
            "g1", make_session(starting_in(timedelta(hours=1))), WEBHOOK_URL, ENABLED
        )

        outcome = notifier.schedule("g1", make_session(NoSchedule()), WEBHOOK_URL, ENABLED)

        assert outcome == ScheduleOutcome.unscheduled
        assert notifier.get_pending("g1", "s1") is None

    @pytest.mark.asyncio
    async def test_past_start_sends_immediately(self, notifier, webhook):
        outcome = notifier.schedule(
            "g1",
            make_session(starting_in(timedelta(minutes=-10))),
            WEBHOOK_URL,
            ENABLED,
            session_url="https://app.example.com/g/raiders/sessions/s1",
            guild_name="Raiders",
        )
        await notifier.wait_for_deliveries()

        assert outcome == ScheduleOutcome.fired
        assert notifier.pending_keys() == []
        webhook.send.assert_awaited_once()
        payload, url = webhook.send.call_args.args
        assert url == WEBHOOK_URL
        assert payload["content"] == (
            "🕒 Starting now in Raiders: Friday Raid\n"
            "https://app.example.com/g/raiders/sessions/s1"
        )

    @pytest.mark.asyncio
    async def test_all_day_session_from_the_past_fires(self, notifier, webhook):
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        day = datetime(
            yesterday.year, yesterday.month, yesterday.day, tzinfo=timezone.utc
        )

        outcome = notifier.schedule(
            "g1", make_session(AllDaySchedule(date=day)), WEBHOOK_URL, ENABLED
        )
        await notifier.wait_for_deliveries()

        assert outcome == ScheduleOutcome.fired
        webhook.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_beyond_timer_limit_is_skipped(self, notifier, webhook, caplog):
        with caplog.at_level(logging.INFO):
            outcome = notifier.schedule(
                "g1", make_session(starting_in(timedelta(days=30))), WEBHOOK_URL, ENABLED
            )

        assert outcome == ScheduleOutcome.beyond_horizon
        assert notifier.pending_keys() == []
        webhook.send.assert_not_awaited()
        assert any("not scheduling" in record.message for record in caplog.records)

    @pytest.mark.asyncio
    async def test_armed_job_fires_and_clears_itself(self, notifier, webhook):
        notifier.schedule(
            "g1",
            make_session(starting_in(timedelta(milliseconds=200))),
            WEBHOOK_URL,
            ENABLED,
        )

        for _ in range(50):
            if webhook.send.await_count:
                break
            await asyncio.sleep(0.05)

        webhook.send.assert_awaited_once()
        assert notifier.pending_keys() == []

    @pytest.mark.asyncio
    async def test_keys_are_independent_per_session(self, notifier):
        notifier.schedule(
            "g1", make_session(starting_in(timedelta(hours=1)), "s1"), WEBHOOK_URL, ENABLED
        )
        notifier.schedule(
            "g1", make_session(starting_in(timedelta(hours=1)), "s2"), WEBHOOK_URL, ENABLED
        )

        assert sorted(notifier.pending_keys()) == ["g1:s1", "g1:s2"]


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_removes_job(self, notifier):
        notifier.schedule(
            "g1", make_session(starting_in(timedelta(hours=1))), WEBHOOK_URL, ENABLED
        )

        assert notifier.cancel("g1", "s1") is True
        assert notifier.pending_keys() == []

    @pytest.mark.asyncio
    async def test_cancel_without_job_is_a_no_op(self, notifier):
        assert notifier.cancel("g1", "missing") is False


class TestDeliver:
    @pytest.mark.asyncio
    async def test_send_failure_is_logged_not_raised(self, webhook, caplog):
        webhook.send.side_effect = RuntimeError("boom")
        notifier = StartNotificationScheduler(webhook)

        with caplog.at_level(logging.ERROR):
            await notifier._deliver(
                key="g1:s1", payload={"content": "x"}, webhook_url=WEBHOOK_URL
            )

        assert any("boom" in record.message for record in caplog.records)

    @pytest.mark.asyncio
    async def test_undelivered_send_logs_warning(self, webhook, caplog):
        webhook.send.return_value = False
        notifier = StartNotificationScheduler(webhook)

        with caplog.at_level(logging.WARNING):
            await notifier._deliver(
                key="g1:s1", payload={"content": "x"}, webhook_url=WEBHOOK_URL
            )

        assert any("not delivered" in record.message for record in caplog.records)


class TestWithoutEventLoop:
    def test_past_start_outside_event_loop_is_logged_not_raised(self, webhook, caplog):
        notifier = StartNotificationScheduler(webhook)

        with caplog.at_level(logging.ERROR):
            outcome = notifier.schedule(
                "g1",
                make_session(starting_in(timedelta(minutes=-10))),
                WEBHOOK_URL,
                ENABLED,
            )

        assert outcome == ScheduleOutcome.fired
        webhook.send.assert_not_called()
        assert any("no running event loop" in record.message for record in caplog.records)


class TestPayloadSnapshot:
    @pytest.mark.asyncio
    async def test_armed_payload_reflects_latest_schedule_call(self, notifier):
        schedule = starting_in(timedelta(hours=1))
        notifier.schedule("g1", make_session(schedule), WEBHOOK_URL, ENABLED)

        fuller = replace(
            make_session(schedule),
            participants=(Participant(user_id="u1"), Participant(user_id="u2")),
        )
        notifier.schedule("g1", fuller, WEBHOOK_URL, ENABLED)

        payload = notifier._scheduler.get_job("g1:s1").kwargs["payload"]
        fields = {f["name"]: f["value"] for f in payload["embeds"][0]["fields"]}
        assert fields["Players"] == "2/4 players • 2 seats left"
