"""Tests for SessionService notification wiring.

The repository is real (in-memory); the webhook client and the start
scheduler are mocks so each test can assert which messages went out.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from guildhall.enums import SessionStatus
from guildhall.errors import ForbiddenError, NotFoundError, ValidationError
from guildhall.sessions.memory_store import InMemorySessionRepository
from guildhall.sessions.models import Guild, NotificationSettings, Participant
from guildhall.sessions.service import SessionService

WEBHOOK_URL = "https://discord.com/api/webhooks/1/token"


@pytest.fixture
def guild():
    return Guild(id="g1", name="Raiders", slug="raiders", webhook_url=WEBHOOK_URL)


@pytest.fixture
def webhook():
    mock = MagicMock()
    mock.send = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def service(webhook, notifier):
    return SessionService(
        InMemorySessionRepository(),
        notifier=notifier,
        webhook=webhook,
        base_url="https://app.example.com",
    )


def sent_summaries(webhook) -> list[str]:
    return [call.args[0]["content"] for call in webhook.send.call_args_list]


class TestCreate:
    @pytest.mark.asyncio
    async def test_announces_and_schedules(self, service, guild, webhook, notifier):
        session = await service.create_session(
            guild,
            {"title": "Friday Raid", "maxPlayers": 2},
            creator_id="u-owner",
            creator_name="Ada",
        )

        webhook.send.assert_awaited_once()
        payload, url = webhook.send.call_args.args
        assert url == WEBHOOK_URL
        assert payload["content"] == (
            "🆕 New session in Raiders: Friday Raid\n"
            f"https://app.example.com/g/raiders/sessions/{session.id}"
        )
        assert payload["embeds"][0]["description"].startswith("Ada created")

        notifier.schedule.assert_called_once()
        assert notifier.schedule.call_args.args == ("g1", session)

    @pytest.mark.asyncio
    async def test_invalid_payload_raises_before_storing(self, service, guild, webhook):
        with pytest.raises(ValidationError):
            await service.create_session(
                guild, {"title": "ab", "maxPlayers": 2}, creator_id="u-owner"
            )

        assert await service.list_sessions(guild) == []
        webhook.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_respects_disabled_create_notifications(self, service, webhook):
        quiet = Guild(
            id="g1",
            name="Raiders",
            slug="raiders",
            webhook_url=WEBHOOK_URL,
            notification_settings=NotificationSettings(on_session_create=False),
        )

        await service.create_session(
            quiet, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )

        webhook.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_webhook_no_announcement(self, service, webhook):
        bare = Guild(id="g1", name="Raiders", slug="raiders")

        await service.create_session(
            bare, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )

        webhook.send.assert_not_awaited()


class TestJoin:
    @pytest.mark.asyncio
    async def test_join_that_fills_sends_joined_then_activated(
        self, service, guild, webhook
    ):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )
        await service.join_session(
            guild, session.id, Participant(user_id="u1", display_name="Ada")
        )
        webhook.send.reset_mock()

        updated = await service.join_session(
            guild, session.id, Participant(user_id="u2", display_name="Grace")
        )

        assert updated.status == SessionStatus.active
        summaries = sent_summaries(webhook)
        assert len(summaries) == 2
        assert summaries[0].startswith("👥 Someone joined in Raiders")
        assert summaries[1].startswith("✅ Session ready in Raiders")

    @pytest.mark.asyncio
    async def test_webhook_failure_does_not_fail_join(self, service, guild, webhook):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )
        webhook.send.side_effect = RuntimeError("boom")

        updated = await service.join_session(guild, session.id, Participant(user_id="u1"))

        assert updated.participant_ids == ["u1"]

    @pytest.mark.asyncio
    async def test_scheduler_failure_does_not_fail_join(
        self, service, guild, notifier
    ):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )
        notifier.schedule.side_effect = RuntimeError("boom")

        updated = await service.join_session(guild, session.id, Participant(user_id="u1"))

        assert updated.participant_ids == ["u1"]


class TestLeaveAndUpdate:
    @pytest.mark.asyncio
    async def test_leave_sends_nothing_but_reschedules(
        self, service, guild, webhook, notifier
    ):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )
        await service.join_session(guild, session.id, Participant(user_id="u1"))
        webhook.send.reset_mock()
        notifier.schedule.reset_mock()

        await service.leave_session(guild, session.id, "u1")

        webhook.send.assert_not_awaited()
        notifier.schedule.assert_called_once()

    @pytest.mark.asyncio
    async def test_forcing_active_announces_activation(self, service, guild, webhook):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 4}, creator_id="u-owner"
        )
        webhook.send.reset_mock()

        await service.update_session(guild, session.id, {"status": "active"})

        assert sent_summaries(webhook) == [
            "✅ Session ready in Raiders: Friday Raid\n"
            f"https://app.example.com/g/raiders/sessions/{session.id}"
        ]

    @pytest.mark.asyncio
    async def test_update_participation_from_payload(self, service, guild):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 4}, creator_id="u-owner"
        )
        await service.join_session(guild, session.id, Participant(user_id="u1"))

        updated = await service.update_participation(
            guild, session.id, "u1", {"status": "maybe"}
        )

        assert updated.get_participant("u1").status.value == "maybe"


class TestScopeAndDelete:
    @pytest.mark.asyncio
    async def test_get_from_other_guild_is_forbidden(self, service, guild):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )
        other = Guild(id="g2", name="Others", slug="others")

        with pytest.raises(ForbiddenError):
            await service.get_session(other, session.id)

    @pytest.mark.asyncio
    async def test_get_unknown_is_not_found(self, service, guild):
        with pytest.raises(NotFoundError):
            await service.get_session(guild, "missing")

    @pytest.mark.asyncio
    async def test_delete_cancels_start_notification(self, service, guild, notifier):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )

        await service.delete_session(guild, session.id)

        notifier.cancel.assert_called_once_with("g1", session.id)
        with pytest.raises(NotFoundError):
            await service.get_session(guild, session.id)

    @pytest.mark.asyncio
    async def test_delete_unknown_is_not_found(self, service, guild, notifier):
        with pytest.raises(NotFoundError):
            await service.delete_session(guild, "missing")

        notifier.cancel.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_from_other_guild_keeps_start_notification(
        self, service, guild, notifier
    ):
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 2}, creator_id="u-owner"
        )
        other = Guild(id="g2", name="Others", slug="others")

        with pytest.raises(ForbiddenError):
            await service.delete_session(other, session.id)

        notifier.cancel.assert_not_called()
        assert (await service.get_session(guild, session.id)).id == session.id


class TestEventGating:
    @pytest.mark.asyncio
    async def test_joined_announcement_can_be_disabled(self, service, webhook):
        guild = Guild(
            id="g1",
            name="Raiders",
            slug="raiders",
            webhook_url=WEBHOOK_URL,
            notification_settings=NotificationSettings(on_session_join=False),
        )
        session = await service.create_session(
            guild, {"title": "Friday Raid", "maxPlayers": 1}, creator_id="u-owner"
        )
        webhook.send.reset_mock()

        await service.join_session(guild, session.id, Participant(user_id="u1"))

        summaries = sent_summaries(webhook)
        assert len(summaries) == 1
        assert summaries[0].startswith("✅ Session ready")
