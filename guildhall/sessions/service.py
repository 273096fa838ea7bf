"""
Session management service.

Coordinates the session repository, Discord webhook announcements and the
start-notification scheduler. Request handlers call into this module and map
raised SessionErrors to responses.

Repository errors propagate to the caller. Notification failures are logged
and never fail the mutation that triggered them.
"""

import logging
from collections.abc import Mapping

import sentry_sdk

from ..enums import NotificationEvent
from ..errors import NotFoundError
from ..notifications.messages import build_session_payload
from ..notifications.scheduler import StartNotificationScheduler
from ..notifications.webhook import DiscordWebhookClient
from ..urls import build_session_url
from .capacity import ensure_guild_scope
from .models import (
    Guild,
    Participant,
    ParticipationUpdate,
    Session,
    SessionDraft,
    SessionPatch,
)
from .repository import SessionRepository

logger = logging.getLogger(__name__)


class SessionService:
    """Guild-scoped session operations with their notification side effects."""

    def __init__(
        self,
        repository: SessionRepository,
        notifier: StartNotificationScheduler,
        webhook: DiscordWebhookClient,
        base_url: str | None = None,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._webhook = webhook
        self._base_url = base_url

    def session_url(self, guild: Guild, session: Session) -> str | None:
        return build_session_url(self._base_url, guild.slug, session.id)

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_sessions(self, guild: Guild) -> list[Session]:
        return await self._repository.list_sessions(guild.id)

    async def get_session(self, guild: Guild, session_id: str) -> Session:
        """
        Raises:
            NotFoundError: If the session does not exist
            ForbiddenError: If it belongs to another guild
        """
        session = await self._repository.get_session(session_id)
        if session is None:
            raise NotFoundError()
        ensure_guild_scope(session, guild.id)
        return session

    # =========================================================================
    # Mutations
    # =========================================================================

    async def create_session(
        self,
        guild: Guild,
        payload: SessionDraft | Mapping,
        creator_id: str,
        creator_name: str | None = None,
    ) -> Session:
        draft = (
            payload
            if isinstance(payload, SessionDraft)
            else SessionDraft.from_payload(payload)
        )
        result = await self._repository.create_session(
            draft, creator_id=creator_id, guild_id=guild.id
        )
        logger.info(f"Created session {result.session.id} in guild {guild.id}")

        settings = guild.notification_settings
        if settings.on_session_create:
            await self._announce(
                NotificationEvent.created, guild, result.session, creator_name
            )
        if result.activated and settings.on_session_activate:
            await self._announce(NotificationEvent.activated, guild, result.session)

        self._reschedule(guild, result.session)
        return result.session

    async def update_session(
        self, guild: Guild, session_id: str, payload: SessionPatch | Mapping
    ) -> Session:
        patch = (
            payload
            if isinstance(payload, SessionPatch)
            else SessionPatch.from_payload(payload)
        )
        result = await self._repository.update_session(
            session_id, patch, guild_id=guild.id
        )

        if result.activated and guild.notification_settings.on_session_activate:
            await self._announce(NotificationEvent.activated, guild, result.session)

        self._reschedule(guild, result.session)
        return result.session

    async def join_session(
        self,
        guild: Guild,
        session_id: str,
        participant: Participant,
    ) -> Session:
        result = await self._repository.join_session(
            session_id, participant, guild_id=guild.id
        )
        logger.info(
            f"User {participant.user_id} joined session {session_id} "
            f"({len(result.session.participants)}/{result.session.max_players})"
        )

        settings = guild.notification_settings
        if settings.on_session_join:
            await self._announce(
                NotificationEvent.joined,
                guild,
                result.session,
                participant.display_name,
            )
        if result.activated and settings.on_session_activate:
            await self._announce(NotificationEvent.activated, guild, result.session)

        self._reschedule(guild, result.session)
        return result.session

    async def leave_session(self, guild: Guild, session_id: str, user_id: str) -> Session:
        result = await self._repository.leave_session(
            session_id, user_id, guild_id=guild.id
        )
        logger.info(f"User {user_id} left session {session_id}")
        self._reschedule(guild, result.session)
        return result.session

    async def update_participation(
        self,
        guild: Guild,
        session_id: str,
        user_id: str,
        payload: ParticipationUpdate | Mapping,
    ) -> Session:
        update = (
            payload
            if isinstance(payload, ParticipationUpdate)
            else ParticipationUpdate.from_payload(payload)
        )
        result = await self._repository.update_participation(
            session_id,
            user_id,
            status=update.status,
            join_start_at=update.join_start_at,
            join_end_at=update.join_end_at,
            guild_id=guild.id,
        )
        self._reschedule(guild, result.session)
        return result.session

    async def delete_session(self, guild: Guild, session_id: str) -> Session:
        """
        Delete the session, then cancel its start notification.

        A failed delete leaves the pending notification armed.

        Raises:
            NotFoundError: If there was nothing to delete
            ForbiddenError: If the session belongs to another guild
        """
        removed = await self._repository.delete_session(session_id, guild_id=guild.id)
        if removed is None:
            raise NotFoundError()

        self._notifier.cancel(guild.id, session_id)
        logger.info(f"Deleted session {session_id} from guild {guild.id}")
        return removed

    # =========================================================================
    # Notifications
    # =========================================================================

    async def _announce(
        self,
        event: NotificationEvent,
        guild: Guild,
        session: Session,
        actor_name: str | None = None,
    ) -> None:
        if not guild.webhook_url:
            return
        try:
            payload = build_session_payload(
                event,
                session,
                guild_name=guild.name,
                session_url=self.session_url(guild, session),
                actor_name=actor_name,
            )
            await self._webhook.send(payload, guild.webhook_url)
        except Exception as e:
            logger.error(f"Failed to announce {event.value} for session {session.id}: {e}")
            sentry_sdk.capture_exception(e)

    def _reschedule(self, guild: Guild, session: Session) -> None:
        try:
            self._notifier.schedule(
                guild.id,
                session,
                webhook_url=guild.webhook_url,
                settings=guild.notification_settings,
                session_url=self.session_url(guild, session),
                guild_name=guild.name,
            )
        except Exception as e:
            logger.error(f"Failed to schedule start notification for {session.id}: {e}")
            sentry_sdk.capture_exception(e)
