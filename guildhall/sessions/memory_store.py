"""In-process session repository.

Keeps sessions in a dict. A single asyncio.Lock serialises every mutation,
which gives the check-then-write atomicity a join needs within one process.
"""

import asyncio
from datetime import datetime

from ..enums import ParticipantStatus
from ..errors import NotFoundError
from .capacity import (
    apply_join,
    apply_leave,
    apply_participation,
    apply_update,
    ensure_guild_scope,
    new_session,
)
from .models import Participant, Session, SessionDraft, SessionPatch, SessionResult
from .repository import SessionRepository


class InMemorySessionRepository(SessionRepository):
    """Session store for tests and single-process development."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    def _load(self, session_id: str, guild_id: str | None) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError()
        ensure_guild_scope(session, guild_id)
        return session

    def _store(self, result: SessionResult) -> SessionResult:
        self._sessions[result.session.id] = result.session
        return result

    async def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    async def list_sessions(self, guild_id: str | None = None) -> list[Session]:
        sessions = [
            s
            for s in self._sessions.values()
            if guild_id is None or s.guild_id == guild_id
        ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    async def create_session(
        self,
        draft: SessionDraft,
        creator_id: str | None = None,
        guild_id: str | None = None,
    ) -> SessionResult:
        async with self._lock:
            session = new_session(draft, creator_id=creator_id, guild_id=guild_id)
            return self._store(SessionResult(session=session, activated=False))

    async def update_session(
        self, session_id: str, patch: SessionPatch, guild_id: str | None = None
    ) -> SessionResult:
        async with self._lock:
            session = self._load(session_id, guild_id)
            return self._store(apply_update(session, patch))

    async def delete_session(
        self, session_id: str, guild_id: str | None = None
    ) -> Session | None:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            ensure_guild_scope(session, guild_id)
            return self._sessions.pop(session_id)

    async def join_session(
        self,
        session_id: str,
        participant: Participant,
        guild_id: str | None = None,
    ) -> SessionResult:
        async with self._lock:
            session = self._load(session_id, guild_id)
            return self._store(apply_join(session, participant))

    async def leave_session(
        self, session_id: str, user_id: str, guild_id: str | None = None
    ) -> SessionResult:
        async with self._lock:
            session = self._load(session_id, guild_id)
            return self._store(apply_leave(session, user_id))

    async def update_participation(
        self,
        session_id: str,
        user_id: str,
        status: ParticipantStatus | None = None,
        join_start_at: datetime | None = None,
        join_end_at: datetime | None = None,
        guild_id: str | None = None,
    ) -> SessionResult:
        async with self._lock:
            session = self._load(session_id, guild_id)
            return self._store(
                apply_participation(
                    session,
                    user_id,
                    status=status,
                    join_start_at=join_start_at,
                    join_end_at=join_end_at,
                )
            )
