"""
SQLAlchemy-backed session repository.

Every mutation runs in one transaction that first locks the session row
(SELECT ... FOR UPDATE), applies the pure transition from capacity.py and
writes the difference back. Concurrent joins on the same session therefore
queue on the row lock instead of both seeing a free seat; the unique
(session_id, user_id) constraint backs the duplicate-join check.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection

from ..database import get_transaction
from ..enums import ParticipantStatus, SessionStatus
from ..errors import AlreadyJoinedError, NotFoundError
from ..schedule import schedule_from_dict
from ..tables import session_participants, sessions
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

TransactionFactory = Callable[[], AbstractAsyncContextManager[AsyncConnection]]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_participant(row) -> Participant:
    return Participant(
        user_id=row["user_id"],
        display_name=row["display_name"],
        avatar_url=row["avatar_url"],
        joined_at=_as_utc(row["joined_at"]),
        status=ParticipantStatus(row["status"]),
        join_start_at=_as_utc(row["join_start_at"]),
        join_end_at=_as_utc(row["join_end_at"]),
    )


def _row_to_session(row, participants: list[Participant]) -> Session:
    return Session(
        id=row["session_id"],
        guild_id=row["guild_id"],
        title=row["title"],
        max_players=row["max_players"],
        status=SessionStatus(row["status"]),
        schedule=schedule_from_dict(row["schedule"]),
        created_by=row["created_by"],
        created_at=_as_utc(row["created_at"]),
        participants=tuple(participants),
    )


def _participant_values(participant: Participant) -> dict:
    return {
        "display_name": participant.display_name,
        "avatar_url": participant.avatar_url,
        "status": participant.status,
        "join_start_at": participant.join_start_at,
        "join_end_at": participant.join_end_at,
    }


async def _fetch_participants(
    conn: AsyncConnection, session_ids: list[str]
) -> dict[str, list[Participant]]:
    if not session_ids:
        return {}
    query = (
        select(session_participants)
        .where(session_participants.c.session_id.in_(session_ids))
        .order_by(
            session_participants.c.joined_at, session_participants.c.participant_id
        )
    )
    result = await conn.execute(query)
    grouped: dict[str, list[Participant]] = {sid: [] for sid in session_ids}
    for row in result.mappings():
        grouped[row["session_id"]].append(_row_to_participant(row))
    return grouped


async def fetch_session(
    conn: AsyncConnection, session_id: str, for_update: bool = False
) -> Session | None:
    """Load one session with its participants, optionally locking the row."""
    query = select(sessions).where(sessions.c.session_id == session_id)
    if for_update:
        query = query.with_for_update()
    result = await conn.execute(query)
    row = result.mappings().first()
    if not row:
        return None
    participants = await _fetch_participants(conn, [session_id])
    return _row_to_session(row, participants[session_id])


async def _write_changes(conn: AsyncConnection, before: Session, after: Session) -> None:
    """Persist the difference between two versions of a session."""
    columns = {}
    if after.title != before.title:
        columns["title"] = after.title
    if after.max_players != before.max_players:
        columns["max_players"] = after.max_players
    if after.status != before.status:
        columns["status"] = after.status
    if after.schedule != before.schedule:
        columns["schedule"] = after.schedule.to_dict()
    if columns:
        await conn.execute(
            update(sessions)
            .where(sessions.c.session_id == after.id)
            .values(**columns)
        )

    previous = {p.user_id: p for p in before.participants}
    current = {p.user_id: p for p in after.participants}

    removed = [user_id for user_id in previous if user_id not in current]
    if removed:
        await conn.execute(
            delete(session_participants)
            .where(session_participants.c.session_id == after.id)
            .where(session_participants.c.user_id.in_(removed))
        )

    for user_id, participant in current.items():
        if user_id not in previous:
            try:
                await conn.execute(
                    insert(session_participants).values(
                        session_id=after.id,
                        user_id=user_id,
                        joined_at=participant.joined_at,
                        **_participant_values(participant),
                    )
                )
            except IntegrityError:
                raise AlreadyJoinedError() from None
        elif participant != previous[user_id]:
            await conn.execute(
                update(session_participants)
                .where(session_participants.c.session_id == after.id)
                .where(session_participants.c.user_id == user_id)
                .values(**_participant_values(participant))
            )


class SqlSessionRepository(SessionRepository):
    """Postgres-backed session store using SQLAlchemy Core."""

    def __init__(self, transaction: TransactionFactory = get_transaction) -> None:
        self._transaction = transaction

    async def _mutate(self, session_id: str, guild_id: str | None, transition) -> SessionResult:
        async with self._transaction() as conn:
            session = await fetch_session(conn, session_id, for_update=True)
            if session is None:
                raise NotFoundError()
            ensure_guild_scope(session, guild_id)
            result = transition(session)
            await _write_changes(conn, session, result.session)
            return result

    async def get_session(self, session_id: str) -> Session | None:
        async with self._transaction() as conn:
            return await fetch_session(conn, session_id)

    async def list_sessions(self, guild_id: str | None = None) -> list[Session]:
        query = select(sessions).order_by(sessions.c.created_at.desc())
        if guild_id is not None:
            query = query.where(sessions.c.guild_id == guild_id)

        async with self._transaction() as conn:
            result = await conn.execute(query)
            rows = result.mappings().all()
            participants = await _fetch_participants(
                conn, [row["session_id"] for row in rows]
            )

        return [_row_to_session(row, participants[row["session_id"]]) for row in rows]

    async def create_session(
        self,
        draft: SessionDraft,
        creator_id: str | None = None,
        guild_id: str | None = None,
    ) -> SessionResult:
        session = new_session(draft, creator_id=creator_id, guild_id=guild_id)
        async with self._transaction() as conn:
            await conn.execute(
                insert(sessions).values(
                    session_id=session.id,
                    guild_id=session.guild_id,
                    title=session.title,
                    max_players=session.max_players,
                    status=session.status,
                    schedule=session.schedule.to_dict(),
                    created_by=session.created_by,
                    created_at=session.created_at,
                )
            )
        return SessionResult(session=session, activated=False)

    async def update_session(
        self, session_id: str, patch: SessionPatch, guild_id: str | None = None
    ) -> SessionResult:
        return await self._mutate(
            session_id, guild_id, lambda session: apply_update(session, patch)
        )

    async def delete_session(
        self, session_id: str, guild_id: str | None = None
    ) -> Session | None:
        async with self._transaction() as conn:
            session = await fetch_session(conn, session_id, for_update=True)
            if session is None:
                return None
            ensure_guild_scope(session, guild_id)
            await conn.execute(
                delete(session_participants).where(
                    session_participants.c.session_id == session_id
                )
            )
            await conn.execute(delete(sessions).where(sessions.c.session_id == session_id))
            return session

    async def join_session(
        self,
        session_id: str,
        participant: Participant,
        guild_id: str | None = None,
    ) -> SessionResult:
        return await self._mutate(
            session_id, guild_id, lambda session: apply_join(session, participant)
        )

    async def leave_session(
        self, session_id: str, user_id: str, guild_id: str | None = None
    ) -> SessionResult:
        return await self._mutate(
            session_id, guild_id, lambda session: apply_leave(session, user_id)
        )

    async def update_participation(
        self,
        session_id: str,
        user_id: str,
        status: ParticipantStatus | None = None,
        join_start_at: datetime | None = None,
        join_end_at: datetime | None = None,
        guild_id: str | None = None,
    ) -> SessionResult:
        return await self._mutate(
            session_id,
            guild_id,
            lambda session: apply_participation(
                session,
                user_id,
                status=status,
                join_start_at=join_start_at,
                join_end_at=join_end_at,
            ),
        )
