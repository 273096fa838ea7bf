"""
Capacity rule and session state transitions.

Pure functions: they take a Session and return a SessionResult, never
touching storage. Repositories call these inside whatever atomic section
their backend offers, so the same rules apply everywhere.

States are "open" and "active". A session is active once its participant
count reaches max_players. An update may force either status explicitly.
"""

import uuid
from dataclasses import replace
from datetime import datetime

from ..enums import ParticipantStatus, SessionStatus
from ..errors import (
    AlreadyJoinedError,
    ForbiddenError,
    SessionFullError,
    ValidationError,
)
from ..schedule import TimedSchedule
from .models import (
    Participant,
    Session,
    SessionDraft,
    SessionPatch,
    SessionResult,
    utcnow,
)


def derive_status(participant_count: int, max_players: int) -> SessionStatus:
    """Status implied by headcount alone."""
    if participant_count >= max_players:
        return SessionStatus.active
    return SessionStatus.open


def ensure_guild_scope(session: Session, guild_id: str | None) -> None:
    """
    Check that a guild-scoped request addresses a session of that guild.

    guild_id=None is the legacy ungrouped mode and skips the check.
    """
    if guild_id is not None and session.guild_id != guild_id:
        raise ForbiddenError()


def new_session(
    draft: SessionDraft,
    creator_id: str | None = None,
    guild_id: str | None = None,
    session_id: str | None = None,
    created_at: datetime | None = None,
) -> Session:
    """Sessions always start open and empty."""
    return Session(
        id=session_id or str(uuid.uuid4()),
        title=draft.title,
        max_players=draft.max_players,
        status=SessionStatus.open,
        schedule=draft.schedule,
        guild_id=guild_id,
        created_by=creator_id,
        created_at=created_at or utcnow(),
        participants=(),
    )


def validate_join_window(
    session: Session,
    join_start_at: datetime | None,
    join_end_at: datetime | None,
) -> None:
    """
    Check a participant's personal availability window.

    The window must be ordered, and for a timed session with a known end it
    must fall inside the session's start and end.
    """
    if join_start_at and join_end_at and join_end_at <= join_start_at:
        raise ValidationError(
            "joinEndAt must be after joinStartAt", field="joinEndAt"
        )

    schedule = session.schedule
    if isinstance(schedule, TimedSchedule) and schedule.end_at is not None:
        if join_start_at and not (
            schedule.start_at <= join_start_at <= schedule.end_at
        ):
            raise ValidationError(
                "joinStartAt must be within the session schedule",
                field="joinStartAt",
            )
        if join_end_at and not (schedule.start_at <= join_end_at <= schedule.end_at):
            raise ValidationError(
                "joinEndAt must be within the session schedule", field="joinEndAt"
            )


def apply_join(session: Session, participant: Participant) -> SessionResult:
    """
    Add a participant and recompute status.

    Raises:
        AlreadyJoinedError: If the user is already a participant
        SessionFullError: If the session is at capacity or already active
    """
    if session.get_participant(participant.user_id) is not None:
        raise AlreadyJoinedError()

    if (
        len(session.participants) >= session.max_players
        or session.status == SessionStatus.active
    ):
        raise SessionFullError()

    validate_join_window(session, participant.join_start_at, participant.join_end_at)

    participants = session.participants + (participant,)
    status = derive_status(len(participants), session.max_players)
    updated = replace(session, participants=participants, status=status)

    return SessionResult(
        session=updated,
        activated=status == SessionStatus.active,
    )


def apply_leave(session: Session, user_id: str) -> SessionResult:
    """
    Remove a participant and recompute status.

    Leaving never activates a session. Unknown users leave the session as is.
    """
    if session.get_participant(user_id) is None:
        return SessionResult(session=session, activated=False)

    participants = tuple(p for p in session.participants if p.user_id != user_id)
    updated = replace(
        session,
        participants=participants,
        status=derive_status(len(participants), session.max_players),
    )
    return SessionResult(session=updated, activated=False)


def apply_update(session: Session, patch: SessionPatch) -> SessionResult:
    """
    Apply an update patch.

    Status is re-derived from headcount when max_players changes; lowering it
    below the current headcount keeps every participant and makes the session
    active. An explicit status in the patch overrides the derived value.
    """
    changes: dict = {}
    if patch.title is not None:
        changes["title"] = patch.title
    if patch.schedule is not None:
        changes["schedule"] = patch.schedule
    if patch.max_players is not None:
        changes["max_players"] = patch.max_players
        changes["status"] = derive_status(
            len(session.participants), patch.max_players
        )
    if patch.status is not None:
        changes["status"] = patch.status

    updated = replace(session, **changes)
    activated = (
        session.status != SessionStatus.active
        and updated.status == SessionStatus.active
    )
    return SessionResult(session=updated, activated=activated)


def apply_participation(
    session: Session,
    user_id: str,
    status: ParticipantStatus | None = None,
    join_start_at: datetime | None = None,
    join_end_at: datetime | None = None,
) -> SessionResult:
    """
    Change a participant's confidence and personal window.

    Raises:
        ValidationError: If the user has not joined, or the window is invalid
    """
    current = session.get_participant(user_id)
    if current is None:
        raise ValidationError(
            "Join the session before updating participation",
            field="participation",
        )

    validate_join_window(session, join_start_at, join_end_at)

    updated_participant = replace(
        current,
        status=status or current.status,
        join_start_at=join_start_at,
        join_end_at=join_end_at,
    )
    participants = tuple(
        updated_participant if p.user_id == user_id else p
        for p in session.participants
    )
    return SessionResult(
        session=replace(session, participants=participants), activated=False
    )
