"""
Session domain models and input validation.

Models are immutable; mutations produce new instances via the pure
functions in capacity.py.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..enums import ParticipantStatus, SessionStatus
from ..errors import ValidationError
from ..schedule import (
    NoSchedule,
    ScheduleValue,
    parse_iso_datetime,
    parse_schedule,
    to_iso,
)

MIN_TITLE_LENGTH = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =====================================================
# Field validation (shared by create and update)
# =====================================================


def validate_title(value: Any) -> str:
    """Trim and check a session title."""
    if not isinstance(value, str) or len(value.strip()) < MIN_TITLE_LENGTH:
        raise ValidationError(
            f"Title must be at least {MIN_TITLE_LENGTH} characters long",
            field="title",
        )
    return value.strip()


def validate_max_players(value: Any) -> int:
    """Check that max players is a finite number >= 1, flooring fractions."""
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or math.floor(value) < 1
    ):
        raise ValidationError(
            "maxPlayers must be a positive integer", field="maxPlayers"
        )
    return int(math.floor(value))


def validate_status(value: Any) -> SessionStatus:
    try:
        return SessionStatus(value)
    except ValueError:
        raise ValidationError(
            "status must be either 'open' or 'active'", field="status"
        ) from None


# =====================================================
# Guild context (read-only here)
# =====================================================


@dataclass(frozen=True)
class NotificationSettings:
    """Which session events a guild wants announced on its webhook."""

    on_session_create: bool = True
    on_session_join: bool = True
    on_session_activate: bool = True
    on_session_start: bool = True

    @classmethod
    def from_dict(cls, data: Mapping | None) -> "NotificationSettings":
        data = data or {}
        return cls(
            on_session_create=bool(data.get("onSessionCreate", True)),
            on_session_join=bool(data.get("onSessionJoin", True)),
            on_session_activate=bool(data.get("onSessionActivate", True)),
            on_session_start=bool(data.get("onSessionStart", True)),
        )


@dataclass(frozen=True)
class Guild:
    id: str
    name: str
    slug: str
    webhook_url: str | None = None
    notification_settings: NotificationSettings = field(
        default_factory=NotificationSettings
    )


# =====================================================
# Sessions
# =====================================================


@dataclass(frozen=True)
class Participant:
    """A user enrolled in a session."""

    user_id: str
    display_name: str | None = None
    avatar_url: str | None = None
    joined_at: datetime = field(default_factory=utcnow)
    status: ParticipantStatus = ParticipantStatus.definite
    join_start_at: datetime | None = None  # personal window inside the session
    join_end_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
            "joinedAt": to_iso(self.joined_at),
            "status": self.status.value,
            "joinStartAt": to_iso(self.join_start_at) if self.join_start_at else None,
            "joinEndAt": to_iso(self.join_end_at) if self.join_end_at else None,
        }


@dataclass(frozen=True)
class Session:
    """A gaming session owned by a guild (or no guild, for legacy sessions)."""

    id: str
    title: str
    max_players: int
    status: SessionStatus
    created_at: datetime
    schedule: ScheduleValue = field(default_factory=NoSchedule)
    guild_id: str | None = None
    created_by: str | None = None
    participants: tuple[Participant, ...] = ()

    @property
    def participant_ids(self) -> list[str]:
        return [p.user_id for p in self.participants]

    @property
    def seats_left(self) -> int:
        return max(self.max_players - len(self.participants), 0)

    def get_participant(self, user_id: str) -> Participant | None:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "guildId": self.guild_id,
            "title": self.title,
            "maxPlayers": self.max_players,
            "status": self.status.value,
            "participants": [p.to_dict() for p in self.participants],
            "schedule": self.schedule.to_dict(),
            "createdBy": self.created_by,
            "createdAt": to_iso(self.created_at),
        }


@dataclass(frozen=True)
class SessionResult:
    """Outcome of a mutation: the session after it, and whether it just activated."""

    session: Session
    activated: bool = False


@dataclass(frozen=True)
class SessionDraft:
    """Validated input for creating a session."""

    title: str
    max_players: int
    schedule: ScheduleValue = field(default_factory=NoSchedule)

    @classmethod
    def from_payload(cls, body: Mapping) -> "SessionDraft":
        """
        Build a draft from a request body like
        {"title": "...", "maxPlayers": 4, "schedule": {...}}.

        Raises:
            ValidationError: On the first invalid field
        """
        return cls(
            title=validate_title(body.get("title")),
            max_players=validate_max_players(body.get("maxPlayers")),
            schedule=parse_schedule(body.get("schedule")),
        )


@dataclass(frozen=True)
class SessionPatch:
    """
    Validated input for updating a session.

    None means "leave unchanged"; each field is independent.
    """

    title: str | None = None
    max_players: int | None = None
    status: SessionStatus | None = None
    schedule: ScheduleValue | None = None

    @classmethod
    def from_payload(cls, body: Mapping) -> "SessionPatch":
        """
        Build a patch from a request body, validating only the keys present.

        Raises:
            ValidationError: On the first invalid field
        """
        return cls(
            title=validate_title(body["title"]) if "title" in body else None,
            max_players=(
                validate_max_players(body["maxPlayers"])
                if "maxPlayers" in body
                else None
            ),
            status=validate_status(body["status"]) if "status" in body else None,
            schedule=parse_schedule(body["schedule"]) if "schedule" in body else None,
        )

    @property
    def is_empty(self) -> bool:
        return (
            self.title is None
            and self.max_players is None
            and self.status is None
            and self.schedule is None
        )


def _parse_optional_instant(body: Mapping, key: str) -> datetime | None:
    value = body.get(key)
    if value is None:
        return None
    parsed = parse_iso_datetime(value) if isinstance(value, str) else None
    if parsed is None:
        raise ValidationError(f"{key} must be a valid ISO datetime", field=key)
    return parsed


@dataclass(frozen=True)
class ParticipationUpdate:
    """A participant's confidence and personal time window."""

    status: ParticipantStatus | None = None
    join_start_at: datetime | None = None
    join_end_at: datetime | None = None

    @classmethod
    def from_payload(cls, body: Mapping) -> "ParticipationUpdate":
        """
        Build from {"status": "maybe", "joinStartAt": "...", "joinEndAt": "..."}.

        Raises:
            ValidationError: On an unknown status or unparseable time
        """
        status = None
        if body.get("status") is not None:
            try:
                status = ParticipantStatus(body["status"])
            except ValueError:
                raise ValidationError(
                    "status must be one of 'definite', 'maybe' or 'undecided'",
                    field="status",
                ) from None

        return cls(
            status=status,
            join_start_at=_parse_optional_instant(body, "joinStartAt"),
            join_end_at=_parse_optional_instant(body, "joinEndAt"),
        )
