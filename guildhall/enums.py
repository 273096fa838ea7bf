"""Enum definitions shared by the domain model and the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class SessionStatus(str, enum.Enum):
    open = "open"
    active = "active"


class ParticipantStatus(str, enum.Enum):
    definite = "definite"
    maybe = "maybe"
    undecided = "undecided"


class ScheduleKind(str, enum.Enum):
    none = "none"
    all_day = "all-day"
    timed = "timed"


class NotificationEvent(str, enum.Enum):
    created = "created"
    joined = "joined"
    activated = "activated"
    starting = "starting"


class ErrorKind(str, enum.Enum):
    validation = "validation"
    not_found = "not_found"
    forbidden = "forbidden"
    conflict = "conflict"
    transport = "transport"


# =====================================================
# SQLAlchemy Enum Types
# Stored as plain strings so the schema works without native enum types
# =====================================================

session_status_enum = SQLEnum(
    SessionStatus,
    name="session_status",
    native_enum=False,
    values_callable=lambda members: [m.value for m in members],
)
participant_status_enum = SQLEnum(
    ParticipantStatus,
    name="participant_status",
    native_enum=False,
    values_callable=lambda members: [m.value for m in members],
)
