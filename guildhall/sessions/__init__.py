"""
Gaming sessions: models, capacity rules and storage.

Public API:
    SessionService (in .service) - guild-scoped operations with notifications
    SessionRepository - storage interface
    InMemorySessionRepository / SqlSessionRepository - implementations

Models:
    Session, Participant, Guild, NotificationSettings
    SessionDraft, SessionPatch, ParticipationUpdate - validated input
"""

from .models import (
    Guild,
    NotificationSettings,
    Participant,
    ParticipationUpdate,
    Session,
    SessionDraft,
    SessionPatch,
    SessionResult,
)
from .capacity import derive_status
from .repository import SessionRepository
from .memory_store import InMemorySessionRepository
from .sql_store import SqlSessionRepository

__all__ = [
    # Models
    "Guild",
    "NotificationSettings",
    "Participant",
    "ParticipationUpdate",
    "Session",
    "SessionDraft",
    "SessionPatch",
    "SessionResult",
    # Rules
    "derive_status",
    # Storage
    "SessionRepository",
    "InMemorySessionRepository",
    "SqlSessionRepository",
]
