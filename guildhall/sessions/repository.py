"""
Session repository contract.

Repositories own persistence and atomicity. In particular a join must be
checked against capacity and written in one atomic step, so two concurrent
joins cannot both see a free seat.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from ..enums import ParticipantStatus
from .models import Participant, Session, SessionDraft, SessionPatch, SessionResult


class SessionRepository(ABC):
    """Interface for session persistence operations."""

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None:
        """Return a session by ID, or None if not found."""
        ...

    @abstractmethod
    async def list_sessions(self, guild_id: str | None = None) -> list[Session]:
        """Return sessions ordered by created_at descending, optionally for one guild."""
        ...

    @abstractmethod
    async def create_session(
        self,
        draft: SessionDraft,
        creator_id: str | None = None,
        guild_id: str | None = None,
    ) -> SessionResult:
        """Create an open, empty session."""
        ...

    @abstractmethod
    async def update_session(
        self, session_id: str, patch: SessionPatch, guild_id: str | None = None
    ) -> SessionResult:
        """
        Raises:
            NotFoundError: If the session does not exist
            ForbiddenError: If the session belongs to another guild
        """
        ...

    @abstractmethod
    async def delete_session(
        self, session_id: str, guild_id: str | None = None
    ) -> Session | None:
        """
        Delete a session and its participants.

        Returns:
            The removed session, or None if there was nothing to delete

        Raises:
            ForbiddenError: If the session belongs to another guild
        """
        ...

    @abstractmethod
    async def join_session(
        self,
        session_id: str,
        participant: Participant,
        guild_id: str | None = None,
    ) -> SessionResult:
        """
        Raises:
            NotFoundError: If the session does not exist
            ForbiddenError: If the session belongs to another guild
            AlreadyJoinedError: If the user already joined
            SessionFullError: If no seat is left
        """
        ...

    @abstractmethod
    async def leave_session(
        self, session_id: str, user_id: str, guild_id: str | None = None
    ) -> SessionResult:
        """
        Raises:
            NotFoundError: If the session does not exist
            ForbiddenError: If the session belongs to another guild
        """
        ...

    @abstractmethod
    async def update_participation(
        self,
        session_id: str,
        user_id: str,
        status: ParticipantStatus | None = None,
        join_start_at: datetime | None = None,
        join_end_at: datetime | None = None,
        guild_id: str | None = None,
    ) -> SessionResult:
        """
        Raises:
            NotFoundError: If the session does not exist
            ForbiddenError: If the session belongs to another guild
            ValidationError: If the user has not joined or the window is invalid
        """
        ...
