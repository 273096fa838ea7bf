"""
Error taxonomy for session operations.

Every error carries a stable ``kind`` so the hosting HTTP layer can map it
to a status code without matching on message text.
"""

from .enums import ErrorKind


class SessionError(Exception):
    """Base class for errors raised by session operations."""

    kind: ErrorKind = ErrorKind.validation

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SessionError):
    """Raised when session or schedule input is malformed."""

    kind = ErrorKind.validation

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(SessionError):
    """Raised when a session does not exist."""

    kind = ErrorKind.not_found

    def __init__(self, message: str = "Session not found") -> None:
        super().__init__(message)


class ForbiddenError(SessionError):
    """Raised when a session is addressed through a guild that does not own it."""

    kind = ErrorKind.forbidden

    def __init__(self, message: str = "Session does not belong to this guild") -> None:
        super().__init__(message)


class ConflictError(SessionError):
    """Raised when a join conflicts with the session's current state."""

    kind = ErrorKind.conflict


class SessionFullError(ConflictError):
    def __init__(self, message: str = "Session is full") -> None:
        super().__init__(message)


class AlreadyJoinedError(ConflictError):
    def __init__(self, message: str = "You have already joined this session") -> None:
        super().__init__(message)


class TransportError(SessionError):
    """Raised by the webhook client when delivery fails. Never leaves the client."""

    kind = ErrorKind.transport


_HTTP_STATUS = {
    ErrorKind.validation: 422,
    ErrorKind.not_found: 404,
    ErrorKind.forbidden: 403,
    ErrorKind.conflict: 409,
    ErrorKind.transport: 502,
}


def http_status_for(error: SessionError) -> int:
    """Map an error to the status code the web layer should answer with."""
    return _HTTP_STATUS.get(error.kind, 400)
