"""
Guild gaming sessions - platform-agnostic core.
Can be used by a web API, a Discord bot, or any other interface.
"""

# Database (SQLAlchemy)
from .database import get_transaction, get_engine, create_tables, close_engine, is_configured

# Errors
from .errors import (
    SessionError, ValidationError, NotFoundError, ForbiddenError,
    ConflictError, SessionFullError, AlreadyJoinedError, TransportError,
    http_status_for,
)

# Enums
from .enums import (
    SessionStatus, ParticipantStatus, ScheduleKind, NotificationEvent, ErrorKind,
)

# Schedules
from .schedule import (
    NoSchedule, AllDaySchedule, TimedSchedule, ScheduleValue,
    parse_schedule, start_instant, describe_schedule,
)

# Wiring
from .runtime import SessionRuntime, load_environment, init_error_reporting

__all__ = [
    # Database (SQLAlchemy)
    'get_transaction', 'get_engine', 'create_tables', 'close_engine', 'is_configured',
    # Errors
    'SessionError', 'ValidationError', 'NotFoundError', 'ForbiddenError',
    'ConflictError', 'SessionFullError', 'AlreadyJoinedError', 'TransportError',
    'http_status_for',
    # Enums
    'SessionStatus', 'ParticipantStatus', 'ScheduleKind', 'NotificationEvent', 'ErrorKind',
    # Schedules
    'NoSchedule', 'AllDaySchedule', 'TimedSchedule', 'ScheduleValue',
    'parse_schedule', 'start_instant', 'describe_schedule',
    # Wiring
    'SessionRuntime', 'load_environment', 'init_error_reporting',
]
