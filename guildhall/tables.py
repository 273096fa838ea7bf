"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
)

from .enums import participant_status_enum, session_status_enum

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. SESSIONS
# =====================================================
# guild_id is NULL for legacy sessions created before guilds existed
sessions = Table(
    "sessions",
    metadata,
    Column("session_id", Text, primary_key=True),
    Column("guild_id", Text),
    Column("title", Text, nullable=False),
    Column("max_players", Integer, nullable=False),
    Column("status", session_status_enum, nullable=False, server_default="open"),
    Column("schedule", JSON, nullable=False),  # ScheduleValue.to_dict()
    Column("created_by", Text),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Index("idx_sessions_guild_id", "guild_id"),
    Index("idx_sessions_created_at", "created_at"),
)


# =====================================================
# 2. SESSION PARTICIPANTS
# =====================================================
session_participants = Table(
    "session_participants",
    metadata,
    Column("participant_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "session_id",
        Text,
        ForeignKey("sessions.session_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user_id", Text, nullable=False),
    Column("display_name", Text),
    Column("avatar_url", Text),
    Column(
        "status", participant_status_enum, nullable=False, server_default="definite"
    ),
    Column("join_start_at", DateTime(timezone=True)),
    Column("join_end_at", DateTime(timezone=True)),
    Column("joined_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("session_id", "user_id", name="uq_session_participants_user"),
    Index("idx_session_participants_session_id", "session_id"),
)
