"""
Discord webhook messages for session events.

build_session_payload() turns a session event into a webhook body: a short
plain-text summary plus one rich embed. Times are rendered with Discord
timestamp markers (<t:unix:style>) so every reader sees their own timezone.
"""

from dataclasses import dataclass

import discord

from ..enums import NotificationEvent, SessionStatus
from ..schedule import AllDaySchedule, NoSchedule, ScheduleValue, TimedSchedule
from ..sessions.models import Session


@dataclass(frozen=True)
class EventMeta:
    emoji: str
    label: str
    color: int
    reason: str  # may contain {actor}


EVENT_META: dict[NotificationEvent, EventMeta] = {
    NotificationEvent.created: EventMeta(
        emoji="🆕",
        label="New session",
        color=0x5865F2,
        reason="{actor} created this session.",
    ),
    NotificationEvent.joined: EventMeta(
        emoji="👥",
        label="Someone joined",
        color=0x57F287,
        reason="{actor} just joined.",
    ),
    NotificationEvent.activated: EventMeta(
        emoji="✅",
        label="Session ready",
        color=0xFEE75C,
        reason="Party is full and marked active.",
    ),
    NotificationEvent.starting: EventMeta(
        emoji="🕒",
        label="Starting now",
        color=0xF04747,
        reason="Start time reached - jump in if you are playing.",
    ),
}

DEFAULT_ACTOR = "A member"


def _timestamp(value, style: str) -> str:
    return f"<t:{int(value.timestamp())}:{style}>"


def format_schedule(schedule: ScheduleValue) -> str:
    if isinstance(schedule, TimedSchedule):
        start = schedule.start_at
        end_line = (
            f"Ends {_timestamp(schedule.end_at, 't')}"
            if schedule.end_at
            else "End time TBD"
        )
        return f"Starts {_timestamp(start, 'F')} ({_timestamp(start, 'R')})\n{end_line}"
    if isinstance(schedule, AllDaySchedule):
        return f"All day on {_timestamp(schedule.date, 'D')}"
    if isinstance(schedule, NoSchedule):
        return "Unscheduled - watch for updates."
    raise TypeError(f"Unknown schedule type: {type(schedule).__name__}")


def _seat_summary(remaining: int) -> str:
    if remaining == 0:
        return "Full"
    if remaining == 1:
        return "1 seat left"
    return f"{remaining} seats left"


def format_players(session: Session) -> str:
    current = len(session.participants)
    return f"{current}/{session.max_players} players • {_seat_summary(session.seats_left)}"


def format_status(session: Session) -> str:
    if session.status == SessionStatus.active:
        return "Active • ready to play"
    return "Open • filling seats"


def format_relevance(event: NotificationEvent, session: Session) -> str:
    """Capacity clause appended to the embed description."""
    if event == NotificationEvent.activated or session.status == SessionStatus.active:
        return "Lobby is ready."
    remaining = session.seats_left
    if remaining == 0:
        return "Lobby is full."
    if remaining == 1:
        return "1 seat left."
    return f"{remaining} seats left."


def build_summary(
    meta: EventMeta, title: str, guild_name: str, session_url: str | None = None
) -> str:
    summary = f"{meta.emoji} {meta.label} in {guild_name}: {title}"
    return f"{summary}\n{session_url}" if session_url else summary


def build_session_payload(
    event: NotificationEvent,
    session: Session,
    guild_name: str,
    session_url: str | None = None,
    actor_name: str | None = None,
) -> dict:
    """
    Build the webhook body for a session event.

    Args:
        event: Which lifecycle moment this announces
        session: Session state after the event
        guild_name: Guild shown in the summary and footer
        session_url: Link to the session page; omitted when None
        actor_name: Member who caused the event (created/joined)

    Returns:
        {"content": str, "embeds": [dict]} ready to POST to a Discord webhook
    """
    event = NotificationEvent(event)
    meta = EVENT_META[event]
    reason = meta.reason.format(actor=actor_name or DEFAULT_ACTOR)

    embed = discord.Embed(
        title=session.title,
        description=f"{reason} {format_relevance(event, session)}",
        url=session_url or None,
        colour=meta.color,
    )
    embed.add_field(name="When", value=format_schedule(session.schedule), inline=False)
    embed.add_field(name="Players", value=format_players(session), inline=True)
    embed.add_field(name="Status", value=format_status(session), inline=True)
    if session_url:
        embed.add_field(name="Session link", value=session_url, inline=False)
    embed.set_footer(text=f"Guild: {guild_name}")

    return {
        "content": build_summary(meta, session.title, guild_name, session_url),
        "embeds": [embed.to_dict()],
    }
