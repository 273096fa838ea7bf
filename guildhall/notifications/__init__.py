"""
Discord webhook notifications for session events.

Public API:
    DiscordWebhookClient.send(payload, webhook_url) - Send immediately
    StartNotificationScheduler.schedule(...) - Arm the "starting now" message
    StartNotificationScheduler.cancel(guild_id, session_id) - Drop it

Message building:
    build_session_payload(event, session, ...) - Content plus one embed
"""

from .messages import build_session_payload, build_summary
from .webhook import DiscordWebhookClient
from .scheduler import (
    MAX_TIMER_DELAY,
    ScheduleOutcome,
    StartNotificationScheduler,
    session_key,
)

__all__ = [
    "build_session_payload",
    "build_summary",
    "DiscordWebhookClient",
    "MAX_TIMER_DELAY",
    "ScheduleOutcome",
    "StartNotificationScheduler",
    "session_key",
]
