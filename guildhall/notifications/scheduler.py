"""
APScheduler-based "session starting" notifications.

Keeps at most one pending job per (guild, session). Every call to schedule()
first drops the existing job for that key and then arms a new one from the
session's current schedule, so create/join/leave/update can all just call
schedule() again instead of diffing old and new state.

Jobs live in an in-memory job store and are lost on restart. The scheduler
must be used from inside the running event loop; it is not safe to share
between processes.
"""

import asyncio
import enum
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import sentry_sdk
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..enums import NotificationEvent
from ..schedule import start_instant
from ..sessions.models import NotificationSettings, Session
from .messages import build_session_payload
from .webhook import DiscordWebhookClient

logger = logging.getLogger(__name__)


# Longest single timer we arm: 2**31 - 1 ms, about 24.8 days.
# Sessions further out are skipped until a later update brings them in range.
MAX_TIMER_DELAY = timedelta(milliseconds=2_147_483_647)


class ScheduleOutcome(str, enum.Enum):
    armed = "armed"
    fired = "fired"  # start already passed, sent immediately
    disabled = "disabled"  # guild has start notifications off or no webhook
    unscheduled = "unscheduled"  # session has no start instant
    beyond_horizon = "beyond_horizon"  # start further out than MAX_TIMER_DELAY


def session_key(guild_id: str, session_id: str) -> str:
    return f"{guild_id}:{session_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StartNotificationScheduler:
    """
    Owns the timer registry for session start notifications.

    Create one per process (or per test) and pass it to whatever needs it.
    """

    def __init__(
        self,
        webhook: DiscordWebhookClient,
        scheduler: AsyncIOScheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._webhook = webhook
        self._scheduler = scheduler or AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 3600,  # Allow 1 hour late execution
            },
        )
        self._clock = clock
        # Detached sends for starts that already passed
        self._deliveries: set[asyncio.Task] = set()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Start the underlying APScheduler. Call from inside the event loop."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Start-notification scheduler started")

    async def shutdown(self) -> None:
        """Wait for in-flight sends, then stop the scheduler. Pending jobs are dropped."""
        await self.wait_for_deliveries()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Start-notification scheduler stopped")

    async def wait_for_deliveries(self) -> None:
        """Wait until every detached immediate send has finished."""
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    # =========================================================================
    # Scheduling
    # =========================================================================

    def schedule(
        self,
        guild_id: str,
        session: Session,
        webhook_url: str | None,
        settings: NotificationSettings,
        session_url: str | None = None,
        guild_name: str | None = None,
    ) -> ScheduleOutcome:
        """
        Make the pending start notification match the session's current state.

        Any existing job for the key is cancelled first. Then:
        - notifications off or no webhook: nothing is armed
        - no start instant (unscheduled session): nothing is armed
        - start now or in the past: sent immediately, nothing is armed
        - start beyond MAX_TIMER_DELAY: skipped, nothing is armed
        - otherwise: a one-shot job fires at the start instant

        Sends are fire-and-forget; this method never waits for delivery and
        never raises because a send could not be started.

        The payload is built now, so its Players and Status fields show the
        session as of this call. Every mutation calls schedule() again, which
        keeps a pending message in step with the latest state.
        """
        key = session_key(guild_id, session.id)
        self.cancel(guild_id, session.id)

        if not settings.on_session_start or not webhook_url:
            return ScheduleOutcome.disabled

        starts_at = start_instant(session.schedule)
        if starts_at is None:
            return ScheduleOutcome.unscheduled

        payload = build_session_payload(
            NotificationEvent.starting,
            session,
            guild_name=guild_name or guild_id,
            session_url=session_url,
        )

        delay = starts_at - self._clock()
        if delay <= timedelta(0):
            self._send_detached(key, payload, webhook_url)
            return ScheduleOutcome.fired

        if delay > MAX_TIMER_DELAY:
            logger.info(
                f"Session {key} starts in {delay}, beyond the "
                f"{MAX_TIMER_DELAY.days}-day timer limit; not scheduling"
            )
            return ScheduleOutcome.beyond_horizon

        self._scheduler.add_job(
            self._deliver,
            trigger="date",
            run_date=starts_at,
            id=key,
            replace_existing=True,
            kwargs={"key": key, "payload": payload, "webhook_url": webhook_url},
        )
        logger.info(f"Scheduled start notification for session {key} at {starts_at}")
        return ScheduleOutcome.armed

    def cancel(self, guild_id: str, session_id: str) -> bool:
        """
        Drop the pending start notification for a session, if any.

        Returns:
            True if a job was removed
        """
        key = session_key(guild_id, session_id)
        try:
            self._scheduler.remove_job(key)
        except JobLookupError:
            return False
        logger.info(f"Cancelled start notification for session {key}")
        return True

    def get_pending(self, guild_id: str, session_id: str) -> datetime | None:
        """Return when the pending notification for a session fires, or None."""
        job = self._scheduler.get_job(session_key(guild_id, session_id))
        if job is None:
            return None
        return getattr(job, "next_run_time", None)

    def pending_keys(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    # =========================================================================
    # Delivery
    # =========================================================================

    def _send_detached(self, key: str, payload: dict, webhook_url: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            logger.error(
                f"Cannot send start notification for session {key}: no running event loop"
            )
            sentry_sdk.capture_exception(e)
            return

        task = loop.create_task(
            self._deliver(key=key, payload=payload, webhook_url=webhook_url)
        )
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, key: str, payload: dict, webhook_url: str) -> None:
        """
        Send a start notification. Called by APScheduler or as a detached task.

        APScheduler drops a date job as soon as it is submitted, so the
        registry entry is gone whether or not this send succeeds.
        """
        try:
            sent = await self._webhook.send(payload, webhook_url)
        except Exception as e:
            logger.error(f"Start notification for session {key} failed: {e}")
            sentry_sdk.capture_exception(e)
            return

        if sent:
            logger.info(f"Sent start notification for session {key}")
        else:
            logger.warning(f"Start notification for session {key} was not delivered")
