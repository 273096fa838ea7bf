"""
Process wiring for guildhall.

Builds the webhook client, the start-notification scheduler, the session
repository and the service from environment configuration. The host
application (web server, bot, worker) owns the event loop and calls
start() and shutdown() from its own startup and shutdown hooks.
"""

import logging
from pathlib import Path

import sentry_sdk
from dotenv import load_dotenv

from .config import (
    check_required_env_vars,
    get_app_url,
    get_sentry_dsn,
    get_session_store,
    is_production,
)
from .database import close_engine
from .notifications.scheduler import StartNotificationScheduler
from .notifications.webhook import DiscordWebhookClient
from .sessions.memory_store import InMemorySessionRepository
from .sessions.repository import SessionRepository
from .sessions.service import SessionService
from .sessions.sql_store import SqlSessionRepository

logger = logging.getLogger(__name__)


def load_environment(root: Path | None = None) -> None:
    """Load .env.local first (local overrides), then .env as fallback."""
    root = root or Path.cwd()
    load_dotenv(root / ".env.local")
    load_dotenv(root / ".env")


def init_error_reporting() -> bool:
    """Initialise Sentry when SENTRY_DSN is set. Returns True if enabled."""
    dsn = get_sentry_dsn()
    if not dsn:
        return False
    sentry_sdk.init(
        dsn=dsn,
        environment="production" if is_production() else "development",
    )
    return True


def build_repository(store: str | None = None) -> SessionRepository:
    store = store or get_session_store()
    if store == "sql":
        return SqlSessionRepository()
    return InMemorySessionRepository()


class SessionRuntime:
    """Owns the long-lived pieces the session service depends on."""

    def __init__(
        self,
        repository: SessionRepository | None = None,
        webhook: DiscordWebhookClient | None = None,
        notifier: StartNotificationScheduler | None = None,
        base_url: str | None = None,
    ) -> None:
        self.webhook = webhook or DiscordWebhookClient()
        self.notifier = notifier or StartNotificationScheduler(self.webhook)
        self.repository = repository or build_repository()
        self.service = SessionService(
            self.repository,
            notifier=self.notifier,
            webhook=self.webhook,
            base_url=base_url if base_url is not None else get_app_url(),
        )

    def start(self) -> None:
        """Check configuration and start the scheduler. Call inside the event loop."""
        ok, messages = check_required_env_vars()
        for message in messages:
            logger.warning(message)
        if not ok:
            raise RuntimeError("Missing required environment variables")

        self.notifier.start()
        logger.info(
            f"Session runtime started with {type(self.repository).__name__}"
        )

    async def shutdown(self) -> None:
        """Flush pending sends and release connections. Pending timers are dropped."""
        await self.notifier.shutdown()
        await self.webhook.aclose()
        if isinstance(self.repository, SqlSessionRepository):
            await close_engine()
        logger.info("Session runtime stopped")
