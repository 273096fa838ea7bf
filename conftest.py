"""Root pytest configuration."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load environment variables before tests run (DATABASE_URL enables SQL tests)
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep deployment-only settings from leaking into tests."""
    for name in ("ENVIRONMENT", "SENTRY_DSN", "DISCORD_WEBHOOK_USERNAME"):
        monkeypatch.delenv(name, raising=False)
