"""
Centralized configuration for guildhall.

All settings come from environment variables; .env files are loaded by
runtime.load_environment() before anything reads them.
"""

import os

from .urls import normalize_base_url


def is_dev_mode() -> bool:
    """Check if running in development mode (DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running in production (ENVIRONMENT=production)."""
    return os.getenv("ENVIRONMENT", "").lower() == "production"


def get_app_url() -> str | None:
    """Public base URL of the web app, used to build session links."""
    return normalize_base_url(os.getenv("APP_URL"))


def get_webhook_timeout() -> float:
    """Timeout in seconds for a single Discord webhook POST."""
    return float(os.getenv("DISCORD_WEBHOOK_TIMEOUT", "10"))


def get_webhook_username() -> str | None:
    """Optional username override sent with every webhook message."""
    return os.getenv("DISCORD_WEBHOOK_USERNAME") or None


def get_sentry_dsn() -> str | None:
    return os.getenv("SENTRY_DSN") or None


def get_session_store() -> str:
    """
    Which session repository to use: "sql" or "memory".

    Defaults to "sql" when DATABASE_URL is set.
    """
    configured = os.getenv("SESSION_STORE", "").lower()
    if configured in ("sql", "memory"):
        return configured
    return "sql" if os.getenv("DATABASE_URL") else "memory"


# Required environment variables for production
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", False),
    ("APP_URL", "Public web app URL for session links", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production():
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        return False, errors + warnings

    return True, warnings
