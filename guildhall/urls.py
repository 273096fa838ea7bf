"""URL builder utilities for session links."""

from urllib.parse import urlsplit


def normalize_base_url(value: str | None) -> str | None:
    """
    Reduce a URL to its origin, e.g. "https://app.example.com/x/" -> "https://app.example.com".

    Returns None for empty or unparseable values.
    """
    if not value:
        return None
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}".rstrip("/")


def build_session_url(
    base_url: str | None, guild_slug: str, session_id: str
) -> str | None:
    """Build URL to a session page, or None when no base URL is known."""
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}/g/{guild_slug}/sessions/{session_id}"
