"""Discord webhook delivery.

Best-effort: send() never raises. Failures are logged and reported to
Sentry, and the caller gets False back.
"""

import logging

import httpx
import sentry_sdk

from ..config import get_webhook_timeout, get_webhook_username
from ..errors import TransportError

logger = logging.getLogger(__name__)


class DiscordWebhookClient:
    """Posts JSON payloads to Discord webhook URLs."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        username: str | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout if timeout is not None else get_webhook_timeout()
        self._username = username if username is not None else get_webhook_username()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _post(self, payload: dict, webhook_url: str) -> None:
        body = dict(payload)
        if self._username and "username" not in body:
            body["username"] = self._username

        try:
            response = await self._get_client().post(webhook_url, json=body)
        except httpx.HTTPError as e:
            raise TransportError(f"Discord webhook error: {e}") from e

        if response.status_code >= 400:
            raise TransportError(
                f"Discord webhook failed: {response.status_code} {response.text}"
            )

    async def send(self, payload: dict, webhook_url: str | None) -> bool:
        """
        Send a payload to a webhook.

        Args:
            payload: Webhook body, e.g. {"content": ..., "embeds": [...]}
            webhook_url: Target webhook; None is a silent no-op

        Returns:
            True if Discord accepted the message, False otherwise
        """
        if not webhook_url:
            return False

        try:
            await self._post(payload, webhook_url)
            return True
        except TransportError as e:
            logger.error(str(e))
            sentry_sdk.capture_exception(e)
            return False

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
