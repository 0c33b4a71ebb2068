"""
Push notification client.
POSTs one notification per scope to the configured push API. Disabled when no
URL is configured.
"""
from __future__ import annotations

from typing import Optional

import httpx

from shared.config import Settings, get_settings
from shared.errors import NotificationDeliveryError
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class PushClient:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self._settings.push_api_url)

    async def start(self) -> None:
        if self.enabled and self._client is None:
            self._client = self._build_client()

    def _build_client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self._settings.push_api_key:
            headers["Authorization"] = f"Bearer {self._settings.push_api_key}"
        return httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(self._settings.push_timeout_s, connect=3.0),
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, scope: str, user_ids: list[str], content: str, title: str | None = None) -> None:
        """
        Deliver one push to user_ids.

        Raises:
            NotificationDeliveryError: non-2xx response or transport failure.
        """
        if not self.enabled:
            logger.debug("push_disabled", scope=scope, recipients=len(user_ids))
            return
        if not user_ids:
            return
        client = self._client
        if client is None:
            client = self._client = self._build_client()

        body = {
            "scope": scope,
            "userIds": user_ids,
            "title": title or self._settings.push_title,
            "content": content,
            "isMention": True,
        }
        try:
            resp = await client.post(self._settings.push_api_url, json=body)
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(f"push transport error: {exc}") from exc
        if resp.status_code >= 400:
            raise NotificationDeliveryError(f"push API returned HTTP {resp.status_code}")
        logger.info("push_sent", scope=scope, recipients=len(user_ids))
