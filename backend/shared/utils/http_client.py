"""
Async HTTP client wrapper for scoreboard feed requests.
Handles timeouts and records metrics per request. Never retries: the next poll
tick is the retry.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import Settings, get_settings
from shared.errors import UpstreamUnavailable
from shared.utils.logging import get_logger
from shared.utils.metrics import FEED_LATENCY, FEED_REQUESTS

logger = get_logger(__name__)


class ScoreboardHTTPClient:
    """
    Async HTTP client tailored for the public scoreboard feed.
    Every failure mode (status, transport, body) surfaces as UpstreamUnavailable.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout_s: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._base_url = (base_url or settings.feed_base_url).rstrip("/")
        self._timeout = timeout_s or settings.feed_request_timeout_s
        self._default_headers = {"Accept": "application/json", **(headers or {})}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is None:
            self._client = self._build_client()

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(self, path: str, sport: str) -> tuple[dict[str, Any], str]:
        """
        Perform a single GET and decode a JSON object body.

        Args:
            path: API path relative to base_url.
            sport: Sport key, used for metrics labels and error context.

        Returns:
            (decoded body, raw text)

        Raises:
            UpstreamUnavailable: On non-2xx status, timeout, transport error or
                a body that is not a JSON object.
        """
        client = self._client
        if client is None:
            client = self._client = self._build_client()

        start_time = time.perf_counter()
        status = "unknown"
        try:
            resp = await client.get(path)
            status = str(resp.status_code)
            if resp.status_code >= 400:
                logger.warning(
                    "feed_http_error",
                    sport=sport,
                    path=path,
                    status=resp.status_code,
                )
                raise UpstreamUnavailable(sport, f"HTTP {resp.status_code}", status_code=resp.status_code)

            try:
                data = resp.json()
            except ValueError as exc:
                status = "malformed"
                logger.warning("feed_malformed_body", sport=sport, path=path, error=str(exc))
                raise UpstreamUnavailable(sport, "response body is not JSON") from exc
            if not isinstance(data, dict):
                status = "malformed"
                raise UpstreamUnavailable(sport, "response body is not a JSON object")

            logger.debug(
                "feed_request_success",
                sport=sport,
                path=path,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return data, resp.text

        except httpx.TimeoutException as exc:
            status = "timeout"
            logger.warning("feed_timeout", sport=sport, path=path)
            raise UpstreamUnavailable(sport, "request timed out") from exc

        except httpx.HTTPError as exc:
            status = "error"
            logger.error("feed_request_error", sport=sport, path=path, error=str(exc))
            raise UpstreamUnavailable(sport, f"transport error: {exc}") from exc

        finally:
            FEED_REQUESTS.labels(sport=sport, status=status).inc()
            FEED_LATENCY.labels(sport=sport).observe(time.perf_counter() - start_time)
