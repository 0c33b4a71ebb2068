"""
Redis connection manager for Scorecast.
Provides the async connection pool, the shared scoreboard freshness cache
and the chat fan-out publisher.
"""
from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
FEED_SCOREBOARD_KEY = "feed:scoreboard:{sport}"
CHAT_CHANNEL = "chat:scope:{scope}"


def _fmt(template: str, **kwargs: Any) -> str:
    return template.format(**kwargs)


class RedisManager:
    """Manages async Redis connection pool and provides typed helpers."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        """Initialize the connection pool."""
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_str)

    async def disconnect(self) -> None:
        """Graceful shutdown."""
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.aclose()
            logger.info("redis_disconnected")

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, RuntimeError) as exc:
            logger.warning("redis_ping_failed", error=str(exc))
            return False

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    # ── Scoreboard freshness cache ──────────────────────────────────────
    async def set_scoreboard(self, sport: str, data: str, ttl_s: int) -> None:
        """Cache a raw scoreboard body for ttl_s seconds."""
        await self.client.set(_fmt(FEED_SCOREBOARD_KEY, sport=sport), data, ex=ttl_s)

    async def get_scoreboard(self, sport: str) -> Optional[str]:
        """Return a cached raw scoreboard body, or None when absent/expired."""
        return await self.client.get(_fmt(FEED_SCOREBOARD_KEY, sport=sport))

    # ── Chat fan-out ────────────────────────────────────────────────────
    async def publish_chat(self, scope: str, payload: str) -> int:
        """Publish a persisted chat message to the scope's realtime channel."""
        return await self.client.publish(_fmt(CHAT_CHANNEL, scope=scope), payload)

