"""
Scoreboard feed client.

Maps sport keys to scoreboard endpoints, keeps a short freshness cache of the
raw body (Redis when available, otherwise per instance) and exposes normalised
GameSnapshots plus a team-name lookup.
"""
from __future__ import annotations

import json
import time
from typing import Any, Optional

from redis.exceptions import RedisError

from shared.config import Settings, get_settings
from shared.errors import UnknownSport, UpstreamUnavailable
from shared.models.domain import GameSnapshot
from shared.models.enums import Sport
from shared.utils.http_client import ScoreboardHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import FEED_CACHE_HITS
from shared.utils.redis_manager import RedisManager

from feed.normalize import parse_scoreboard

logger = get_logger(__name__)

SUPPORTED_SPORTS: frozenset[str] = frozenset(s.value for s in Sport)


def scoreboard_path(sport: str) -> str:
    """Endpoint path for a sport key; raises UnknownSport for unmapped keys."""
    if sport not in SUPPORTED_SPORTS:
        raise UnknownSport(sport)
    return f"/{sport}/scoreboard"


class FeedClient:
    """Reads the public scoreboard feed for one sport at a time."""

    def __init__(
        self,
        http: ScoreboardHTTPClient | None = None,
        redis: RedisManager | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http = http or ScoreboardHTTPClient(settings=self._settings)
        self._redis = redis
        self._ttl_s = self._settings.feed_cache_ttl_s
        # sport -> (expires_at monotonic, raw body)
        self._local_cache: dict[str, tuple[float, str]] = {}

    @property
    def default_sport(self) -> str:
        return self._settings.default_sport

    @property
    def cache_ttl_s(self) -> int:
        return self._ttl_s

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    # ── Cache ───────────────────────────────────────────────────────────
    async def _cache_get(self, sport: str) -> Optional[str]:
        if self._ttl_s <= 0:
            return None
        if self._redis is not None:
            try:
                return await self._redis.get_scoreboard(sport)
            except (RedisError, RuntimeError) as exc:
                logger.warning("feed_cache_read_failed", sport=sport, error=str(exc))
                return None
        entry = self._local_cache.get(sport)
        if entry and entry[0] > time.monotonic():
            return entry[1]
        return None

    async def _cache_put(self, sport: str, raw: str) -> None:
        if self._ttl_s <= 0:
            return
        if self._redis is not None:
            try:
                await self._redis.set_scoreboard(sport, raw, self._ttl_s)
            except (RedisError, RuntimeError) as exc:
                logger.warning("feed_cache_write_failed", sport=sport, error=str(exc))
            return
        self._local_cache[sport] = (time.monotonic() + self._ttl_s, raw)

    # ── Reads ───────────────────────────────────────────────────────────
    async def scoreboard_raw(self, sport: str) -> dict[str, Any]:
        """
        Decoded scoreboard body for a sport, served from the freshness cache
        when possible.

        Raises:
            UnknownSport: sport key has no endpoint.
            UpstreamUnavailable: feed unreachable or body malformed.
        """
        path = scoreboard_path(sport)

        cached = await self._cache_get(sport)
        if cached is not None:
            try:
                data = json.loads(cached)
            except ValueError:
                data = None
            if isinstance(data, dict) and isinstance(data.get("events"), list):
                FEED_CACHE_HITS.labels(sport=sport).inc()
                return data

        data, raw = await self._http.get_json(path, sport=sport)
        if not isinstance(data.get("events"), list):
            raise UpstreamUnavailable(sport, "missing or invalid events list")
        await self._cache_put(sport, raw)
        return data

    async def fetch_scoreboard(self, sport: str) -> list[GameSnapshot]:
        """All games currently on the sport's scoreboard."""
        data = await self.scoreboard_raw(sport)
        try:
            snapshots = parse_scoreboard(data, sport)
        except (TypeError, ValueError, AttributeError, KeyError) as exc:
            logger.warning("scoreboard_malformed", sport=sport, error=str(exc))
            raise UpstreamUnavailable(sport, "malformed body") from exc
        logger.debug("scoreboard_fetched", sport=sport, games=len(snapshots))
        return snapshots

    async def find_game_by_team_name(
        self, name: str, sport: str | None = None
    ) -> Optional[GameSnapshot]:
        """
        First game where either side's name, display name, short name or
        abbreviation contains `name` (case-insensitive). Ambiguous names are
        not disambiguated.
        """
        sport = sport or self.default_sport
        if not name or not name.strip():
            return None
        for snap in await self.fetch_scoreboard(sport):
            if snap.home.matches(name) or snap.away.matches(name):
                return snap
        return None
