"""Subscription lifecycle: track, list and untrack games within a scope."""
from __future__ import annotations

from shared.config import Settings, get_settings
from shared.errors import UpstreamUnavailable
from shared.models.domain import Subscription
from shared.utils.logging import get_logger

from feed.client import FeedClient, scoreboard_path
from tracking.store import SubscriptionStore

logger = get_logger(__name__)


class TrackingService:
    def __init__(
        self,
        store: SubscriptionStore,
        feed: FeedClient,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._feed = feed
        self._settings = settings or get_settings()

    async def track(
        self,
        scope: str,
        game_id: str,
        team_name: str,
        sport: str | None = None,
        user_id: str | None = None,
    ) -> tuple[Subscription, bool]:
        """
        Start tracking a game. Idempotent per (scope, game_id).

        Raises:
            UnknownSport: sport key has no feed endpoint.
            PersistenceError: the subscription could not be written.
        """
        sport = sport or self._settings.default_sport
        scoreboard_path(sport)

        sub, created = await self._store.create(scope, game_id, team_name, sport, user_id=user_id)
        if not created:
            logger.info("already_tracking", scope=scope, game_id=game_id)
            return sub, False

        if self._settings.tracking_seed_baseline:
            sub = await self._seed_baseline(sub)
        return sub, True

    async def _seed_baseline(self, sub: Subscription) -> Subscription:
        """Record the current score as baseline so the first cycle can already diff."""
        try:
            games = await self._feed.fetch_scoreboard(sub.sport)
        except UpstreamUnavailable as exc:
            logger.warning("baseline_seed_skipped", game_id=sub.game_id, sport=sub.sport, reason=exc.reason)
            return sub

        snap = next((g for g in games if g.game_id == sub.game_id), None)
        if snap is None:
            return sub

        claimed = await self._store.update_baseline(
            sub.id,
            snap.home.score,
            snap.away.score,
            snap.period,
            expected_version=sub.version,
        )
        if not claimed:
            return sub
        logger.info(
            "baseline_seeded",
            game_id=sub.game_id,
            score=f"{snap.away.score}-{snap.home.score}",
            period=snap.period,
        )
        return sub.model_copy(
            update={
                "last_score_home": snap.home.score,
                "last_score_away": snap.away.score,
                "last_period": snap.period,
                "version": sub.version + 1,
            }
        )

    async def list(self, scope: str) -> list[Subscription]:
        return await self._store.list_active(scope)

    async def untrack(
        self,
        scope: str,
        game_id: str | None = None,
        team_pattern: str | None = None,
    ) -> int:
        if not game_id and not (team_pattern and team_pattern.strip()):
            raise ValueError("game_id or team name is required")
        return await self._store.deactivate_matching(scope, game_id=game_id, team_pattern=team_pattern)
