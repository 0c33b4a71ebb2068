"""
Subscription Store.

Durable game subscriptions keyed by id, unique among active rows per
(scope, game_id). Baseline writes are single UPDATE statements; with an
expected version they become compare-and-set claims so overlapping
reconciliation cycles cannot both act on the same transition.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shared.errors import PersistenceError
from shared.models.domain import Subscription
from shared.models.orm import GameSubscriptionORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def _to_domain(row: GameSubscriptionORM) -> Subscription:
    return Subscription.model_validate(row)


class SubscriptionStore:
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def _find_active(self, scope: str, game_id: str) -> Optional[Subscription]:
        try:
            async with self._db.read_session() as session:
                row = await session.scalar(
                    select(GameSubscriptionORM).where(
                        GameSubscriptionORM.scope == scope,
                        GameSubscriptionORM.game_id == game_id,
                        GameSubscriptionORM.is_active.is_(True),
                    )
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"could not read subscription for game {game_id}") from exc
        return _to_domain(row) if row else None

    async def create(
        self,
        scope: str,
        game_id: str,
        team_name: str,
        sport: str,
        user_id: str | None = None,
    ) -> tuple[Subscription, bool]:
        """
        Track a game in a scope.

        Returns (subscription, created). When an active subscription already
        exists for (scope, game_id) it is returned unchanged with created=False.
        """
        existing = await self._find_active(scope, game_id)
        if existing is not None:
            return existing, False

        now = datetime.now(timezone.utc)
        row = GameSubscriptionORM(
            id=uuid.uuid4(),
            scope=scope,
            game_id=game_id,
            team_name=team_name,
            sport=sport,
            user_id=user_id,
            is_active=True,
            version=0,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._db.write_session() as session:
                session.add(row)
                await session.flush()
        except IntegrityError:
            # Lost the race against a concurrent create for the same game.
            winner = await self._find_active(scope, game_id)
            if winner is None:
                raise PersistenceError(f"could not create subscription for game {game_id}")
            return winner, False
        except SQLAlchemyError as exc:
            logger.error("subscription_create_failed", scope=scope, game_id=game_id, error=str(exc))
            raise PersistenceError(f"could not create subscription for game {game_id}") from exc

        logger.info("subscription_created", scope=scope, game_id=game_id, team=team_name, sport=sport)
        return _to_domain(row), True

    async def list_active(self, scope: str | None = None) -> list[Subscription]:
        """Active subscriptions, newest first, optionally limited to one scope."""
        stmt = select(GameSubscriptionORM).where(GameSubscriptionORM.is_active.is_(True))
        if scope is not None:
            stmt = stmt.where(GameSubscriptionORM.scope == scope)
        stmt = stmt.order_by(GameSubscriptionORM.created_at.desc())
        try:
            async with self._db.read_session() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            logger.error("subscription_list_failed", scope=scope, error=str(exc))
            raise PersistenceError("could not list subscriptions") from exc
        return [_to_domain(r) for r in rows]

    async def get(self, subscription_id: uuid.UUID) -> Optional[Subscription]:
        try:
            async with self._db.read_session() as session:
                row = await session.get(GameSubscriptionORM, subscription_id)
        except SQLAlchemyError as exc:
            logger.error("subscription_read_failed", subscription_id=str(subscription_id), error=str(exc))
            raise PersistenceError(f"could not read subscription {subscription_id}") from exc
        return _to_domain(row) if row else None

    async def update_baseline(
        self,
        subscription_id: uuid.UUID,
        home: int,
        away: int,
        period: int,
        expected_version: int | None = None,
    ) -> bool:
        """
        Overwrite the baseline of an active subscription and bump its version.

        With expected_version the write only applies if the stored version
        still matches. Returns True when a row was updated.
        """
        stmt = (
            update(GameSubscriptionORM)
            .where(
                GameSubscriptionORM.id == subscription_id,
                GameSubscriptionORM.is_active.is_(True),
            )
            .values(
                last_score_home=home,
                last_score_away=away,
                last_period=period,
                version=GameSubscriptionORM.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if expected_version is not None:
            stmt = stmt.where(GameSubscriptionORM.version == expected_version)
        try:
            async with self._db.write_session() as session:
                result = await session.execute(stmt)
                updated = result.rowcount == 1
        except SQLAlchemyError as exc:
            logger.error("baseline_update_failed", subscription_id=str(subscription_id), error=str(exc))
            raise PersistenceError(f"could not update baseline of {subscription_id}") from exc
        if not updated:
            logger.debug(
                "baseline_claim_lost",
                subscription_id=str(subscription_id),
                expected_version=expected_version,
            )
        return updated

    async def deactivate(self, subscription_id: uuid.UUID) -> bool:
        """Mark inactive. True only for the call that flipped the flag."""
        stmt = (
            update(GameSubscriptionORM)
            .where(
                GameSubscriptionORM.id == subscription_id,
                GameSubscriptionORM.is_active.is_(True),
            )
            .values(
                is_active=False,
                version=GameSubscriptionORM.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._db.write_session() as session:
                result = await session.execute(stmt)
                return result.rowcount == 1
        except SQLAlchemyError as exc:
            logger.error("subscription_deactivate_failed", subscription_id=str(subscription_id), error=str(exc))
            raise PersistenceError(f"could not deactivate {subscription_id}") from exc

    async def deactivate_matching(
        self,
        scope: str,
        game_id: str | None = None,
        team_pattern: str | None = None,
    ) -> int:
        """
        Untrack every active subscription in scope matching the game id, or
        whose team label contains team_pattern (case-insensitive).
        Returns the number of subscriptions deactivated.
        """
        if not game_id and not team_pattern:
            return 0
        stmt = (
            update(GameSubscriptionORM)
            .where(
                GameSubscriptionORM.scope == scope,
                GameSubscriptionORM.is_active.is_(True),
            )
            .values(
                is_active=False,
                version=GameSubscriptionORM.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if game_id:
            stmt = stmt.where(GameSubscriptionORM.game_id == game_id)
        else:
            stmt = stmt.where(
                GameSubscriptionORM.team_name.icontains(team_pattern.strip(), autoescape=True)
            )
        try:
            async with self._db.write_session() as session:
                result = await session.execute(stmt)
                count = result.rowcount or 0
        except SQLAlchemyError as exc:
            logger.error("subscription_untrack_failed", scope=scope, error=str(exc))
            raise PersistenceError(f"could not untrack in scope {scope}") from exc
        logger.info("subscriptions_untracked", scope=scope, game_id=game_id, team=team_pattern, count=count)
        return count
