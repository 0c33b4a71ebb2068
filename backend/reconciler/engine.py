"""
Reconciliation Engine.
Loads active subscriptions -> fetches each sport's scoreboard once -> classifies
each subscription -> claims the transition in the store -> dispatches.

Every state change is claimed with a conditional write before anything is
posted, so overlapping cycles (in-process timer plus external scheduler) act on
a given transition at most once.
"""
from __future__ import annotations

import asyncio
import time
import uuid
from typing import Optional

from shared.errors import PersistenceError, UpstreamUnavailable
from shared.models.domain import GameSnapshot, ScorePair, Subscription
from shared.models.enums import OutcomeKind, StageStatus
from shared.utils.logging import bound_log_context, get_logger
from shared.utils.metrics import (
    ACTIVE_SUBSCRIPTIONS,
    POLL_CYCLE_DURATION,
    POLL_CYCLES,
    RECONCILE_OUTCOMES,
    SPORT_GROUP_FAILURES,
    atrack_latency,
)

from feed.client import FeedClient
from notifier.dispatcher import NotificationDispatcher
from reconciler.classify import classify, period_changed, score_changed
from reconciler.outcomes import CycleReport, GameDebugTrace, Outcome, SportGroupResult
from tracking.store import SubscriptionStore

logger = get_logger(__name__)


class ReconciliationEngine:
    """Runs one poll/diff/notify pass per call to run_cycle()."""

    def __init__(
        self,
        store: SubscriptionStore,
        feed: FeedClient,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._store = store
        self._feed = feed
        self._dispatcher = dispatcher

    async def run_cycle(self, trigger: str = "api") -> CycleReport:
        """
        Reconcile every active subscription once.

        Safe to call concurrently and repeatedly. Feed and per-subscription
        persistence failures are reported in the result instead of raised;
        a failure to list subscriptions propagates as PersistenceError.
        """
        cycle_id = uuid.uuid4().hex[:12]
        start = time.perf_counter()
        with bound_log_context(cycle_id=cycle_id, trigger=trigger):
            POLL_CYCLES.labels(trigger=trigger).inc()
            async with atrack_latency(POLL_CYCLE_DURATION):
                subs = await self._store.list_active()
                ACTIVE_SUBSCRIPTIONS.set(len(subs))

                groups: dict[str, list[Subscription]] = {}
                for sub in subs:
                    groups.setdefault(sub.sport, []).append(sub)

                results = await asyncio.gather(
                    *(self._run_sport_group(sport, group) for sport, group in groups.items())
                )
                report = CycleReport.aggregate(list(results))

            logger.info(
                "poll_cycle_complete",
                checked=report.checked,
                updates_posted=report.updates_posted,
                sports=len(groups),
                failures=len(report.failures),
                elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
            )
        return report

    # ── Sport group ─────────────────────────────────────────────────────
    async def _run_sport_group(self, sport: str, subs: list[Subscription]) -> SportGroupResult:
        result = SportGroupResult(sport=sport, checked=len(subs))
        try:
            games = await self._feed.fetch_scoreboard(sport)
        except UpstreamUnavailable as exc:
            logger.warning("sport_group_skipped", sport=sport, reason=exc.reason, subscriptions=len(subs))
            SPORT_GROUP_FAILURES.labels(sport=sport, status=StageStatus.UPSTREAM_UNAVAILABLE.value).inc()
            result.fail(StageStatus.UPSTREAM_UNAVAILABLE, exc.reason)
            return result

        by_id = {g.game_id: g for g in games}
        for sub in subs:
            try:
                await self._reconcile(sub, by_id.get(sub.game_id), result)
            except PersistenceError as exc:
                logger.error(
                    "subscription_reconcile_failed",
                    sport=sport,
                    game_id=sub.game_id,
                    subscription_id=str(sub.id),
                    error=str(exc),
                )
                SPORT_GROUP_FAILURES.labels(sport=sport, status=StageStatus.PERSISTENCE_ERROR.value).inc()
                result.fail(StageStatus.PERSISTENCE_ERROR, str(exc), game_id=sub.game_id)
        return result

    # ── Single subscription ─────────────────────────────────────────────
    async def _reconcile(
        self,
        sub: Subscription,
        snap: Optional[GameSnapshot],
        result: SportGroupResult,
    ) -> None:
        kinds = classify(sub, snap)
        previous = ScorePair(home=sub.last_score_home, away=sub.last_score_away)

        if snap is None:
            if await self._store.deactivate(sub.id):
                logger.info("game_vanished", game_id=sub.game_id, scope=sub.scope)
                await self._emit(Outcome(sub, OutcomeKind.GAME_VANISHED, None, previous, sub.last_period), result)
            return

        if kinds[0] == OutcomeKind.BASELINE_ESTABLISHED:
            claimed = await self._store.update_baseline(
                sub.id, snap.home.score, snap.away.score, snap.period, expected_version=sub.version
            )
            if claimed:
                logger.info(
                    "baseline_established",
                    game_id=sub.game_id,
                    score=f"{snap.away.score}-{snap.home.score}",
                    period=snap.period,
                )
                self._record(Outcome(sub, OutcomeKind.BASELINE_ESTABLISHED, snap, previous), result)
            return

        trace = GameDebugTrace(
            game_id=sub.game_id,
            team_name=sub.team_name,
            current_home=snap.home.score,
            current_away=snap.away.score,
            last_home=sub.last_score_home,
            last_away=sub.last_score_away,
            current_period=snap.period,
            last_period=sub.last_period,
            score_changed=score_changed(sub, snap),
            period_changed=period_changed(sub, snap),
        )
        result.debug.append(trace)

        for kind in kinds:
            outcome = Outcome(sub, kind, snap, previous, sub.last_period)
            if kind == OutcomeKind.SCORE_OR_PERIOD_CHANGED:
                claimed = await self._store.update_baseline(
                    sub.id, snap.home.score, snap.away.score, snap.period, expected_version=sub.version
                )
                if not claimed:
                    trace.outcomes.append(OutcomeKind.NO_CHANGE.value)
                    continue
                trace.outcomes.append(kind.value)
                if await self._emit(outcome, result):
                    result.updates_posted += 1
            elif kind == OutcomeKind.GAME_FINISHED:
                if not await self._store.deactivate(sub.id):
                    continue
                logger.info("game_finished", game_id=sub.game_id, scope=sub.scope)
                trace.outcomes.append(kind.value)
                await self._emit(outcome, result)
            else:
                trace.outcomes.append(kind.value)
                self._record(outcome, result)

    def _record(self, outcome: Outcome, result: SportGroupResult) -> None:
        RECONCILE_OUTCOMES.labels(kind=outcome.kind.value).inc()
        result.outcomes.append(outcome)

    async def _emit(self, outcome: Outcome, result: SportGroupResult) -> bool:
        """Record a claimed outcome and post it. The claim stands even if posting fails."""
        self._record(outcome, result)
        try:
            await self._dispatcher.dispatch(outcome)
        except PersistenceError as exc:
            logger.error(
                "notification_post_failed",
                game_id=outcome.subscription.game_id,
                kind=outcome.kind.value,
                error=str(exc),
            )
            result.fail(StageStatus.PERSISTENCE_ERROR, str(exc), game_id=outcome.subscription.game_id)
            return False
        return True
