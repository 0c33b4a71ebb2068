"""Pure classification of one subscription against the current snapshot."""
from __future__ import annotations

from typing import Optional

from shared.models.domain import GameSnapshot, Subscription
from shared.models.enums import OutcomeKind


def score_changed(sub: Subscription, snap: GameSnapshot) -> bool:
    return snap.home.score != sub.last_score_home or snap.away.score != sub.last_score_away


def period_changed(sub: Subscription, snap: GameSnapshot) -> bool:
    return snap.period != sub.last_period


def classify(sub: Subscription, snap: Optional[GameSnapshot]) -> list[OutcomeKind]:
    """
    Ordered outcomes for one subscription.

    game_vanished and baseline_established are terminal and returned alone.
    Otherwise score_or_period_changed precedes game_finished when both apply,
    and no_change is returned when neither does.
    """
    if snap is None:
        return [OutcomeKind.GAME_VANISHED]
    if not sub.has_baseline:
        return [OutcomeKind.BASELINE_ESTABLISHED]

    kinds: list[OutcomeKind] = []
    if score_changed(sub, snap) or period_changed(sub, snap):
        kinds.append(OutcomeKind.SCORE_OR_PERIOD_CHANGED)
    # "post" without completed covers postponed games, which keep being tracked.
    if snap.completed:
        kinds.append(OutcomeKind.GAME_FINISHED)
    return kinds or [OutcomeKind.NO_CHANGE]
