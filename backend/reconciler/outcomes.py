"""
Result types of a reconciliation cycle.

A cycle is assembled from one SportGroupResult per sport; the aggregator turns
those into a single CycleReport with partial-success semantics.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from shared.models.domain import GameSnapshot, ScorePair, Subscription
from shared.models.enums import OutcomeKind, StageStatus


@dataclass(frozen=True)
class Outcome:
    """One classified transition for one subscription."""
    subscription: Subscription
    kind: OutcomeKind
    snapshot: Optional[GameSnapshot] = None
    previous: ScorePair = field(default_factory=ScorePair)
    previous_period: Optional[int] = None

    @property
    def notifies(self) -> bool:
        return self.kind in (
            OutcomeKind.SCORE_OR_PERIOD_CHANGED,
            OutcomeKind.GAME_FINISHED,
            OutcomeKind.GAME_VANISHED,
        )


@dataclass
class GameDebugTrace:
    game_id: str
    team_name: str
    current_home: int
    current_away: int
    last_home: Optional[int]
    last_away: Optional[int]
    current_period: int
    last_period: Optional[int]
    score_changed: bool
    period_changed: bool
    outcomes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameId": self.game_id,
            "teamName": self.team_name,
            "currentScore": {"home": self.current_home, "away": self.current_away},
            "lastScore": {"home": self.last_home, "away": self.last_away},
            "currentPeriod": self.current_period,
            "lastPeriod": self.last_period,
            "scoreChanged": self.score_changed,
            "periodChanged": self.period_changed,
            "outcomes": list(self.outcomes),
        }


@dataclass
class StageFailure:
    sport: str
    status: StageStatus
    reason: str
    game_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"sport": self.sport, "status": self.status.value, "reason": self.reason}
        if self.game_id is not None:
            data["gameId"] = self.game_id
        return data


@dataclass
class SportGroupResult:
    """What one sport group contributed to a cycle."""
    sport: str
    status: StageStatus = StageStatus.OK
    checked: int = 0
    updates_posted: int = 0
    outcomes: list[Outcome] = field(default_factory=list)
    debug: list[GameDebugTrace] = field(default_factory=list)
    failures: list[StageFailure] = field(default_factory=list)

    def fail(self, status: StageStatus, reason: str, game_id: str | None = None) -> None:
        # Upstream failure dominates a persistence failure for the group status.
        if self.status != StageStatus.UPSTREAM_UNAVAILABLE:
            self.status = status
        self.failures.append(StageFailure(sport=self.sport, status=status, reason=reason, game_id=game_id))


@dataclass
class CycleReport:
    checked: int = 0
    updates_posted: int = 0
    debug: list[GameDebugTrace] = field(default_factory=list)
    failures: list[StageFailure] = field(default_factory=list)
    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @classmethod
    def aggregate(cls, groups: list[SportGroupResult]) -> "CycleReport":
        report = cls()
        for group in groups:
            report.checked += group.checked
            report.updates_posted += group.updates_posted
            report.debug.extend(group.debug)
            report.failures.extend(group.failures)
            report.outcomes.extend(group.outcomes)
        return report

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "updatesPosted": self.updates_posted,
            "debug": [d.to_dict() for d in self.debug],
            "failures": [f.to_dict() for f in self.failures],
        }
