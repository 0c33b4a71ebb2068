"""Domain enumerations for the Scorecast platform."""
from __future__ import annotations

from enum import Enum


class Sport(str, Enum):
    """Sport keys; the value is also the feed path segment."""
    NBA = "basketball/nba"
    WNBA = "basketball/wnba"
    NFL = "football/nfl"
    MLB = "baseball/mlb"
    NHL = "hockey/nhl"
    MLS = "soccer/usa.1"


class GameState(str, Enum):
    PRE = "pre"
    LIVE = "live"
    FINAL = "final"

    @classmethod
    def from_feed(cls, state: str, completed: bool = False) -> "GameState":
        """Map the feed's status.type.state ("pre" | "in" | "post") to a GameState."""
        if completed:
            return cls.FINAL
        s = (state or "").strip().lower()
        if s == "in":
            return cls.LIVE
        if s == "post":
            return cls.FINAL
        return cls.PRE

    @property
    def feed_value(self) -> str:
        """Wire value used in chat payloads for the rendering layer."""
        return {GameState.PRE: "pre", GameState.LIVE: "in", GameState.FINAL: "post"}[self]


class OutcomeKind(str, Enum):
    BASELINE_ESTABLISHED = "baseline_established"
    SCORE_OR_PERIOD_CHANGED = "score_or_period_changed"
    GAME_FINISHED = "game_finished"
    GAME_VANISHED = "game_vanished"
    NO_CHANGE = "no_change"


class StageStatus(str, Enum):
    """Per sport-group result of a reconciliation cycle."""
    OK = "ok"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    PERSISTENCE_ERROR = "persistence_error"


class MessageKind(str, Enum):
    TEXT = "text"
    GAME_UPDATE = "game_update"
    SYSTEM = "system"
