"""
Pydantic v2 domain models shared across Scorecast services.
These are the canonical wire/internal representations, not ORM models.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.models.enums import GameState, MessageKind


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class WireModel(DomainModel):
    """Models rendered to chat clients; serialized with camelCase keys."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ── Feed snapshot ───────────────────────────────────────────────────────
class TeamScore(DomainModel):
    team_id: str = ""
    name: str = ""
    display_name: str = ""
    short_name: str = ""
    abbreviation: str = ""
    logo: Optional[str] = None
    score: int = 0

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match against any of the team's labels."""
        n = needle.strip().lower()
        if not n:
            return False
        return any(
            n in label.lower()
            for label in (self.name, self.display_name, self.short_name, self.abbreviation)
            if label
        )


class GameSnapshot(DomainModel):
    """Current state of one game as read from the scoreboard feed in one poll."""
    game_id: str
    sport: str
    state: GameState
    completed: bool = False
    period: int = 0
    display_clock: str = ""
    home: TeamScore
    away: TeamScore

    @property
    def is_live(self) -> bool:
        return self.state == GameState.LIVE

    @property
    def is_final(self) -> bool:
        return self.completed or self.state == GameState.FINAL

    def format_status(self) -> str:
        away, home = self.away, self.home
        if self.state == GameState.PRE:
            return f"Upcoming: {away.display_name} @ {home.display_name}"
        if self.state == GameState.LIVE:
            return (
                f"LIVE Q{self.period} {self.display_clock}: "
                f"{away.display_name} {away.score}, {home.display_name} {home.score}"
            )
        return f"FINAL: {away.display_name} {away.score}, {home.display_name} {home.score}"


# ── Subscription ────────────────────────────────────────────────────────
class Subscription(DomainModel):
    id: uuid.UUID
    scope: str
    game_id: str
    team_name: str
    sport: str
    user_id: Optional[str] = None
    last_score_home: Optional[int] = None
    last_score_away: Optional[int] = None
    last_period: Optional[int] = None
    is_active: bool = True
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_baseline(self) -> bool:
        return self.last_score_home is not None and self.last_score_away is not None


# ── Chat payloads ───────────────────────────────────────────────────────
class ScorePair(WireModel):
    home: Optional[int] = None
    away: Optional[int] = None


class GameUpdateTeam(WireModel):
    name: str
    abbreviation: str
    logo: Optional[str] = None
    score: int


class GameUpdateStatus(WireModel):
    period: int
    clock: str
    state: str


class GameUpdatePayload(WireModel):
    """Structured score card; the rendering layer special-cases messages carrying it."""
    home_team: GameUpdateTeam
    away_team: GameUpdateTeam
    status: GameUpdateStatus
    sport: str
    previous_scores: ScorePair = Field(default_factory=ScorePair)


class ChatMessage(DomainModel):
    id: uuid.UUID
    scope: str
    user_id: str
    username: str
    avatar_url: Optional[str] = None
    kind: MessageKind = MessageKind.TEXT
    content: str = ""
    image_url: Optional[str] = None
    payload: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


class UserPreference(DomainModel):
    user_id: str
    scope: str
    notifications_enabled: bool = True
    updated_at: Optional[datetime] = None
