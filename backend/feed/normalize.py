"""
Scoreboard event normalisation.
Turns one feed event into a GameSnapshot with integer scores. Only presence
checks are applied: events without a competition or without both home and
away competitors are skipped. A status that is present but not an object
raises ValueError, which the feed client reports as a malformed body.
"""
from __future__ import annotations

from typing import Any, Optional

from shared.models.domain import GameSnapshot, TeamScore
from shared.models.enums import GameState


def _safe_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return default


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _team_score(competitor: dict[str, Any]) -> TeamScore:
    team = _as_dict(competitor.get("team"))
    score = competitor.get("score")
    # Some sports wrap the score as {"value": 3.0, "displayValue": "3"}.
    if isinstance(score, dict):
        score = score.get("value", score.get("displayValue"))
    return TeamScore(
        team_id=str(team.get("id") or competitor.get("id") or ""),
        name=team.get("name") or "",
        display_name=team.get("displayName") or team.get("name") or "",
        short_name=team.get("shortDisplayName") or "",
        abbreviation=team.get("abbreviation") or "",
        logo=team.get("logo") or None,
        score=_safe_int(score),
    )


def parse_event(event: dict[str, Any], sport: str) -> Optional[GameSnapshot]:
    """Normalise one scoreboard event; None when required parts are missing."""
    if not isinstance(event, dict) or event.get("id") is None:
        return None
    competitions = _as_list(event.get("competitions"))
    if not competitions or not isinstance(competitions[0], dict):
        return None
    comp = competitions[0]
    competitors = _as_list(comp.get("competitors"))
    home = next((c for c in competitors if isinstance(c, dict) and c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if isinstance(c, dict) and c.get("homeAway") == "away"), None)
    if home is None or away is None:
        return None

    status = event.get("status") or comp.get("status") or {}
    status_type = (status.get("type") or {}) if isinstance(status, dict) else None
    if not isinstance(status_type, dict):
        # Guessing a state here would fake a transition; reject the body instead.
        raise ValueError(f"event {event['id']} has a non-object status")
    completed = bool(status_type.get("completed", False))

    return GameSnapshot(
        game_id=str(event["id"]),
        sport=sport,
        state=GameState.from_feed(status_type.get("state", ""), completed=completed),
        completed=completed,
        period=_safe_int(status.get("period")),
        display_clock=str(status.get("displayClock") or ""),
        home=_team_score(home),
        away=_team_score(away),
    )


def parse_scoreboard(data: dict[str, Any], sport: str) -> list[GameSnapshot]:
    """Normalise every usable event of a decoded scoreboard body."""
    snapshots: list[GameSnapshot] = []
    for event in _as_list(data.get("events")):
        snap = parse_event(event, sport)
        if snap is not None:
            snapshots.append(snap)
    return snapshots
