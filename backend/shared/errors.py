"""
Error taxonomy shared by the feed, store, reconciliation and notification layers.
"""
from __future__ import annotations


class ScorecastError(RuntimeError):
    """Base error for Scorecast operations."""


class UpstreamUnavailable(ScorecastError):
    """The scoreboard feed could not be read (non-2xx, transport error or malformed body)."""

    def __init__(self, sport: str, reason: str, status_code: int | None = None) -> None:
        self.sport = sport
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Scoreboard feed unavailable for {sport}: {reason}")


class UnknownSport(UpstreamUnavailable):
    """The sport key has no feed endpoint mapping."""

    def __init__(self, sport: str) -> None:
        super().__init__(sport, "unknown sport key")


class PersistenceError(ScorecastError):
    """A store write (subscription, chat message, preference) failed."""


class NotificationDeliveryError(ScorecastError):
    """Push delivery failed. Always swallowed by the dispatcher."""
