"""
Chat slash commands: /live, /stop and /games.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from shared.config import Settings, get_settings
from shared.errors import PersistenceError, UpstreamUnavailable
from shared.utils.logging import get_logger

from feed.client import FeedClient
from tracking.service import TrackingService

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandContext:
    scope: str
    user_id: str
    username: str


@dataclass(frozen=True)
class CommandResult:
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def text(self) -> str:
        """Chat line posted on behalf of the caller."""
        if self.success:
            return self.message or ""
        return f"Error: {self.error}"

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"success": self.success}
        if self.message is not None:
            data["message"] = self.message
        if self.error is not None:
            data["error"] = self.error
        return data


def is_slash_command(text: str) -> bool:
    return text.strip().startswith("/")


def parse_slash_command(text: str) -> Optional[tuple[str, list[str]]]:
    """("live", ["lakers"]) for "/live lakers"; None when not a command."""
    trimmed = text.strip()
    if not trimmed.startswith("/"):
        return None
    parts = trimmed[1:].split()
    if not parts:
        return "", []
    return parts[0].lower(), parts[1:]


Handler = Callable[[list[str], CommandContext], Awaitable[CommandResult]]


class SlashCommands:
    def __init__(
        self,
        tracking: TrackingService,
        feed: FeedClient,
        settings: Settings | None = None,
    ) -> None:
        self._tracking = tracking
        self._feed = feed
        self._settings = settings or get_settings()
        self._handlers: dict[str, Handler] = {
            "live": self._live,
            "stop": self._stop,
            "games": self._games,
        }

    @property
    def available(self) -> list[str]:
        return list(self._handlers)

    async def execute(self, text: str, ctx: CommandContext) -> CommandResult:
        parsed = parse_slash_command(text)
        if parsed is None:
            return CommandResult(False, error="Invalid command format")
        command, args = parsed
        handler = self._handlers.get(command)
        if handler is None:
            return CommandResult(
                False,
                error=f"Unknown command: /{command}. Available commands: {', '.join(self.available)}",
            )
        logger.info("slash_command", command=command, scope=ctx.scope, user_id=ctx.user_id)
        return await handler(args, ctx)

    async def _live(self, args: list[str], ctx: CommandContext) -> CommandResult:
        if not args:
            return CommandResult(False, error="Please provide a team name. Usage: /live [team name]")
        team = " ".join(args)
        sport = self._settings.default_sport
        try:
            game = await self._feed.find_game_by_team_name(team, sport)
            if game is None:
                return CommandResult(
                    False,
                    error=(
                        f'No game found for "{team}". Make sure the team name is correct '
                        "and they have a game today."
                    ),
                )
            if not game.is_live:
                return CommandResult(True, message=f"Game found but not live yet: {game.format_status()}")
            await self._tracking.track(ctx.scope, game.game_id, team, sport, user_id=ctx.user_id)
        except (UpstreamUnavailable, PersistenceError) as exc:
            logger.warning("slash_live_failed", team=team, error=str(exc))
            return CommandResult(False, error="Failed to track game. Please try again.")
        return CommandResult(True, message=f"Now tracking: {game.format_status()}")

    async def _stop(self, args: list[str], ctx: CommandContext) -> CommandResult:
        if not args:
            return CommandResult(False, error="Please provide a team name. Usage: /stop [team name]")
        team = " ".join(args)
        try:
            await self._tracking.untrack(ctx.scope, team_pattern=team)
        except PersistenceError as exc:
            logger.warning("slash_stop_failed", team=team, error=str(exc))
            return CommandResult(False, error="Failed to stop tracking game. Please try again.")
        return CommandResult(True, message=f"Stopped tracking {team}")

    async def _games(self, args: list[str], ctx: CommandContext) -> CommandResult:
        try:
            subs = await self._tracking.list(ctx.scope)
        except PersistenceError as exc:
            logger.warning("slash_games_failed", error=str(exc))
            return CommandResult(False, error="Failed to fetch tracked games. Please try again.")
        if not subs:
            return CommandResult(
                True,
                message="No games are currently being tracked. Use /live [team name] to start tracking a game.",
            )
        lines = "\n".join(f"- {s.team_name}" for s in subs)
        return CommandResult(True, message=f"Currently tracking:\n{lines}")
