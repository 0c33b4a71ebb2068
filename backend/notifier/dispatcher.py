"""
Notification Dispatcher.

Turns reconciliation outcomes and user posts into persisted chat messages, then
fans them out best-effort: a publish on the scope's realtime channel and a push
to members who opted in. Only the persistence step can fail the caller.
"""
from __future__ import annotations

from typing import Optional

from redis.exceptions import RedisError

from shared.config import Settings, get_settings
from shared.errors import NotificationDeliveryError, PersistenceError
from shared.models.domain import (
    ChatMessage,
    GameSnapshot,
    GameUpdatePayload,
    GameUpdateStatus,
    GameUpdateTeam,
    ScorePair,
    TeamScore,
)
from shared.models.enums import GameState, MessageKind, OutcomeKind
from shared.utils.logging import get_logger
from shared.utils.metrics import PUSH_FAILURES
from shared.utils.redis_manager import RedisManager

from notifier.chat_store import ChatStore
from notifier.push import PushClient
from reconciler.outcomes import Outcome

logger = get_logger(__name__)

IMAGE_ONLY_CONTENT = "Sent an image"


def _card_team(team: TeamScore) -> GameUpdateTeam:
    return GameUpdateTeam(
        name=team.display_name or team.name,
        abbreviation=team.abbreviation,
        logo=team.logo,
        score=team.score,
    )


def build_game_update(
    snap: GameSnapshot,
    sport: str,
    previous: ScorePair,
    final: bool = False,
) -> GameUpdatePayload:
    """Score card payload; final cards carry clock "Final" and state "post"."""
    if final:
        status = GameUpdateStatus(period=snap.period, clock="Final", state=GameState.FINAL.feed_value)
    else:
        status = GameUpdateStatus(period=snap.period, clock=snap.display_clock, state=snap.state.feed_value)
    return GameUpdatePayload(
        home_team=_card_team(snap.home),
        away_team=_card_team(snap.away),
        status=status,
        sport=sport,
        previous_scores=previous,
    )


def format_push_text(card: GameUpdatePayload) -> str:
    """
    "{away} {a} - {h} {home}", plus "(+N ABBR)" for the side that scored
    (home checked first), prefixed "Final: " or suffixed with the clock.
    """
    home, away = card.home_team, card.away_team
    text = f"{away.name} {away.score} - {home.score} {home.name}"

    prev = card.previous_scores
    home_diff = home.score - prev.home if prev.home is not None else 0
    away_diff = away.score - prev.away if prev.away is not None else 0
    if home_diff > 0:
        text += f" (+{home_diff} {home.abbreviation})"
    elif away_diff > 0:
        text += f" (+{away_diff} {away.abbreviation})"

    if card.status.state == GameState.FINAL.feed_value:
        return f"Final: {text}"
    if card.status.clock:
        text += f" - {card.status.clock}"
    return text


class NotificationDispatcher:
    def __init__(
        self,
        chat_store: ChatStore,
        push: PushClient,
        redis: RedisManager | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._chat = chat_store
        self._push = push
        self._redis = redis
        self._settings = settings or get_settings()

    async def dispatch(self, outcome: Outcome) -> Optional[ChatMessage]:
        """
        Post the chat message for a notifying outcome. Returns the stored
        message, or None for outcomes that produce no message.

        Raises:
            PersistenceError: the chat message could not be stored.
        """
        sub = outcome.subscription
        if outcome.kind == OutcomeKind.GAME_VANISHED:
            message = await self._chat.append(
                scope=sub.scope,
                user_id=self._settings.bot_user_id,
                username=self._settings.bot_username,
                content=f"Game tracking ended for {sub.team_name}",
                kind=MessageKind.SYSTEM,
            )
            await self._publish(message)
            return message

        if outcome.kind not in (OutcomeKind.SCORE_OR_PERIOD_CHANGED, OutcomeKind.GAME_FINISHED):
            return None
        if outcome.snapshot is None:
            logger.warning("outcome_without_snapshot", game_id=sub.game_id, kind=outcome.kind.value)
            return None

        card = build_game_update(
            outcome.snapshot,
            sub.sport,
            outcome.previous,
            final=outcome.kind == OutcomeKind.GAME_FINISHED,
        )
        push_text = format_push_text(card)
        message = await self._chat.append(
            scope=sub.scope,
            user_id=self._settings.bot_user_id,
            username=self._settings.bot_username,
            content=push_text,
            kind=MessageKind.GAME_UPDATE,
            payload=card.to_wire(),
        )
        logger.info("game_update_posted", scope=sub.scope, game_id=sub.game_id, kind=outcome.kind.value)
        await self._publish(message)
        await self._notify(sub.scope, push_text)
        return message

    async def post_chat_message(
        self,
        scope: str,
        user_id: str,
        username: str,
        content: str = "",
        avatar_url: str | None = None,
        image_url: str | None = None,
    ) -> ChatMessage:
        """Store a member's message and push it to everyone else who opted in."""
        message = await self._chat.append(
            scope=scope,
            user_id=user_id,
            username=username,
            content=content,
            kind=MessageKind.TEXT,
            avatar_url=avatar_url,
            image_url=image_url,
        )
        await self._publish(message)
        push_text = content.strip() or (IMAGE_ONLY_CONTENT if image_url else "")
        if push_text:
            await self._notify(scope, push_text, title=username, exclude_user_id=user_id)
        return message

    async def post_system_message(self, scope: str, content: str) -> ChatMessage:
        message = await self._chat.append(
            scope=scope,
            user_id=self._settings.bot_user_id,
            username=self._settings.bot_username,
            content=content,
            kind=MessageKind.SYSTEM,
        )
        await self._publish(message)
        return message

    # ── Best-effort fan-out ─────────────────────────────────────────────
    async def _publish(self, message: ChatMessage) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.publish_chat(message.scope, message.model_dump_json())
        except (RedisError, RuntimeError) as exc:
            logger.warning("chat_publish_failed", scope=message.scope, error=str(exc))

    async def _notify(
        self,
        scope: str,
        content: str,
        title: str | None = None,
        exclude_user_id: str | None = None,
    ) -> None:
        if not self._push.enabled:
            return
        try:
            recipients = await self._chat.notification_recipients(scope, exclude_user_id=exclude_user_id)
        except PersistenceError as exc:
            logger.warning("push_recipients_failed", scope=scope, error=str(exc))
            return
        if not recipients:
            logger.debug("push_no_recipients", scope=scope)
            return
        try:
            await self._push.send(scope, recipients, content, title=title)
        except NotificationDeliveryError as exc:
            PUSH_FAILURES.inc()
            logger.warning("push_failed", scope=scope, recipients=len(recipients), error=str(exc))
