"""
Chat message and notification-preference persistence.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError

from shared.errors import PersistenceError
from shared.models.domain import ChatMessage, UserPreference
from shared.models.enums import MessageKind
from shared.models.orm import ChatMessageORM, UserPreferenceORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from shared.utils.metrics import MESSAGES_POSTED

logger = get_logger(__name__)


class ChatStore:
    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    # ── Messages ────────────────────────────────────────────────────────
    async def append(
        self,
        scope: str,
        user_id: str,
        username: str,
        content: str,
        kind: MessageKind = MessageKind.TEXT,
        avatar_url: str | None = None,
        image_url: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> ChatMessage:
        """Persist one message. Raises PersistenceError on write failure."""
        row = ChatMessageORM(
            id=uuid.uuid4(),
            scope=scope,
            user_id=user_id,
            username=username,
            avatar_url=avatar_url,
            kind=kind.value,
            content=content,
            image_url=image_url,
            payload=payload,
            created_at=datetime.now(timezone.utc),
        )
        try:
            async with self._db.write_session() as session:
                session.add(row)
        except SQLAlchemyError as exc:
            logger.error("chat_message_write_failed", scope=scope, kind=kind.value, error=str(exc))
            raise PersistenceError(f"could not store chat message in {scope}") from exc
        MESSAGES_POSTED.labels(kind=kind.value).inc()
        return ChatMessage.model_validate(row)

    async def list_messages(self, scope: str, limit: int = 100) -> list[ChatMessage]:
        """Most recent `limit` messages of a scope, oldest first."""
        stmt = (
            select(ChatMessageORM)
            .where(ChatMessageORM.scope == scope)
            .order_by(ChatMessageORM.created_at.desc())
            .limit(limit)
        )
        try:
            async with self._db.read_session() as session:
                rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            logger.error("chat_message_read_failed", scope=scope, error=str(exc))
            raise PersistenceError(f"could not read messages of {scope}") from exc
        return [ChatMessage.model_validate(r) for r in reversed(rows)]

    # ── Preferences ─────────────────────────────────────────────────────
    async def notification_recipients(self, scope: str, exclude_user_id: str | None = None) -> list[str]:
        """User ids in scope with an explicit notifications_enabled row."""
        stmt = select(UserPreferenceORM.user_id).where(
            UserPreferenceORM.scope == scope,
            UserPreferenceORM.notifications_enabled.is_(True),
        )
        if exclude_user_id:
            stmt = stmt.where(UserPreferenceORM.user_id != exclude_user_id)
        try:
            async with self._db.read_session() as session:
                return list((await session.scalars(stmt)).all())
        except SQLAlchemyError as exc:
            logger.error("recipient_read_failed", scope=scope, error=str(exc))
            raise PersistenceError(f"could not read notification recipients of {scope}") from exc

    async def get_preference(self, user_id: str, scope: str) -> UserPreference:
        """Stored preference, or an enabled default when none exists."""
        stmt = select(UserPreferenceORM).where(
            UserPreferenceORM.user_id == user_id,
            UserPreferenceORM.scope == scope,
        )
        try:
            async with self._db.read_session() as session:
                row: Optional[UserPreferenceORM] = await session.scalar(stmt)
        except SQLAlchemyError as exc:
            logger.error("preference_read_failed", user_id=user_id, scope=scope, error=str(exc))
            raise PersistenceError(f"could not read preference for {user_id}") from exc
        if row is None:
            return UserPreference(user_id=user_id, scope=scope, notifications_enabled=True)
        return UserPreference.model_validate(row)

    async def set_preference(self, user_id: str, scope: str, enabled: bool) -> UserPreference:
        now = datetime.now(timezone.utc)
        stmt = (
            insert(UserPreferenceORM)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                scope=scope,
                notifications_enabled=enabled,
                updated_at=now,
            )
            .on_conflict_do_update(
                index_elements=["user_id", "scope"],
                set_={"notifications_enabled": enabled, "updated_at": now},
            )
        )
        try:
            async with self._db.write_session() as session:
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("preference_write_failed", user_id=user_id, scope=scope, error=str(exc))
            raise PersistenceError(f"could not store preference for {user_id}") from exc
        logger.info("preference_updated", user_id=user_id, scope=scope, enabled=enabled)
        return UserPreference(user_id=user_id, scope=scope, notifications_enabled=enabled, updated_at=now)
