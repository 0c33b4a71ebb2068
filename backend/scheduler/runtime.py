"""
Component wiring shared by the API service and the standalone poll worker.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.config import Settings, get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager

from commands.slash import SlashCommands
from feed.client import FeedClient
from notifier.chat_store import ChatStore
from notifier.dispatcher import NotificationDispatcher
from notifier.push import PushClient
from reconciler.engine import ReconciliationEngine
from scheduler.trigger import PollTrigger
from tracking.service import TrackingService
from tracking.store import SubscriptionStore

logger = get_logger(__name__)


@dataclass
class Runtime:
    settings: Settings
    db: DatabaseManager
    redis: RedisManager
    feed: FeedClient
    store: SubscriptionStore
    tracking: TrackingService
    chat_store: ChatStore
    push: PushClient
    dispatcher: NotificationDispatcher
    engine: ReconciliationEngine
    commands: SlashCommands
    trigger: Optional[PollTrigger] = None

    async def close(self) -> None:
        if self.trigger is not None:
            self.trigger.stop()
            await self.trigger.wait_idle()
        await self.push.close()
        await self.feed.close()
        await self.db.disconnect()
        await self.redis.disconnect()


async def build_runtime(settings: Settings | None = None) -> Runtime:
    """
    Connect Postgres and Redis, create the schema and wire every component.

    A failure part way through closes whatever was already opened before the
    error propagates.
    """
    settings = settings or get_settings()

    redis = RedisManager(settings)
    db = DatabaseManager(settings)
    feed = FeedClient(redis=redis, settings=settings)
    push = PushClient(settings)
    try:
        await redis.connect()
        await db.connect()
        await db.create_schema()
        await feed.start()
        await push.start()
    except BaseException as exc:
        logger.error("runtime_start_failed", error=str(exc))
        for close in (push.close, feed.close, db.disconnect, redis.disconnect):
            try:
                await close()
            except Exception as cleanup_exc:
                logger.warning("runtime_cleanup_failed", error=str(cleanup_exc))
        raise

    store = SubscriptionStore(db)
    tracking = TrackingService(store, feed, settings)
    chat_store = ChatStore(db)
    dispatcher = NotificationDispatcher(chat_store, push, redis=redis, settings=settings)
    engine = ReconciliationEngine(store, feed, dispatcher)
    commands = SlashCommands(tracking, feed, settings)

    logger.info("runtime_ready", push_enabled=push.enabled)
    return Runtime(
        settings=settings,
        db=db,
        redis=redis,
        feed=feed,
        store=store,
        tracking=tracking,
        chat_store=chat_store,
        push=push,
        dispatcher=dispatcher,
        engine=engine,
        commands=commands,
    )
