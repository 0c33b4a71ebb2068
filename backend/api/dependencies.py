"""
Dependency injection for the API service.
Hands the components wired at startup to route handlers.
"""
from __future__ import annotations

from commands.slash import SlashCommands
from feed.client import FeedClient
from notifier.chat_store import ChatStore
from notifier.dispatcher import NotificationDispatcher
from reconciler.engine import ReconciliationEngine
from scheduler.runtime import Runtime
from tracking.service import TrackingService

# Module-level singleton, initialized at startup
_runtime: Runtime | None = None


def init_dependencies(runtime: Runtime | None) -> None:
    """Initialize (or clear, with None) the module-level runtime."""
    global _runtime
    _runtime = runtime


def get_runtime() -> Runtime:
    if _runtime is None:
        raise RuntimeError("Runtime not initialized, call init_dependencies first")
    return _runtime


def get_tracking() -> TrackingService:
    return get_runtime().tracking


def get_engine() -> ReconciliationEngine:
    return get_runtime().engine


def get_feed() -> FeedClient:
    return get_runtime().feed


def get_dispatcher() -> NotificationDispatcher:
    return get_runtime().dispatcher


def get_chat_store() -> ChatStore:
    return get_runtime().chat_store


def get_commands() -> SlashCommands:
    return get_runtime().commands
