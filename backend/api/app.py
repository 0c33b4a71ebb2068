"""
FastAPI application factory for the Scorecast API service.

Creates the app with:
- REST routes (subscriptions, poll, scoreboard, messages, preferences)
- Middleware stack
- Health check endpoints
- Lifespan management: connects Postgres/Redis, wires the components and,
  when enabled, runs an in-process poll trigger alongside any external
  scheduler hitting /v1/poll-games
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Union

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_runtime, init_dependencies
from api.middleware import setup_middleware
from api.routes.messages import router as messages_router
from api.routes.poll import router as poll_router
from api.routes.preferences import router as preferences_router
from api.routes.scoreboard import router as scoreboard_router
from api.routes.subscriptions import router as subscriptions_router
from scheduler.runtime import build_runtime
from scheduler.trigger import PollTrigger

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without DB/Redis."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Startup: connect, wire, start the poll trigger. Shutdown: stop the timer,
    let in-flight cycles finish, then close connections.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server(settings=settings)

    # build_runtime closes its own partial connections when it fails
    runtime = await build_runtime(settings)
    try:
        if settings.poll_trigger_enabled:
            runtime.trigger = PollTrigger(runtime.engine, settings.poll_interval_s, label="timer", settings=settings)
            runtime.trigger.start()
        init_dependencies(runtime)
        logger.info("api_started", poll_trigger=settings.poll_trigger_enabled)
        yield
    finally:
        await runtime.close()
        init_dependencies(None)
        logger.info("api_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing without DB/Redis."""
    app = FastAPI(
        title="Scorecast API",
        description="Live score updates for group chats",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(subscriptions_router)
    app.include_router(poll_router)
    app.include_router(scoreboard_router)
    app.include_router(messages_router)
    app.include_router(preferences_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> dict[str, Union[str, bool]]:
        """Readiness: checks Redis and Postgres."""
        runtime = get_runtime()
        redis_ok = await runtime.redis.ping()
        db_ok = await runtime.db.ping()
        return {
            "status": "ok" if (redis_ok and db_ok) else "degraded",
            "redis": redis_ok,
            "database": db_ok,
            "pollTrigger": bool(runtime.trigger and runtime.trigger.running),
        }

    return app


app = create_app()
