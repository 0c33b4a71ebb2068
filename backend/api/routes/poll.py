"""
GET /v1/poll-games: run one reconciliation cycle.

Entry point for external schedulers; safe to call while the in-process
trigger is also polling.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from api.dependencies import get_engine
from reconciler.engine import ReconciliationEngine

router = APIRouter(prefix="/v1", tags=["poll"])


@router.get("/poll-games")
async def poll_games(engine: ReconciliationEngine = Depends(get_engine)) -> dict[str, Any]:
    report = await engine.run_cycle(trigger="api")
    return report.to_dict()
