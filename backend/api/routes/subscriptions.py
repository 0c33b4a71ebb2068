"""
Subscription REST endpoints.

POST   /v1/subscriptions: track a game in a scope (idempotent)
GET    /v1/subscriptions: active subscriptions of a scope
DELETE /v1/subscriptions: untrack by game id or team name
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.utils.logging import get_logger

from api.dependencies import get_tracking
from api.schemas import TrackRequest, UntrackRequest
from tracking.service import TrackingService

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["subscriptions"])


@router.post("/subscriptions")
async def track_game(
    body: TrackRequest,
    tracking: TrackingService = Depends(get_tracking),
) -> dict[str, Any]:
    sub, created = await tracking.track(
        body.scope,
        body.game_id,
        body.team_name,
        body.sport,
        user_id=body.user_id,
    )
    return {
        "subscription": sub.model_dump(mode="json"),
        "created": created,
        "message": None if created else "Already tracking this game",
    }


@router.get("/subscriptions")
async def list_subscriptions(
    scope: str = Query(..., min_length=1),
    tracking: TrackingService = Depends(get_tracking),
) -> dict[str, Any]:
    subs = await tracking.list(scope)
    return {"subscriptions": [s.model_dump(mode="json") for s in subs]}


@router.delete("/subscriptions")
async def untrack_game(
    body: UntrackRequest,
    tracking: TrackingService = Depends(get_tracking),
) -> dict[str, Any]:
    if not body.game_id and not body.team_name:
        raise HTTPException(status_code=400, detail="gameId or teamName is required")
    count = await tracking.untrack(body.scope, game_id=body.game_id, team_pattern=body.team_name)
    return {"success": True, "deactivated": count}
