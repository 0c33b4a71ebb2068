"""
GET /v1/scoreboard?sport=basketball/nba: feed pass-through for chat clients.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import get_feed
from feed.client import FeedClient

router = APIRouter(prefix="/v1", tags=["scoreboard"])


@router.get("/scoreboard")
async def get_scoreboard(
    response: Response,
    sport: Optional[str] = Query(None, description="Sport key, e.g. basketball/nba"),
    feed: FeedClient = Depends(get_feed),
) -> dict[str, Any]:
    data = await feed.scoreboard_raw(sport or feed.default_sport)
    response.headers["Cache-Control"] = f"public, max-age={feed.cache_ttl_s}"
    return data
