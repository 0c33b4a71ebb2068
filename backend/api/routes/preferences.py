"""
Notification preference endpoints.

GET  /v1/preferences?userId=...&scope=...: defaults to enabled when unset
POST /v1/preferences: upsert
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_chat_store
from api.schemas import PreferenceRequest
from notifier.chat_store import ChatStore

router = APIRouter(prefix="/v1", tags=["preferences"])


@router.get("/preferences")
async def get_preference(
    user_id: str = Query(..., alias="userId", min_length=1),
    scope: str = Query(..., min_length=1),
    chat: ChatStore = Depends(get_chat_store),
) -> dict[str, Any]:
    pref = await chat.get_preference(user_id, scope)
    return {"notificationsEnabled": pref.notifications_enabled}


@router.post("/preferences")
async def set_preference(
    body: PreferenceRequest,
    chat: ChatStore = Depends(get_chat_store),
) -> dict[str, Any]:
    pref = await chat.set_preference(body.user_id, body.scope, body.notifications_enabled)
    return {"success": True, "notificationsEnabled": pref.notifications_enabled}
