"""
Chat message endpoints.

GET  /v1/messages?scope=...: history of a scope, oldest first
POST /v1/messages: post a message; content starting with "/" runs a
  slash command and posts its result line instead
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.utils.logging import get_logger

from api.dependencies import get_chat_store, get_commands, get_dispatcher
from api.schemas import MessageRequest
from commands.slash import CommandContext, SlashCommands, is_slash_command
from notifier.chat_store import ChatStore
from notifier.dispatcher import NotificationDispatcher

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["messages"])


@router.get("/messages")
async def list_messages(
    scope: str = Query(..., min_length=1),
    limit: int = Query(100, ge=1, le=500),
    chat: ChatStore = Depends(get_chat_store),
) -> dict[str, Any]:
    messages = await chat.list_messages(scope, limit=limit)
    return {"messages": [m.model_dump(mode="json") for m in messages]}


@router.post("/messages")
async def post_message(
    body: MessageRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    commands: SlashCommands = Depends(get_commands),
) -> dict[str, Any]:
    if not body.content and not body.image_url:
        raise HTTPException(status_code=400, detail="Missing required fields")

    if body.content and is_slash_command(body.content):
        ctx = CommandContext(scope=body.scope, user_id=body.user_id, username=body.username)
        result = await commands.execute(body.content, ctx)
        message = await dispatcher.post_chat_message(
            body.scope,
            body.user_id,
            body.username,
            content=result.text,
            avatar_url=body.avatar_url,
        )
        return {"command": result.to_dict(), "message": message.model_dump(mode="json")}

    message = await dispatcher.post_chat_message(
        body.scope,
        body.user_id,
        body.username,
        content=body.content,
        avatar_url=body.avatar_url,
        image_url=body.image_url,
    )
    return {"message": message.model_dump(mode="json")}
