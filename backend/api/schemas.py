"""Request bodies accepted by the HTTP API (camelCase on the wire)."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RequestBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class TrackRequest(RequestBody):
    scope: str = Field(min_length=1)
    game_id: str = Field(min_length=1)
    team_name: str = Field(min_length=1)
    user_id: Optional[str] = None
    sport: Optional[str] = None


class UntrackRequest(RequestBody):
    scope: str = Field(min_length=1)
    game_id: Optional[str] = None
    team_name: Optional[str] = None


class MessageRequest(RequestBody):
    scope: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    content: str = ""
    avatar_url: Optional[str] = None
    image_url: Optional[str] = None


class PreferenceRequest(RequestBody):
    scope: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    notifications_enabled: bool
