from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

SourceType = Literal["discord", "slack", "teams", "telegram", "local"]


class SourceSchema(BaseModel):
    id: str
    name: str
    type: SourceType
    owner_user_id: str
    is_online: bool
    unread_count: int
    last_message: str
    created_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SourceCreateSchema(BaseModel):
    name: str
    type: SourceType
    token: str


class SourceListResponseSchema(BaseModel):
    sources: list[SourceSchema]


class SourceCreateResponseSchema(BaseModel):
    source: SourceSchema
