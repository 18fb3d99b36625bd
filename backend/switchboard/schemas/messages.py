from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from switchboard.schemas.sources import SourceType


class MessageSchema(BaseModel):
    id: str
    content: str
    source_id: str
    sender_id: str
    sender_name: str
    sender_avatar: str
    platform: SourceType
    timestamp: datetime
    is_own: bool

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageCreateSchema(BaseModel):
    content: str
    source_id: str
    platform: SourceType

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageListResponseSchema(BaseModel):
    messages: list[MessageSchema]


class MessageCreateResponseSchema(BaseModel):
    message: MessageSchema
