from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    content: str
    is_read: bool = False
    created_at: datetime


class ConversationSummary(BaseModel):
    """One row of a user's inbox: the other party and thread state."""

    partner_id: int
    last_message_at: datetime
    unread_count: int = 0
