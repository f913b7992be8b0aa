from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _not_blank(value)


class ImageCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=500)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: Optional[int] = Field(None, ge=0)

    @field_validator("url", "file_name")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _not_blank(value)


class ImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    url: str
    file_name: str
    file_size: Optional[int] = None
    upload_date: datetime


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
    images: List[ImageResponse] = []
