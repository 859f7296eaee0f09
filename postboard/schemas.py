"""
Pydantic schemas for the post API.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, StrictStr

from postboard.db import PostRecord


class PostCreateRequest(BaseModel):
    title: StrictStr = Field(..., min_length=1)
    content: StrictStr = Field(..., min_length=1)
    userName: StrictStr = Field(..., min_length=1)


class PostUpdateRequest(BaseModel):
    title: StrictStr = Field(..., min_length=1)
    content: StrictStr = Field(..., min_length=1)


class PostResponse(BaseModel):
    id: str
    title: str
    content: str
    userId: str
    userName: str
    createdAt: datetime

    @classmethod
    def from_record(cls, record: PostRecord) -> "PostResponse":
        return cls(
            id=record.id,
            title=record.title,
            content=record.content,
            userId=record.user_id,
            userName=record.user_name,
            createdAt=record.created_at,
        )
