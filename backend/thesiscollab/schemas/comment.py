from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    start_position: Optional[int] = Field(None, ge=0)
    end_position: Optional[int] = Field(None, ge=0)


class CommentReply(BaseModel):
    content: str = Field(..., min_length=1)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    id: UUID
    version_id: UUID
    user_id: UUID
    content: str
    start_position: Optional[int] = None
    end_position: Optional[int] = None
    parent_comment_id: Optional[UUID] = None
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by_user_id: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentThread(BaseModel):
    comment: CommentResponse
    replies: List[CommentResponse] = []


class CommentList(BaseModel):
    threads: List[CommentThread]
    total: int
