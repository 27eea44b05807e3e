from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime
from uuid import UUID


class VersionCreate(BaseModel):
    content: str
    commit_message: Optional[str] = Field(None, max_length=1000)
    request_id: Optional[str] = Field(None, max_length=100, description="Client correlation id for retries")


class VersionResponse(BaseModel):
    id: UUID
    document_id: UUID
    version_number: int
    commit_message: Optional[str] = None
    created_by_user_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class VersionDetailResponse(VersionResponse):
    """Version with its full content snapshot."""
    content: str


class DiffLine(BaseModel):
    """Single line in a diff."""
    type: Literal["added", "deleted", "unchanged"]
    content: str
    old_line_number: Optional[int] = None
    new_line_number: Optional[int] = None

    class Config:
        from_attributes = True


class DiffStats(BaseModel):
    """Statistics about a diff."""
    additions: int
    deletions: int
    unchanged: int

    class Config:
        from_attributes = True


class VersionDiff(BaseModel):
    """Diff between two versions of one document."""
    document_id: UUID
    from_version: int
    to_version: int
    diff_lines: List[DiffLine]
    stats: DiffStats

    class Config:
        from_attributes = True
