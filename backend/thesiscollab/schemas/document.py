from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from uuid import UUID

from thesiscollab.services.collaboration.roles import CollaboratorRole
from thesiscollab.services.collaboration.types import DocumentStatus


class DocumentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    creator_role: CollaboratorRole = CollaboratorRole.PRIMARY_STUDENT


class DocumentUpdate(BaseModel):
    """Fields left out keep their current value."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None


class RevisionRequest(BaseModel):
    """Advisor feedback sent back with a revision request."""
    reason: str = Field(..., min_length=1)


class DocumentResponse(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    status: DocumentStatus
    created_at: datetime
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    finalized_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentCapabilities(BaseModel):
    """What the current user may do, keyed by action name."""
    document_id: UUID
    status: DocumentStatus
    allowed: List[str]
    denied: Dict[str, str]
