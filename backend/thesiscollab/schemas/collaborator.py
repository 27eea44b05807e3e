from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from thesiscollab.services.collaboration.roles import CollaboratorRole, PermissionLevel, RoleCategory
from thesiscollab.services.collaboration.types import CollaboratorStatus


class CollaboratorCreate(BaseModel):
    user_id: UUID
    role: Optional[CollaboratorRole] = None
    permission: Optional[PermissionLevel] = None


class CollaboratorRoleUpdate(BaseModel):
    role: CollaboratorRole


class CollaboratorPermissionUpdate(BaseModel):
    permission: PermissionLevel


class CollaboratorResponse(BaseModel):
    id: UUID
    document_id: UUID
    user_id: UUID
    role: CollaboratorRole
    category: RoleCategory
    permission: PermissionLevel
    status: CollaboratorStatus
    is_primary: bool
    added_at: datetime
    added_by_user_id: Optional[UUID] = None
    last_access_at: Optional[datetime] = None
    removed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CollaboratorList(BaseModel):
    collaborators: List[CollaboratorResponse]
    total: int
