from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from .roles import (
    CollaboratorRole,
    PermissionLevel,
    RoleCategory,
    at_least,
    category_of,
    is_primary_role,
)

if TYPE_CHECKING:
    from .collaborators import CollaboratorSet


class CollaboratorStatus(str, enum.Enum):
    ACTIVE = "active"
    REMOVED = "removed"


class DocumentStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    REVISION = "revision"
    APPROVED = "approved"
    FINALIZED = "finalized"


# Statuses in which the students still own the content
OPEN_STATUSES = frozenset({DocumentStatus.DRAFT, DocumentStatus.REVISION})


@dataclass(frozen=True)
class Collaborator:
    id: UUID
    document_id: UUID
    user_id: UUID
    role: CollaboratorRole
    permission: PermissionLevel
    added_at: datetime
    added_by_user_id: Optional[UUID] = None
    status: CollaboratorStatus = CollaboratorStatus.ACTIVE
    last_access_at: Optional[datetime] = None
    removed_at: Optional[datetime] = None
    removed_by_user_id: Optional[UUID] = None

    @property
    def active(self) -> bool:
        return self.status == CollaboratorStatus.ACTIVE

    @property
    def category(self) -> RoleCategory:
        return category_of(self.role)

    @property
    def is_primary(self) -> bool:
        return is_primary_role(self.role)

    @property
    def can_read(self) -> bool:
        return self.active

    @property
    def can_comment(self) -> bool:
        return self.active and at_least(self.permission, PermissionLevel.READ_COMMENT)

    @property
    def can_write(self) -> bool:
        return self.active and at_least(self.permission, PermissionLevel.READ_WRITE)

    @property
    def can_manage(self) -> bool:
        return self.active and self.permission == PermissionLevel.FULL_ACCESS


@dataclass(frozen=True)
class Document:
    id: UUID
    title: str
    collaborators: "CollaboratorSet"
    created_at: datetime
    description: Optional[str] = None
    status: DocumentStatus = DocumentStatus.DRAFT
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    finalized_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class Version:
    """Full content snapshot; never mutated once created."""

    id: UUID
    document_id: UUID
    version_number: int
    content: str
    created_by_user_id: UUID
    created_at: datetime
    commit_message: Optional[str] = None
    request_id: Optional[str] = None


@dataclass(frozen=True)
class Comment:
    id: UUID
    version_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    start_position: Optional[int] = None
    end_position: Optional[int] = None
    parent_comment_id: Optional[UUID] = None
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by_user_id: Optional[UUID] = None
    deleted_at: Optional[datetime] = None
    deleted_by_user_id: Optional[UUID] = None

    @property
    def deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_reply(self) -> bool:
        return self.parent_comment_id is not None
