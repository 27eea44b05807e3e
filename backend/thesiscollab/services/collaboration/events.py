from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID


class EventType(str, enum.Enum):
    # Collaborators
    COLLABORATOR_ADDED = "collaborator.added"
    COLLABORATOR_REMOVED = "collaborator.removed"
    COLLABORATOR_LEFT = "collaborator.left"
    ROLE_CHANGED = "collaborator.role_changed"
    PERMISSION_CHANGED = "collaborator.permission_changed"
    PRIMARY_PROMOTED = "collaborator.primary_promoted"

    # Lifecycle
    DOCUMENT_CREATED = "document.created"
    DOCUMENT_UPDATED = "document.updated"
    DOCUMENT_DELETED = "document.deleted"
    DOCUMENT_SUBMITTED = "document.submitted"
    DOCUMENT_APPROVED = "document.approved"
    DOCUMENT_REVISION_REQUESTED = "document.revision_requested"
    DOCUMENT_FINALIZED = "document.finalized"

    # Content
    VERSION_CREATED = "version.created"
    COMMENT_ADDED = "comment.added"
    COMMENT_REPLIED = "comment.replied"
    COMMENT_UPDATED = "comment.updated"
    COMMENT_RESOLVED = "comment.resolved"
    COMMENT_DELETED = "comment.deleted"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Something that happened to a document, for the notification subsystem."""

    type: EventType
    document_id: UUID
    actor_user_id: UUID
    timestamp: datetime
    affected_user_id: Optional[UUID] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> str:
        return self.type.value.split(".")[0]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "document_id": str(self.document_id),
            "actor_user_id": str(self.actor_user_id),
            "affected_user_id": str(self.affected_user_id) if self.affected_user_id else None,
            "timestamp": self.timestamp.isoformat(),
            "extra": dict(self.extra),
        }
