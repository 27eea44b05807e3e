from .collaborator import (
    CollaboratorCreate,
    CollaboratorRoleUpdate,
    CollaboratorPermissionUpdate,
    CollaboratorResponse,
    CollaboratorList,
)
from .document import DocumentCreate, DocumentUpdate, RevisionRequest, DocumentResponse, DocumentCapabilities
from .version import VersionCreate, VersionResponse, VersionDetailResponse, DiffLine, DiffStats, VersionDiff
from .comment import CommentCreate, CommentReply, CommentUpdate, CommentResponse, CommentThread, CommentList
from .event import DomainEventPayload

__all__ = [
    "CollaboratorCreate",
    "CollaboratorRoleUpdate",
    "CollaboratorPermissionUpdate",
    "CollaboratorResponse",
    "CollaboratorList",
    "DocumentCreate",
    "DocumentUpdate",
    "RevisionRequest",
    "DocumentResponse",
    "DocumentCapabilities",
    "VersionCreate",
    "VersionResponse",
    "VersionDetailResponse",
    "DiffLine",
    "DiffStats",
    "VersionDiff",
    # Comment Schemas
    "CommentCreate",
    "CommentReply",
    "CommentUpdate",
    "CommentResponse",
    "CommentThread",
    "CommentList",
    "DomainEventPayload",
]
