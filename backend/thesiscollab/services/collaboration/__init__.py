"""Document collaboration core: roles, collaborators, authorization, lifecycle, versions and comments."""

from .roles import CollaboratorRole, PermissionLevel, RoleCategory
from .types import Collaborator, CollaboratorStatus, Comment, Document, DocumentStatus, Version
from .errors import DomainError, Err, ErrorKind, Ok, Result
from .events import DomainEvent, EventType
from .policy import CollaborationPolicy
from .authorization import Action, Allow, Deny, authorize, capabilities
from .collaborators import CollaboratorSet
from .lifecycle import DocumentLifecycle, LifecycleEvent, allowed_events, delete_document, start_document, update_details
from .versions import CreatedVersion, DiffLine, DiffStats, VersionDiff, VersionHistory, compute_diff, create_version, diff_versions
from .comments import (
    CommentThread,
    active_comments,
    add_comment,
    build_threads,
    comments_in_range,
    delete_comment,
    reply_to_comment,
    resolve_comment,
    update_comment,
)
from .locks import DocumentLockRegistry, DocumentLockTimeout, document_locks

__all__ = [
    "CollaboratorRole",
    "PermissionLevel",
    "RoleCategory",
    "Collaborator",
    "CollaboratorStatus",
    "Comment",
    "Document",
    "DocumentStatus",
    "Version",
    "DomainError",
    "Err",
    "ErrorKind",
    "Ok",
    "Result",
    "DomainEvent",
    "EventType",
    "CollaborationPolicy",
    "Action",
    "Allow",
    "Deny",
    "authorize",
    "capabilities",
    "CollaboratorSet",
    "DocumentLifecycle",
    "LifecycleEvent",
    "allowed_events",
    "start_document",
    "update_details",
    "delete_document",
    "CreatedVersion",
    "DiffLine",
    "DiffStats",
    "VersionDiff",
    "VersionHistory",
    "compute_diff",
    "create_version",
    "diff_versions",
    "CommentThread",
    "active_comments",
    "add_comment",
    "build_threads",
    "comments_in_range",
    "delete_comment",
    "reply_to_comment",
    "resolve_comment",
    "update_comment",
    "DocumentLockRegistry",
    "DocumentLockTimeout",
    "document_locks",
]
