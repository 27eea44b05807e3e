"""Comments bound to one version of a document.

Resolved and deleted are independent states: a resolved comment stays in
listings, a deleted one never does. Deletion is soft so the thread history
survives. Replies are kept one level deep; replying to a reply attaches to
its root.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional

from uuid import UUID

from .authorization import Action, authorize
from .errors import Err, ErrorKind, Ok, Result
from .events import DomainEvent, EventType, utcnow
from .policy import CollaborationPolicy
from .types import Comment, Document, Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommentThread:
    comment: Comment
    replies: List[Comment]


def _event(
    event_type: EventType,
    document: Document,
    version: Version,
    comment: Comment,
    actor_user_id: UUID,
    now: datetime,
    affected_user_id: Optional[UUID] = None,
    **extra,
) -> DomainEvent:
    extra.update({
        "comment_id": str(comment.id),
        "version_id": str(version.id),
        "version_number": version.version_number,
    })
    return DomainEvent(
        type=event_type,
        document_id=document.id,
        actor_user_id=actor_user_id,
        affected_user_id=affected_user_id,
        timestamp=now,
        extra=extra,
    )


def _check_version(document: Document, version: Version) -> Optional[Err]:
    if version.document_id != document.id:
        return Err(ErrorKind.ENTITY_NOT_FOUND, "Version not found", {"version_id": str(version.id)})
    return None


def _check_comment(version: Version, comment: Comment) -> Optional[Err]:
    if comment.version_id != version.id or comment.deleted:
        return Err(ErrorKind.ENTITY_NOT_FOUND, "Comment not found", {"comment_id": str(comment.id)})
    return None


def validate_span(version: Version, start_position: Optional[int], end_position: Optional[int]) -> Optional[Err]:
    if start_position is None and end_position is None:
        return None
    if start_position is None or end_position is None:
        return Err(ErrorKind.VALIDATION_FAILED, "start_position and end_position must be given together")
    if not 0 <= start_position <= end_position <= len(version.content):
        return Err(
            ErrorKind.VALIDATION_FAILED,
            "Comment span is outside the version content",
            {
                "start_position": start_position,
                "end_position": end_position,
                "content_length": len(version.content),
            },
        )
    return None


def add_comment(
    document: Document,
    version: Version,
    actor_user_id: UUID,
    content: str,
    *,
    start_position: Optional[int] = None,
    end_position: Optional[int] = None,
    policy: Optional[CollaborationPolicy] = None,
    now: Optional[datetime] = None,
) -> Result[Comment]:
    decision = authorize(document.collaborators, actor_user_id, Action.ADD_COMMENT, policy=policy)
    if not decision.allowed:
        return decision.to_error()
    invalid = _check_version(document, version) or validate_span(version, start_position, end_position)
    if invalid:
        return invalid
    content = (content or "").strip()
    if not content:
        return Err(ErrorKind.VALIDATION_FAILED, "Comment content is required")

    now = now or utcnow()
    comment = Comment(
        id=uuid.uuid4(),
        version_id=version.id,
        user_id=actor_user_id,
        content=content,
        created_at=now,
        start_position=start_position,
        end_position=end_position,
    )
    logger.info("Comment %s added on version %s of document %s", comment.id, version.version_number, document.id)
    return Ok(comment, (_event(EventType.COMMENT_ADDED, document, version, comment, actor_user_id, now),))


def reply_to_comment(
    document: Document,
    version: Version,
    parent: Comment,
    actor_user_id: UUID,
    content: str,
    *,
    policy: Optional[CollaborationPolicy] = None,
    now: Optional[datetime] = None,
) -> Result[Comment]:
    decision = authorize(document.collaborators, actor_user_id, Action.ADD_COMMENT, policy=policy)
    if not decision.allowed:
        return decision.to_error()
    invalid = _check_version(document, version) or _check_comment(version, parent)
    if invalid:
        return invalid
    content = (content or "").strip()
    if not content:
        return Err(ErrorKind.VALIDATION_FAILED, "Reply content is required")

    now = now or utcnow()
    reply = Comment(
        id=uuid.uuid4(),
        version_id=version.id,
        user_id=actor_user_id,
        content=content,
        created_at=now,
        parent_comment_id=parent.parent_comment_id or parent.id,
    )
    return Ok(
        reply,
        (
            _event(
                EventType.COMMENT_REPLIED,
                document,
                version,
                reply,
                actor_user_id,
                now,
                affected_user_id=parent.user_id,
                parent_comment_id=str(reply.parent_comment_id),
            ),
        ),
    )


def update_comment(
    document: Document,
    version: Version,
    comment: Comment,
    actor_user_id: UUID,
    content: str,
    *,
    policy: Optional[CollaborationPolicy] = None,
    now: Optional[datetime] = None,
) -> Result[Comment]:
    """Edit the text of a comment; only its author may do this."""
    decision = authorize(document.collaborators, actor_user_id, Action.ADD_COMMENT, policy=policy)
    if not decision.allowed:
        return decision.to_error()
    invalid = _check_version(document, version) or _check_comment(version, comment)
    if invalid:
        return invalid
    if comment.user_id != actor_user_id:
        return Err(ErrorKind.INSUFFICIENT_PERMISSION, "Only the author can edit this comment")
    content = (content or "").strip()
    if not content:
        return Err(ErrorKind.VALIDATION_FAILED, "Comment content is required")
    if content == comment.content:
        return Ok(comment)

    now = now or utcnow()
    updated = replace(comment, content=content, updated_at=now)
    return Ok(updated, (_event(EventType.COMMENT_UPDATED, document, version, updated, actor_user_id, now),))


def resolve_comment(
    document: Document,
    version: Version,
    comment: Comment,
    actor_user_id: UUID,
    *,
    policy: Optional[CollaborationPolicy] = None,
    now: Optional[datetime] = None,
) -> Result[Comment]:
    decision = authorize(document.collaborators, actor_user_id, Action.RESOLVE_COMMENT, comment=comment, policy=policy)
    if not decision.allowed:
        return decision.to_error()
    invalid = _check_version(document, version) or _check_comment(version, comment)
    if invalid:
        return invalid
    if comment.resolved:
        return Ok(comment)

    now = now or utcnow()
    resolved = replace(comment, resolved=True, resolved_at=now, resolved_by_user_id=actor_user_id)
    logger.info("Comment %s resolved by %s", comment.id, actor_user_id)
    return Ok(
        resolved,
        (
            _event(
                EventType.COMMENT_RESOLVED,
                document,
                version,
                resolved,
                actor_user_id,
                now,
                affected_user_id=comment.user_id,
            ),
        ),
    )


def delete_comment(
    document: Document,
    version: Version,
    comment: Comment,
    actor_user_id: UUID,
    *,
    policy: Optional[CollaborationPolicy] = None,
    now: Optional[datetime] = None,
) -> Result[Comment]:
    decision = authorize(document.collaborators, actor_user_id, Action.DELETE_COMMENT, comment=comment, policy=policy)
    if not decision.allowed:
        return decision.to_error()
    invalid = _check_version(document, version)
    if invalid:
        return invalid
    if comment.version_id != version.id:
        return Err(ErrorKind.ENTITY_NOT_FOUND, "Comment not found", {"comment_id": str(comment.id)})
    if comment.deleted:
        return Ok(comment)

    now = now or utcnow()
    deleted = replace(comment, deleted_at=now, deleted_by_user_id=actor_user_id)
    logger.info("Comment %s deleted by %s", comment.id, actor_user_id)
    return Ok(
        deleted,
        (
            _event(
                EventType.COMMENT_DELETED,
                document,
                version,
                deleted,
                actor_user_id,
                now,
                affected_user_id=comment.user_id,
            ),
        ),
    )


def active_comments(
    comments: Iterable[Comment],
    version_id: Optional[UUID] = None,
    resolved: Optional[bool] = None,
) -> List[Comment]:
    """Non-deleted comments, oldest first, optionally narrowed by version and resolved state."""
    selected = [
        c for c in comments
        if not c.deleted
        and (version_id is None or c.version_id == version_id)
        and (resolved is None or c.resolved == resolved)
    ]
    return sorted(selected, key=lambda c: c.created_at)


def comments_in_range(comments: Iterable[Comment], start_position: int, end_position: int) -> List[Comment]:
    """Anchored, non-deleted comments whose span overlaps [start_position, end_position]."""
    return [
        c for c in active_comments(comments)
        if c.start_position is not None
        and c.end_position is not None
        and c.start_position <= end_position
        and c.end_position >= start_position
    ]


def build_threads(comments: Iterable[Comment]) -> List[CommentThread]:
    visible = active_comments(comments)
    threads = {c.id: CommentThread(comment=c, replies=[]) for c in visible if not c.is_reply}
    for reply in visible:
        # Replies under a deleted root are hidden with it
        if reply.is_reply and reply.parent_comment_id in threads:
            threads[reply.parent_comment_id].replies.append(reply)
    return list(threads.values())
