"""
Document lifecycle state machine.

DRAFT -> SUBMITTED -> {REVISION, APPROVED} -> FINALIZED, with
REVISION -> SUBMITTED as the resubmission edge. Any (status, event) pair
missing from the table is rejected with INVALID_TRANSITION and the document
is returned untouched.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from uuid import UUID

from .authorization import Action, authorize
from .collaborators import CollaboratorSet
from .errors import Err, ErrorKind, Ok, Result
from .events import DomainEvent, EventType, utcnow
from .policy import CollaborationPolicy, resolve_policy
from .roles import CollaboratorRole
from .types import Document, DocumentStatus

logger = logging.getLogger(__name__)


class LifecycleEvent(str, enum.Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REQUEST_REVISION = "request_revision"
    FINALIZE = "finalize"


@dataclass(frozen=True)
class Transition:
    target: DocumentStatus
    action: Action
    event_type: EventType


TRANSITIONS: Dict[Tuple[DocumentStatus, LifecycleEvent], Transition] = {
    (DocumentStatus.DRAFT, LifecycleEvent.SUBMIT): Transition(
        DocumentStatus.SUBMITTED, Action.SUBMIT_DOCUMENT, EventType.DOCUMENT_SUBMITTED
    ),
    (DocumentStatus.SUBMITTED, LifecycleEvent.APPROVE): Transition(
        DocumentStatus.APPROVED, Action.APPROVE_DOCUMENT, EventType.DOCUMENT_APPROVED
    ),
    (DocumentStatus.SUBMITTED, LifecycleEvent.REQUEST_REVISION): Transition(
        DocumentStatus.REVISION, Action.REQUEST_REVISION, EventType.DOCUMENT_REVISION_REQUESTED
    ),
    (DocumentStatus.REVISION, LifecycleEvent.SUBMIT): Transition(
        DocumentStatus.SUBMITTED, Action.SUBMIT_DOCUMENT, EventType.DOCUMENT_SUBMITTED
    ),
    (DocumentStatus.APPROVED, LifecycleEvent.FINALIZE): Transition(
        DocumentStatus.FINALIZED, Action.FINALIZE_DOCUMENT, EventType.DOCUMENT_FINALIZED
    ),
}


def allowed_events(status: DocumentStatus) -> List[LifecycleEvent]:
    status = DocumentStatus(status)
    return [event for (source, event) in TRANSITIONS if source == status]


def start_document(
    owner_user_id: UUID,
    title: str,
    description: Optional[str] = None,
    *,
    creator_role: CollaboratorRole = CollaboratorRole.PRIMARY_STUDENT,
    document_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> Result[Document]:
    """New DRAFT document owned by ``owner_user_id`` as primary of its category."""
    title = (title or "").strip()
    if not title:
        return Err(ErrorKind.VALIDATION_FAILED, "Document title is required")

    creator_role = CollaboratorRole(creator_role)
    now = now or utcnow()
    document_id = document_id or uuid.uuid4()
    try:
        collaborators = CollaboratorSet.founded_by(document_id, owner_user_id, role=creator_role, now=now)
    except ValueError as exc:
        return Err(ErrorKind.VALIDATION_FAILED, str(exc), {"role": creator_role.value})

    founder = collaborators.members[0]
    document = Document(
        id=document_id,
        title=title,
        description=description,
        collaborators=collaborators,
        created_at=now,
    )
    events = (
        DomainEvent(
            type=EventType.DOCUMENT_CREATED,
            document_id=document_id,
            actor_user_id=owner_user_id,
            timestamp=now,
            extra={"title": title},
        ),
        DomainEvent(
            type=EventType.COLLABORATOR_ADDED,
            document_id=document_id,
            actor_user_id=owner_user_id,
            affected_user_id=owner_user_id,
            timestamp=now,
            extra={
                "collaborator_id": str(founder.id),
                "role": founder.role.value,
                "permission": founder.permission.value,
                "reactivated": False,
            },
        ),
    )
    logger.info("Document %s created by %s", document_id, owner_user_id)
    return Ok(document, events)


def update_details(
    document: Document,
    actor_user_id: UUID,
    title: Optional[str] = None,
    description: Optional[str] = None,
    *,
    policy: Optional[CollaborationPolicy] = None,
    now: Optional[datetime] = None,
) -> Result[Document]:
    """Change the title and/or description; ``None`` leaves a field as it is."""
    decision = authorize(
        document.collaborators, actor_user_id, Action.EDIT_CONTENT, status=document.status, policy=policy
    )
    if not decision.allowed:
        return decision.to_error()

    changes = {}
    if title is not None:
        title = title.strip()
        if not title:
            return Err(ErrorKind.VALIDATION_FAILED, "Document title cannot be blank")
        if title != document.title:
            changes["title"] = title
    if description is not None and description != document.description:
        changes["description"] = description
    if not changes:
        return Ok(document)

    now = now or utcnow()
    logger.info("Document %s details changed by %s: %s", document.id, actor_user_id, sorted(changes))
    return Ok(
        replace(document, **changes),
        (
            DomainEvent(
                type=EventType.DOCUMENT_UPDATED,
                document_id=document.id,
                actor_user_id=actor_user_id,
                timestamp=now,
                extra={"changed_fields": sorted(changes), **changes},
            ),
        ),
    )


def delete_document(
    document: Document,
    actor_user_id: UUID,
    *,
    policy: Optional[CollaborationPolicy] = None,
    now: Optional[datetime] = None,
) -> Result[Document]:
    """Soft-delete a DRAFT document; only its primary student may do it."""
    decision = authorize(
        document.collaborators, actor_user_id, Action.DELETE_DOCUMENT, status=document.status, policy=policy
    )
    if not decision.allowed:
        return decision.to_error()

    now = now or utcnow()
    logger.info("Document %s deleted by %s", document.id, actor_user_id)
    return Ok(
        replace(document, deleted_at=now),
        (
            DomainEvent(
                type=EventType.DOCUMENT_DELETED,
                document_id=document.id,
                actor_user_id=actor_user_id,
                timestamp=now,
                extra={"title": document.title},
            ),
        ),
    )


class DocumentLifecycle:
    """Applies lifecycle events to documents.

    Checks run in a fixed order: the transition table first, then the
    authorization engine, then the event-specific guards.
    """

    def __init__(self, policy: Optional[CollaborationPolicy] = None):
        self.policy = policy

    def transition(
        self,
        document: Document,
        event: LifecycleEvent,
        actor_user_id: UUID,
        *,
        reason: Optional[str] = None,
        version_count: int = 0,
        now: Optional[datetime] = None,
    ) -> Result[Document]:
        event = LifecycleEvent(event)
        policy = resolve_policy(self.policy)
        current = document.status

        step = TRANSITIONS.get((current, event))
        if step is None:
            logger.debug("Rejected %s on document %s in status %s", event.value, document.id, current.value)
            return Err(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot {event.value} a document that is {current.value}",
                {"status": current.value, "event": event.value},
            )

        decision = authorize(document.collaborators, actor_user_id, step.action, status=current, policy=policy)
        if not decision.allowed:
            return decision.to_error()

        if event == LifecycleEvent.SUBMIT and current == DocumentStatus.DRAFT and version_count < 1:
            return Err(
                ErrorKind.VALIDATION_FAILED,
                "A document needs at least one version before it can be submitted",
                {"status": current.value},
            )

        reason = (reason or "").strip() or None
        if event == LifecycleEvent.REQUEST_REVISION and reason is None:
            return Err(ErrorKind.VALIDATION_FAILED, "A reason is required when requesting a revision")

        now = now or utcnow()
        changes = {"status": step.target}
        extra = {"from_status": current.value, "to_status": step.target.value}
        if event == LifecycleEvent.SUBMIT:
            changes["submitted_at"] = now
        elif event == LifecycleEvent.APPROVE:
            changes["approved_at"] = now
        elif event == LifecycleEvent.REQUEST_REVISION:
            changes["rejected_at"] = now
            changes["rejection_reason"] = reason
            extra["reason"] = reason
        elif event == LifecycleEvent.FINALIZE:
            changes["finalized_at"] = now

        updated = replace(document, **changes)
        logger.info(
            "Document %s moved %s -> %s by %s",
            document.id,
            current.value,
            step.target.value,
            actor_user_id,
        )
        return Ok(
            updated,
            (
                DomainEvent(
                    type=step.event_type,
                    document_id=document.id,
                    actor_user_id=actor_user_id,
                    timestamp=now,
                    extra=extra,
                ),
            ),
        )

    def submit(self, document: Document, actor_user_id: UUID, *, version_count: int, now=None) -> Result[Document]:
        return self.transition(document, LifecycleEvent.SUBMIT, actor_user_id, version_count=version_count, now=now)

    def approve(self, document: Document, actor_user_id: UUID, *, now=None) -> Result[Document]:
        return self.transition(document, LifecycleEvent.APPROVE, actor_user_id, now=now)

    def request_revision(self, document: Document, actor_user_id: UUID, reason: str, *, now=None) -> Result[Document]:
        return self.transition(document, LifecycleEvent.REQUEST_REVISION, actor_user_id, reason=reason, now=now)

    def finalize(self, document: Document, actor_user_id: UUID, *, now=None) -> Result[Document]:
        return self.transition(document, LifecycleEvent.FINALIZE, actor_user_id, now=now)
