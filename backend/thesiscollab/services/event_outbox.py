from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from thesiscollab.models import DocumentEvent
from thesiscollab.schemas.event import DomainEventPayload
from thesiscollab.services.collaboration.events import DomainEvent, utcnow

logger = logging.getLogger(__name__)


def record_document_events(db: Session, events: Iterable[DomainEvent]) -> List[DocumentEvent]:
    """Stage domain events in the outbox of the current transaction.

    Rows are only added to the session; they become visible together with the
    state change that produced them when the caller commits.
    """
    rows: List[DocumentEvent] = []
    for event in events:
        row = DocumentEvent(
            document_id=event.document_id,
            type=event.type.value,
            actor_user_id=event.actor_user_id,
            affected_user_id=event.affected_user_id,
            payload=event.to_payload(),
            occurred_at=event.timestamp,
        )
        db.add(row)
        rows.append(row)
    if rows:
        logger.debug("Staged %d document event(s) for document %s", len(rows), rows[0].document_id)
    return rows


def pending_events(db: Session, *, limit: int = 100) -> List[DocumentEvent]:
    """Oldest undispatched outbox rows, in the order their events happened."""
    return (
        db.query(DocumentEvent)
        .filter(DocumentEvent.dispatched_at.is_(None))
        .order_by(DocumentEvent.occurred_at.asc(), DocumentEvent.created_at.asc())
        .limit(limit)
        .all()
    )


def payload_of(row: DocumentEvent) -> DomainEventPayload:
    return DomainEventPayload.model_validate(row.payload)


def mark_dispatched(db: Session, event_ids: Sequence, *, now: Optional[datetime] = None) -> int:
    if not event_ids:
        return 0
    updated = (
        db.query(DocumentEvent)
        .filter(DocumentEvent.id.in_(list(event_ids)), DocumentEvent.dispatched_at.is_(None))
        .update({DocumentEvent.dispatched_at: now or utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated
