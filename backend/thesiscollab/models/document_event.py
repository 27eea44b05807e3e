from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from thesiscollab.database import Base

import uuid


class DocumentEvent(Base):
    """Outbox row read by the notification subsystem."""

    __tablename__ = "document_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(100), nullable=False)
    actor_user_id = Column(Uuid(as_uuid=True), nullable=False)
    affected_user_id = Column(Uuid(as_uuid=True), nullable=True)
    payload = Column(JSON, nullable=False, default=dict)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    document = relationship("Document", back_populates="events")

    def __repr__(self) -> str:
        return f"<DocumentEvent(id={self.id}, document_id={self.document_id}, type='{self.type}')>"
