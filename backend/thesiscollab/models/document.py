from sqlalchemy import Column, String, Text, DateTime, Enum, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from thesiscollab.database import Base
from thesiscollab.services.collaboration.types import DocumentStatus


def enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Document(Base):
    __tablename__ = "documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(DocumentStatus, name="document_status", values_callable=enum_values),
        default=DocumentStatus.DRAFT,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Lifecycle timestamps
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    # Soft deletion; deleted documents are invisible to every operation
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    collaborators = relationship(
        "DocumentCollaborator",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentCollaborator.added_at",
    )
    versions = relationship(
        "DocumentVersion",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentVersion.version_number",
    )
    events = relationship("DocumentEvent", back_populates="document", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Document(id={self.id}, title='{self.title}', status={self.status})>"
