from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Uuid, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from thesiscollab.database import Base
from thesiscollab.models.document import enum_values
from thesiscollab.services.collaboration.roles import CollaboratorRole, PermissionLevel
from thesiscollab.services.collaboration.types import CollaboratorStatus


class DocumentCollaborator(Base):
    __tablename__ = "document_collaborators"
    __table_args__ = (
        # One active record per user and document; removed records are kept
        Index(
            "uq_document_collaborators_active_user",
            "document_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    role = Column(
        Enum(CollaboratorRole, name="collaborator_role", values_callable=enum_values),
        default=CollaboratorRole.OBSERVER,
        nullable=False,
    )
    permission = Column(
        Enum(PermissionLevel, name="permission_level", values_callable=enum_values),
        default=PermissionLevel.READ_ONLY,
        nullable=False,
    )
    status = Column(
        Enum(CollaboratorStatus, name="collaborator_status", values_callable=enum_values),
        default=CollaboratorStatus.ACTIVE,
        nullable=False,
    )
    added_by_user_id = Column(Uuid(as_uuid=True), nullable=True)
    added_at = Column(DateTime(timezone=True), server_default=func.now())
    last_access_at = Column(DateTime(timezone=True), nullable=True)
    removed_at = Column(DateTime(timezone=True), nullable=True)
    removed_by_user_id = Column(Uuid(as_uuid=True), nullable=True)

    document = relationship("Document", back_populates="collaborators")

    def __repr__(self):
        return (
            f"<DocumentCollaborator(document_id={self.document_id}, user_id={self.user_id}, "
            f"role={self.role}, permission={self.permission}, status={self.status})>"
        )
