from sqlalchemy import Column, Text, Integer, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from thesiscollab.database import Base


class VersionComment(Base):
    __tablename__ = "version_comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    version_id = Column(Uuid(as_uuid=True), ForeignKey("document_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_comment_id = Column(Uuid(as_uuid=True), ForeignKey("version_comments.id"), nullable=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False)
    content = Column(Text, nullable=False)
    start_position = Column(Integer, nullable=True)
    end_position = Column(Integer, nullable=True)
    resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by_user_id = Column(Uuid(as_uuid=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by_user_id = Column(Uuid(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    version = relationship("DocumentVersion", back_populates="comments")

    def __repr__(self):
        return f"<VersionComment(id={self.id}, version_id={self.version_id}, resolved={self.resolved})>"
