"""Persistence boundary for the collaboration core.

Every mutating call follows the same path: take the in-process lock of the
document, load it with a row lock, run the pure core operation, write the
new state and its domain events to the session and commit once. A rejected
operation rolls back and returns the ``Err`` untouched.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from thesiscollab import models

from thesiscollab.services.collaboration import comments as comment_rules
from thesiscollab.services.collaboration.authorization import Action, Decision, authorize, capabilities
from thesiscollab.services.collaboration.collaborators import CollaboratorSet
from thesiscollab.services.collaboration.errors import Err, ErrorKind, Ok, Result
from thesiscollab.services.collaboration.lifecycle import DocumentLifecycle, delete_document, start_document, update_details
from thesiscollab.services.collaboration.locks import DocumentLockRegistry, document_locks
from thesiscollab.services.collaboration.policy import CollaborationPolicy
from thesiscollab.services.collaboration.roles import CollaboratorRole, PermissionLevel
from thesiscollab.services.collaboration.types import Collaborator, Comment, Document, Version
from thesiscollab.services.collaboration.versions import VersionDiff, VersionHistory, create_version, diff_versions
from thesiscollab.services.event_outbox import record_document_events

logger = logging.getLogger(__name__)

# Whole-operation retries after losing a version-number race to another process
VERSION_CREATE_ATTEMPTS = 3


def _not_found(what: str, **detail) -> Err:
    return Err(ErrorKind.ENTITY_NOT_FOUND, f"{what} not found", {k: str(v) for k, v in detail.items()})


# ----------------------------------------------------------------------
# Row <-> domain conversion
# ----------------------------------------------------------------------

def collaborator_from_row(row: models.DocumentCollaborator) -> Collaborator:
    return Collaborator(
        id=row.id,
        document_id=row.document_id,
        user_id=row.user_id,
        role=CollaboratorRole(row.role),
        permission=PermissionLevel(row.permission),
        added_at=row.added_at,
        added_by_user_id=row.added_by_user_id,
        status=row.status,
        last_access_at=row.last_access_at,
        removed_at=row.removed_at,
        removed_by_user_id=row.removed_by_user_id,
    )


def document_from_row(row: models.Document) -> Document:
    members = tuple(collaborator_from_row(c) for c in row.collaborators)
    return Document(
        id=row.id,
        title=row.title,
        description=row.description,
        collaborators=CollaboratorSet(document_id=row.id, members=members),
        created_at=row.created_at,
        status=row.status,
        submitted_at=row.submitted_at,
        approved_at=row.approved_at,
        rejected_at=row.rejected_at,
        rejection_reason=row.rejection_reason,
        finalized_at=row.finalized_at,
        deleted_at=row.deleted_at,
    )


def version_from_row(row: models.DocumentVersion) -> Version:
    return Version(
        id=row.id,
        document_id=row.document_id,
        version_number=row.version_number,
        content=row.content or "",
        created_by_user_id=row.created_by_user_id,
        created_at=row.created_at,
        commit_message=row.commit_message,
        request_id=row.request_id,
    )


def comment_from_row(row: models.VersionComment) -> Comment:
    return Comment(
        id=row.id,
        version_id=row.version_id,
        user_id=row.user_id,
        content=row.content,
        created_at=row.created_at,
        updated_at=row.updated_at,
        start_position=row.start_position,
        end_position=row.end_position,
        parent_comment_id=row.parent_comment_id,
        resolved=bool(row.resolved),
        resolved_at=row.resolved_at,
        resolved_by_user_id=row.resolved_by_user_id,
        deleted_at=row.deleted_at,
        deleted_by_user_id=row.deleted_by_user_id,
    )


COMMENT_FIELDS = (
    "content",
    "updated_at",
    "resolved",
    "resolved_at",
    "resolved_by_user_id",
    "deleted_at",
    "deleted_by_user_id",
)

COLLABORATOR_FIELDS = (
    "user_id",
    "role",
    "permission",
    "status",
    "added_at",
    "added_by_user_id",
    "last_access_at",
    "removed_at",
    "removed_by_user_id",
)

DOCUMENT_FIELDS = (
    "title",
    "description",
    "status",
    "submitted_at",
    "approved_at",
    "rejected_at",
    "rejection_reason",
    "finalized_at",
    "deleted_at",
)


class DocumentService:
    """Document collaboration operations backed by a SQLAlchemy session."""

    def __init__(
        self,
        db: Session,
        policy: Optional[CollaborationPolicy] = None,
        locks: DocumentLockRegistry = document_locks,
    ):
        self.db = db
        self.policy = policy or CollaborationPolicy.from_settings()
        self.locks = locks
        self.lifecycle = DocumentLifecycle(self.policy)

    # ------------------------------------------------------------------
    # Loading and writing
    # ------------------------------------------------------------------

    def _load(self, document_id: UUID, *, for_update: bool = False) -> Optional[models.Document]:
        query = self.db.query(models.Document).filter(
            models.Document.id == document_id,
            models.Document.deleted_at.is_(None),
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _history(self, document_id: UUID) -> VersionHistory:
        rows = (
            self.db.query(models.DocumentVersion)
            .filter(models.DocumentVersion.document_id == document_id)
            .order_by(models.DocumentVersion.version_number.asc())
            .all()
        )
        return VersionHistory(document_id=document_id, versions=tuple(version_from_row(r) for r in rows))

    def _version_count(self, document_id: UUID) -> int:
        return (
            self.db.query(func.count(models.DocumentVersion.id))
            .filter(models.DocumentVersion.document_id == document_id)
            .scalar()
            or 0
        )

    def _comment_row(self, document_id: UUID, comment_id: UUID) -> Optional[models.VersionComment]:
        return (
            self.db.query(models.VersionComment)
            .join(models.DocumentVersion, models.VersionComment.version_id == models.DocumentVersion.id)
            .filter(
                models.VersionComment.id == comment_id,
                models.DocumentVersion.document_id == document_id,
            )
            .first()
        )

    def _version_row(self, document_id: UUID, version_number: int) -> Optional[models.DocumentVersion]:
        return (
            self.db.query(models.DocumentVersion)
            .filter(
                models.DocumentVersion.document_id == document_id,
                models.DocumentVersion.version_number == version_number,
            )
            .first()
        )

    def _write_collaborators(self, row: models.Document, collaborators: CollaboratorSet) -> None:
        existing = {c.id: c for c in row.collaborators}
        for member in collaborators:
            target = existing.get(member.id)
            if target is None:
                target = models.DocumentCollaborator(id=member.id, document_id=row.id)
                row.collaborators.append(target)
            for name in COLLABORATOR_FIELDS:
                setattr(target, name, getattr(member, name))

    def _write_document(self, row: models.Document, document: Document) -> None:
        for name in DOCUMENT_FIELDS:
            setattr(row, name, getattr(document, name))

    def _mutate(
        self,
        document_id: UUID,
        operation: Callable[[models.Document, Document], Result],
        *,
        conflict: Optional[Err] = None,
    ) -> Result:
        """Run ``operation`` on the locked document and commit what it staged.

        ``operation`` writes its changes to the session only when it
        succeeds. ``conflict`` is returned when the commit hits a unique
        constraint; without it the IntegrityError propagates.
        """
        with self.locks.hold(document_id):
            row = self._load(document_id, for_update=True)
            if row is None:
                self.db.rollback()
                return _not_found("Document", document_id=document_id)
            try:
                result = operation(row, document_from_row(row))
                if not result.ok:
                    self.db.rollback()
                    return result
                record_document_events(self.db, result.events)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                if conflict is None:
                    raise
                logger.warning("Concurrent change rejected on document %s: %s", document_id, conflict.kind.value)
                return conflict
            except Exception:
                self.db.rollback()
                raise
            return result

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(
        self,
        owner_user_id: UUID,
        title: str,
        description: Optional[str] = None,
        *,
        creator_role: CollaboratorRole = CollaboratorRole.PRIMARY_STUDENT,
    ) -> Result[Document]:
        result = start_document(owner_user_id, title, description, creator_role=creator_role)
        if not result.ok:
            return result
        document = result.value
        row = models.Document(
            id=document.id,
            title=document.title,
            description=document.description,
            status=document.status,
            created_at=document.created_at,
        )
        self._write_collaborators(row, document.collaborators)
        self.db.add(row)
        record_document_events(self.db, result.events)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result

    def get_document(self, document_id: UUID, actor_user_id: UUID) -> Result[Document]:
        row = self._load(document_id)
        if row is None:
            return _not_found("Document", document_id=document_id)
        document = document_from_row(row)
        decision = authorize(document.collaborators, actor_user_id, Action.VIEW_DOCUMENT, policy=self.policy)
        if not decision.allowed:
            return decision.to_error()
        return Ok(document)

    def get_capabilities(self, document_id: UUID, actor_user_id: UUID) -> Result[Dict[Action, Decision]]:
        row = self._load(document_id)
        if row is None:
            return _not_found("Document", document_id=document_id)
        document = document_from_row(row)
        return Ok(capabilities(document.collaborators, actor_user_id, status=document.status, policy=self.policy))

    def update_document(
        self,
        document_id: UUID,
        actor_user_id: UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Result[Document]:
        return self._document_change(
            document_id,
            lambda document: update_details(document, actor_user_id, title, description, policy=self.policy),
        )

    def delete_document(self, document_id: UUID, actor_user_id: UUID) -> Result[Document]:
        """Soft-delete; the document and everything under it disappear from every query."""
        return self._document_change(
            document_id,
            lambda document: delete_document(document, actor_user_id, policy=self.policy),
        )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def list_collaborators(
        self,
        document_id: UUID,
        actor_user_id: UUID,
        *,
        include_removed: bool = False,
    ) -> Result[List[Collaborator]]:
        found = self.get_document(document_id, actor_user_id)
        if not found.ok:
            return found
        members = found.value.collaborators
        return Ok(list(members) if include_removed else members.active())

    def _collaborator_change(self, document_id: UUID, change, *, conflict: Optional[Err] = None) -> Result[CollaboratorSet]:
        def operation(row: models.Document, document: Document) -> Result:
            result = change(document.collaborators)
            if result.ok:
                self._write_collaborators(row, result.value)
            return result

        return self._mutate(document_id, operation, conflict=conflict)

    def add_collaborator(
        self,
        document_id: UUID,
        actor_user_id: UUID,
        user_id: UUID,
        role: Optional[CollaboratorRole] = None,
        permission: Optional[PermissionLevel] = None,
    ) -> Result[CollaboratorSet]:
        return self._collaborator_change(
            document_id,
            lambda members: members.add(actor_user_id, user_id, role, permission, policy=self.policy),
            conflict=Err(
                ErrorKind.DUPLICATE_COLLABORATOR,
                "User is already a collaborator of this document",
                {"user_id": str(user_id)},
            ),
        )

    def remove_collaborator(self, document_id: UUID, actor_user_id: UUID, collaborator_id: UUID) -> Result[CollaboratorSet]:
        return self._collaborator_change(
            document_id,
            lambda members: members.remove(actor_user_id, collaborator_id, policy=self.policy),
        )

    def update_collaborator_role(
        self,
        document_id: UUID,
        actor_user_id: UUID,
        collaborator_id: UUID,
        role: CollaboratorRole,
    ) -> Result[CollaboratorSet]:
        return self._collaborator_change(
            document_id,
            lambda members: members.update_role(actor_user_id, collaborator_id, role, policy=self.policy),
        )

    def update_collaborator_permission(
        self,
        document_id: UUID,
        actor_user_id: UUID,
        collaborator_id: UUID,
        permission: PermissionLevel,
    ) -> Result[CollaboratorSet]:
        return self._collaborator_change(
            document_id,
            lambda members: members.update_permission(actor_user_id, collaborator_id, permission, policy=self.policy),
        )

    def promote_to_primary(self, document_id: UUID, actor_user_id: UUID, collaborator_id: UUID) -> Result[CollaboratorSet]:
        return self._collaborator_change(
            document_id,
            lambda members: members.promote_to_primary(actor_user_id, collaborator_id, policy=self.policy),
        )

    def record_access(self, document_id: UUID, user_id: UUID) -> Result[CollaboratorSet]:
        return self._collaborator_change(document_id, lambda members: members.record_access(user_id))

    def leave_document(self, document_id: UUID, user_id: UUID) -> Result[CollaboratorSet]:
        return self._collaborator_change(document_id, lambda members: members.leave(user_id))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _document_change(self, document_id: UUID, change) -> Result[Document]:
        def operation(row: models.Document, document: Document) -> Result:
            result = change(document)
            if result.ok:
                self._write_document(row, result.value)
            return result

        return self._mutate(document_id, operation)

    def submit(self, document_id: UUID, actor_user_id: UUID) -> Result[Document]:
        return self._document_change(
            document_id,
            lambda document: self.lifecycle.submit(
                document, actor_user_id, version_count=self._version_count(document_id)
            ),
        )

    def approve(self, document_id: UUID, actor_user_id: UUID) -> Result[Document]:
        return self._document_change(document_id, lambda document: self.lifecycle.approve(document, actor_user_id))

    def request_revision(self, document_id: UUID, actor_user_id: UUID, reason: str) -> Result[Document]:
        return self._document_change(
            document_id,
            lambda document: self.lifecycle.request_revision(document, actor_user_id, reason),
        )

    def finalize(self, document_id: UUID, actor_user_id: UUID) -> Result[Document]:
        return self._document_change(document_id, lambda document: self.lifecycle.finalize(document, actor_user_id))

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def create_version(
        self,
        document_id: UUID,
        actor_user_id: UUID,
        content: str,
        commit_message: Optional[str] = None,
        *,
        request_id: Optional[str] = None,
    ) -> Result[Version]:
        def operation(row: models.Document, document: Document) -> Result:
            result = create_version(
                document,
                self._history(document_id),
                actor_user_id,
                content,
                commit_message,
                request_id=request_id,
                policy=self.policy,
            )
            if not result.ok:
                return result
            version = result.value.version
            if result.events:
                self.db.add(models.DocumentVersion(
                    id=version.id,
                    document_id=version.document_id,
                    version_number=version.version_number,
                    content=version.content,
                    commit_message=version.commit_message,
                    request_id=version.request_id,
                    created_by_user_id=version.created_by_user_id,
                    created_at=version.created_at,
                ))
            return Ok(version, result.events)

        conflict = Err(ErrorKind.VALIDATION_FAILED, "Version number was taken concurrently", {"document_id": str(document_id)})
        for attempt in range(1, VERSION_CREATE_ATTEMPTS + 1):
            result = self._mutate(document_id, operation, conflict=conflict)
            if result is not conflict:
                return result
            logger.warning("Retrying version creation on document %s (attempt %d)", document_id, attempt)
        return conflict

    def list_versions(self, document_id: UUID, actor_user_id: UUID) -> Result[List[Version]]:
        found = self.get_document(document_id, actor_user_id)
        if not found.ok:
            return found
        return Ok(list(self._history(document_id).versions))

    def get_version(self, document_id: UUID, actor_user_id: UUID, version_number: int) -> Result[Version]:
        found = self.get_document(document_id, actor_user_id)
        if not found.ok:
            return found
        row = self._version_row(document_id, version_number)
        if row is None:
            return _not_found("Version", version_number=version_number)
        return Ok(version_from_row(row))

    def get_diff(self, document_id: UUID, actor_user_id: UUID, from_number: int, to_number: int) -> Result[VersionDiff]:
        row = self._load(document_id)
        if row is None:
            return _not_found("Document", document_id=document_id)
        return diff_versions(document_from_row(row), self._history(document_id), actor_user_id, from_number, to_number)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def _comment_change(self, document_id: UUID, actor_user_id: UUID, comment_id: UUID, change) -> Result[Comment]:
        def operation(row: models.Document, document: Document) -> Result:
            comment_row = self._comment_row(document_id, comment_id)
            if comment_row is None:
                # Fail closed before revealing whether the comment exists
                decision = authorize(document.collaborators, actor_user_id, Action.VIEW_DOCUMENT, policy=self.policy)
                if not decision.allowed:
                    return decision.to_error()
                return _not_found("Comment", comment_id=comment_id)
            version = version_from_row(comment_row.version)
            result = change(document, version, comment_from_row(comment_row))
            if result.ok and result.events:
                updated = result.value
                if updated.id == comment_row.id:
                    for name in COMMENT_FIELDS:
                        setattr(comment_row, name, getattr(updated, name))
                else:
                    self.db.add(self._comment_to_row(updated))
            return result

        return self._mutate(document_id, operation)

    @staticmethod
    def _comment_to_row(comment: Comment) -> models.VersionComment:
        return models.VersionComment(
            id=comment.id,
            version_id=comment.version_id,
            parent_comment_id=comment.parent_comment_id,
            user_id=comment.user_id,
            content=comment.content,
            start_position=comment.start_position,
            end_position=comment.end_position,
            resolved=comment.resolved,
            created_at=comment.created_at,
        )

    def add_comment(
        self,
        document_id: UUID,
        actor_user_id: UUID,
        version_number: int,
        content: str,
        *,
        start_position: Optional[int] = None,
        end_position: Optional[int] = None,
    ) -> Result[Comment]:
        def operation(row: models.Document, document: Document) -> Result:
            version_row = self._version_row(document_id, version_number)
            if version_row is None:
                decision = authorize(document.collaborators, actor_user_id, Action.VIEW_DOCUMENT, policy=self.policy)
                if not decision.allowed:
                    return decision.to_error()
                return _not_found("Version", version_number=version_number)
            result = comment_rules.add_comment(
                document,
                version_from_row(version_row),
                actor_user_id,
                content,
                start_position=start_position,
                end_position=end_position,
                policy=self.policy,
            )
            if result.ok:
                self.db.add(self._comment_to_row(result.value))
            return result

        return self._mutate(document_id, operation)

    def reply_to_comment(self, document_id: UUID, actor_user_id: UUID, comment_id: UUID, content: str) -> Result[Comment]:
        return self._comment_change(
            document_id,
            actor_user_id,
            comment_id,
            lambda document, version, comment: comment_rules.reply_to_comment(
                document, version, comment, actor_user_id, content, policy=self.policy
            ),
        )

    def update_comment(self, document_id: UUID, actor_user_id: UUID, comment_id: UUID, content: str) -> Result[Comment]:
        return self._comment_change(
            document_id,
            actor_user_id,
            comment_id,
            lambda document, version, comment: comment_rules.update_comment(
                document, version, comment, actor_user_id, content, policy=self.policy
            ),
        )

    def resolve_comment(self, document_id: UUID, actor_user_id: UUID, comment_id: UUID) -> Result[Comment]:
        return self._comment_change(
            document_id,
            actor_user_id,
            comment_id,
            lambda document, version, comment: comment_rules.resolve_comment(
                document, version, comment, actor_user_id, policy=self.policy
            ),
        )

    def delete_comment(self, document_id: UUID, actor_user_id: UUID, comment_id: UUID) -> Result[Comment]:
        return self._comment_change(
            document_id,
            actor_user_id,
            comment_id,
            lambda document, version, comment: comment_rules.delete_comment(
                document, version, comment, actor_user_id, policy=self.policy
            ),
        )

    def list_comments(
        self,
        document_id: UUID,
        actor_user_id: UUID,
        version_number: int,
        *,
        resolved: Optional[bool] = None,
        start_position: Optional[int] = None,
        end_position: Optional[int] = None,
    ) -> Result[List[comment_rules.CommentThread]]:
        """Comment threads of one version.

        With ``start_position``/``end_position`` only threads whose root is
        anchored on a span overlapping that range are returned.
        """
        ranged = start_position is not None or end_position is not None
        if ranged and (start_position is None or end_position is None or start_position > end_position):
            return Err(
                ErrorKind.VALIDATION_FAILED,
                "A position range needs both ends with start <= end",
                {"start_position": start_position, "end_position": end_position},
            )
        found = self.get_document(document_id, actor_user_id)
        if not found.ok:
            return found
        version_row = self._version_row(document_id, version_number)
        if version_row is None:
            return _not_found("Version", version_number=version_number)
        comments = [comment_from_row(r) for r in version_row.comments]
        threads = comment_rules.build_threads(comments)
        if resolved is not None:
            threads = [t for t in threads if t.comment.resolved == resolved]
        if ranged:
            anchored = {c.id for c in comment_rules.comments_in_range(comments, start_position, end_position)}
            threads = [t for t in threads if t.comment.id in anchored]
        return Ok(threads)

