"""Tests for the document request handlers.

Run:
    python -m pytest tests/test_document_requests.py -v
"""

import uuid
from contextlib import contextmanager

import pytest
from fastapi import HTTPException

from thesiscollab.api import document_requests as handlers
from thesiscollab.schemas.collaborator import CollaboratorCreate, CollaboratorPermissionUpdate, CollaboratorRoleUpdate
from thesiscollab.schemas.comment import CommentCreate, CommentReply, CommentUpdate
from thesiscollab.schemas.document import DocumentCreate, DocumentUpdate, RevisionRequest
from thesiscollab.schemas.version import VersionCreate
from thesiscollab.services.collaboration.locks import DocumentLockTimeout
from thesiscollab.services.collaboration.roles import CollaboratorRole, PermissionLevel
from thesiscollab.services.collaboration.types import DocumentStatus


@pytest.fixture
def document(service, users):
    return handlers.create_document(service, users.student, DocumentCreate(title="Thesis", description="Draft"))


def error_of(excinfo):
    return excinfo.value.status_code, excinfo.value.detail["error"]


class TestDocuments:
    def test_create_and_update(self, service, users, document):
        assert document.status == DocumentStatus.DRAFT
        updated = handlers.update_document(service, document.id, users.student, DocumentUpdate(title="Final title"))
        assert updated.title == "Final title"
        assert updated.description == "Draft"

    def test_update_by_outsider(self, service, users, document):
        with pytest.raises(HTTPException) as excinfo:
            handlers.update_document(service, document.id, users.outsider, DocumentUpdate(description="x"))
        assert error_of(excinfo) == (403, "not_a_collaborator")

    def test_request_revision(self, service, users, document):
        handlers.add_collaborator(
            service, document.id, users.student,
            CollaboratorCreate(user_id=users.advisor, role=CollaboratorRole.PRIMARY_ADVISOR),
        )
        handlers.create_version(service, document.id, users.student, VersionCreate(content="Chapter 1\n"))
        service.submit(document.id, users.student).unwrap()
        response = handlers.request_revision(
            service, document.id, users.advisor, RevisionRequest(reason="Tighten the abstract")
        )
        assert response.status == DocumentStatus.REVISION
        assert response.rejection_reason == "Tighten the abstract"


class TestCollaborators:
    def test_add_then_change_role_and_permission(self, service, users, document):
        listing = handlers.add_collaborator(
            service, document.id, users.student,
            CollaboratorCreate(user_id=users.advisor, role=CollaboratorRole.PRIMARY_ADVISOR),
        )
        assert listing.total == 2

        listing = handlers.add_collaborator(
            service, document.id, users.student,
            CollaboratorCreate(user_id=users.co_student, role=CollaboratorRole.CO_STUDENT),
        )
        co_student = next(c for c in listing.collaborators if c.user_id == users.co_student)

        listing = handlers.update_collaborator_role(
            service, document.id, users.student, co_student.id,
            CollaboratorRoleUpdate(role=CollaboratorRole.SECONDARY_STUDENT),
        )
        listing = handlers.update_collaborator_permission(
            service, document.id, users.student, co_student.id,
            CollaboratorPermissionUpdate(permission=PermissionLevel.READ_ONLY),
        )
        changed = next(c for c in listing.collaborators if c.user_id == users.co_student)
        assert (changed.role, changed.permission) == (CollaboratorRole.SECONDARY_STUDENT, PermissionLevel.READ_ONLY)

    def test_non_primary_advisor_first_is_a_conflict(self, service, users, document):
        with pytest.raises(HTTPException) as excinfo:
            handlers.add_collaborator(
                service, document.id, users.student,
                CollaboratorCreate(user_id=users.advisor, role=CollaboratorRole.SECONDARY_ADVISOR),
            )
        assert error_of(excinfo) == (409, "last_primary_violation")


class TestVersionsAndComments:
    def test_version_comment_thread(self, service, users, document):
        version = handlers.create_version(
            service, document.id, users.student, VersionCreate(content="Abstract\nIntro\n", commit_message="first")
        )
        assert version.version_number == 1
        assert version.content == "Abstract\nIntro\n"

        comment = handlers.add_comment(
            service, document.id, users.student, 1, CommentCreate(content="Shorten", start_position=0, end_position=8)
        )
        reply = handlers.reply_to_comment(service, document.id, users.student, comment.id, CommentReply(content="Done"))
        edited = handlers.update_comment(
            service, document.id, users.student, comment.id, CommentUpdate(content="Shorten this")
        )
        assert reply.parent_comment_id == comment.id
        assert edited.content == "Shorten this"

        listing = handlers.list_comments(service, document.id, users.student, 1, start_position=0, end_position=3)
        assert listing.total == 2
        assert handlers.list_comments(service, document.id, users.student, 1, start_position=10, end_position=12).total == 0

    def test_diff(self, service, users, document):
        handlers.create_version(service, document.id, users.student, VersionCreate(content="A\nB\n"))
        handlers.create_version(service, document.id, users.student, VersionCreate(content="A\nC\n"))
        diff = handlers.get_diff(service, document.id, users.student, 1, 2)
        assert (diff.stats.additions, diff.stats.deletions, diff.stats.unchanged) == (1, 1, 1)

    def test_unknown_version(self, service, users, document):
        with pytest.raises(HTTPException) as excinfo:
            handlers.add_comment(service, document.id, users.student, 7, CommentCreate(content="Where?"))
        assert error_of(excinfo) == (404, "entity_not_found")


class TestBusyDocument:
    def test_lock_timeout_becomes_503(self, service, users, document, monkeypatch):
        @contextmanager
        def busy(document_id, timeout=None):
            raise DocumentLockTimeout(document_id, 2.0)
            yield

        monkeypatch.setattr(service.locks, "hold", busy)
        with pytest.raises(HTTPException) as excinfo:
            handlers.update_document(service, document.id, users.student, DocumentUpdate(title="Later"))
        assert excinfo.value.status_code == 503
        assert excinfo.value.headers["Retry-After"] == "2"

    def test_unknown_document(self, service, users):
        with pytest.raises(HTTPException) as excinfo:
            handlers.update_document(service, uuid.uuid4(), users.student, DocumentUpdate(title="Nothing"))
        assert error_of(excinfo) == (404, "entity_not_found")
