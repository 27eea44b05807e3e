"""
Pytest configuration and fixtures.

Core tests work on in-memory values only. Persistence tests use an in-memory
SQLite database built from the declarative models.
"""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from thesiscollab import models  # noqa: F401  registers the tables on Base
from thesiscollab.database import Base
from thesiscollab.services.collaboration.collaborators import CollaboratorSet
from thesiscollab.services.collaboration.locks import DocumentLockRegistry
from thesiscollab.services.collaboration.policy import CollaborationPolicy
from thesiscollab.services.collaboration.roles import CollaboratorRole, PermissionLevel
from thesiscollab.services.collaboration.types import Document, DocumentStatus, Version
from thesiscollab.services.document_service import DocumentService

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> CollaborationPolicy:
    return CollaborationPolicy()


@pytest.fixture
def users() -> SimpleNamespace:
    return SimpleNamespace(
        student=uuid.uuid4(),
        co_student=uuid.uuid4(),
        advisor=uuid.uuid4(),
        co_advisor=uuid.uuid4(),
        examiner=uuid.uuid4(),
        observer=uuid.uuid4(),
        outsider=uuid.uuid4(),
    )


@pytest.fixture
def document_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def solo(document_id, users) -> CollaboratorSet:
    """Only the primary student."""
    return CollaboratorSet.founded_by(document_id, users.student, now=NOW)


@pytest.fixture
def team(solo, users, policy) -> CollaboratorSet:
    """Primary student and advisor plus one collaborator of every other kind."""
    members = solo
    for user_id, role, permission in (
        (users.advisor, CollaboratorRole.PRIMARY_ADVISOR, None),
        (users.co_student, CollaboratorRole.CO_STUDENT, None),
        (users.co_advisor, CollaboratorRole.SECONDARY_ADVISOR, None),
        (users.examiner, CollaboratorRole.EXAMINER, None),
        (users.observer, CollaboratorRole.OBSERVER, PermissionLevel.READ_ONLY),
    ):
        members = members.add(users.student, user_id, role, permission, policy=policy, now=NOW).unwrap()
    return members


@pytest.fixture
def make_document(document_id):
    def _make(collaborators: CollaboratorSet, status: DocumentStatus = DocumentStatus.DRAFT) -> Document:
        return Document(
            id=document_id,
            title="Distributed consensus under partial synchrony",
            collaborators=collaborators,
            created_at=NOW,
            status=status,
        )

    return _make


@pytest.fixture
def make_version(document_id, users):
    def _make(number: int = 1, content: str = "Introduction\nRelated work\nMethod\n") -> Version:
        return Version(
            id=uuid.uuid4(),
            document_id=document_id,
            version_number=number,
            content=content,
            created_by_user_id=users.student,
            created_at=NOW,
        )

    return _make


# -- persistence -----------------------------------------------------------


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def service(db, policy) -> DocumentService:
    return DocumentService(db, policy=policy, locks=DocumentLockRegistry(timeout=5))


@pytest.fixture
def stored_document(service, users):
    """Persisted document with a primary advisor, a co-student and a first version."""
    document = service.create_document(users.student, "Thesis draft").unwrap()
    service.add_collaborator(document.id, users.student, users.advisor, CollaboratorRole.PRIMARY_ADVISOR).unwrap()
    service.add_collaborator(document.id, users.student, users.co_student, CollaboratorRole.CO_STUDENT).unwrap()
    service.create_version(document.id, users.student, "Chapter 1\nChapter 2\n", "Initial draft").unwrap()
    return document
