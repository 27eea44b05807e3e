"""Check that the schema migration matches the declarative models.

Run:
    python -m pytest tests/test_migration.py -v
"""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from thesiscollab import models  # noqa: F401
from thesiscollab.database import Base

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "20261018_create_document_collaboration.py"


@pytest.fixture
def migration():
    spec = importlib.util.spec_from_file_location("document_collaboration_migration", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def migration_engine():
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()


def run(engine, step):
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            step()


class TestMigration:
    def test_upgrade_creates_model_tables(self, migration, migration_engine):
        run(migration_engine, migration.upgrade)
        inspector = inspect(migration_engine)
        assert set(inspector.get_table_names()) == set(Base.metadata.tables)

        for table in Base.metadata.sorted_tables:
            migrated = {c["name"] for c in inspector.get_columns(table.name)}
            assert migrated == set(table.columns.keys()), table.name

    def test_active_collaborator_index_is_partial_and_unique(self, migration, migration_engine):
        run(migration_engine, migration.upgrade)
        indexes = {i["name"]: i for i in inspect(migration_engine).get_indexes("document_collaborators")}
        active = indexes["uq_document_collaborators_active_user"]
        assert active["unique"]
        assert active["column_names"] == ["document_id", "user_id"]

    def test_enum_values_match_the_domain(self, migration):
        from thesiscollab.services.collaboration.roles import CollaboratorRole, PermissionLevel
        from thesiscollab.services.collaboration.types import CollaboratorStatus, DocumentStatus

        assert set(migration.DOCUMENT_STATUS) == {s.value for s in DocumentStatus}
        assert set(migration.COLLABORATOR_ROLE) == {r.value for r in CollaboratorRole}
        assert set(migration.PERMISSION_LEVEL) == {p.value for p in PermissionLevel}
        assert set(migration.COLLABORATOR_STATUS) == {s.value for s in CollaboratorStatus}

    def test_downgrade_drops_everything(self, migration, migration_engine):
        run(migration_engine, migration.upgrade)
        run(migration_engine, migration.downgrade)
        assert inspect(migration_engine).get_table_names() == []
