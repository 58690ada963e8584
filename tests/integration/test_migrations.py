"""Test Alembic migrations: upgrade, downgrade and structural checks.

Runs against a throwaway SQLite file so no database server is needed. The
PostgreSQL-only ledger triggers are not exercised here.
"""

import os

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from subsidy.db.base import Base
import subsidy.db.models  # noqa: F401


MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "subsidy", "migrations")

EXPECTED_TABLES = {
    "users",
    "processes",
    "process_code_counters",
    "pdf_history",
    "documents",
    "document_downloads",
    "decisions",
    "audit_events",
}


pytestmark = pytest.mark.integration


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'migrations.db'}"


@pytest.fixture
def alembic_cfg(database_url):
    # Built without an ini file so env.py leaves test logging alone
    cfg = Config()
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


@pytest.fixture
def inspector_for(database_url):
    engines = []

    def _inspect():
        engine = create_engine(database_url)
        engines.append(engine)
        return inspect(engine)

    yield _inspect
    for engine in engines:
        engine.dispose()


class TestMigrations:
    """Run upgrade, verify, downgrade, verify."""

    def test_upgrade_creates_all_tables(self, alembic_cfg, inspector_for):
        command.upgrade(alembic_cfg, "head")

        tables = set(inspector_for().get_table_names())
        assert EXPECTED_TABLES <= tables
        assert "alembic_version" in tables

    def test_upgrade_is_idempotent(self, alembic_cfg):
        """Running upgrade twice should not fail."""
        command.upgrade(alembic_cfg, "head")
        command.upgrade(alembic_cfg, "head")

    def test_columns_match_models(self, alembic_cfg, inspector_for):
        command.upgrade(alembic_cfg, "head")
        inspector = inspector_for()

        for table in EXPECTED_TABLES:
            migrated = {c["name"] for c in inspector.get_columns(table)}
            declared = {c.name for c in Base.metadata.tables[table].columns}
            assert migrated == declared, table

    def test_one_active_document_index(self, alembic_cfg, inspector_for):
        command.upgrade(alembic_cfg, "head")

        indexes = {ix["name"]: ix for ix in inspector_for().get_indexes("documents")}
        index = indexes["uq_documents_one_active_per_type"]
        assert index["unique"]
        assert index["column_names"] == ["process_id", "catalog_type"]

    def test_downgrade_removes_tables(self, alembic_cfg, inspector_for):
        command.upgrade(alembic_cfg, "head")
        command.downgrade(alembic_cfg, "base")

        tables = set(inspector_for().get_table_names())
        assert not (EXPECTED_TABLES & tables)
