"""Tests for migration 001: users and credit_logs.

Runs upgrade() and downgrade() against an in-memory SQLite database via
alembic's Operations, and checks the resulting schema matches the ORM
models (tables, columns, named constraints).
"""

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

from tollgate.models import Base

_MIGRATION_PATH = (
    Path(__file__).resolve().parents[2]
    / "migrations"
    / "versions"
    / "001_membership_ledger.py"
)


def _load_migration() -> ModuleType:
    spec = importlib.util.spec_from_file_location("migration_001", _MIGRATION_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def migrated():
    """Connection with the migration applied."""
    migration = _load_migration()
    engine = create_engine("sqlite://")
    with engine.connect() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            migration.upgrade()
        conn.commit()
        yield conn, ctx, migration
    engine.dispose()


class TestUpgrade:
    def test_is_first_revision(self) -> None:
        migration = _load_migration()
        assert migration.revision == "001_membership_ledger"
        assert migration.down_revision is None

    def test_creates_tables_with_model_columns(self, migrated) -> None:
        conn, _, _ = migrated
        inspector = inspect(conn)

        for table_name in ("users", "credit_logs"):
            migrated_columns = {c["name"] for c in inspector.get_columns(table_name)}
            model_columns = set(Base.metadata.tables[table_name].columns.keys())
            assert migrated_columns == model_columns

    def test_creates_status_and_ledger_indexes(self, migrated) -> None:
        conn, _, _ = migrated
        inspector = inspect(conn)

        user_indexes = {i["name"] for i in inspector.get_indexes("users")}
        log_indexes = {i["name"] for i in inspector.get_indexes("credit_logs")}
        assert "ix_users_status" in user_indexes
        assert {"ix_credit_logs_user_id", "ix_credit_logs_created_at"} <= log_indexes

    def test_negative_credits_rejected(self, migrated) -> None:
        conn, _, _ = migrated
        with pytest.raises(IntegrityError):
            conn.execute(
                text(
                    "INSERT INTO users (id, email, credits) "
                    "VALUES ('00000000000000000000000000000001', 'a@b.c', -1)"
                )
            )

    def test_unknown_status_rejected(self, migrated) -> None:
        conn, _, _ = migrated
        with pytest.raises(IntegrityError):
            conn.execute(
                text(
                    "INSERT INTO users (id, email, status) "
                    "VALUES ('00000000000000000000000000000002', 'x@y.z', 'ACTIVE')"
                )
            )

    def test_server_defaults_for_new_user(self, migrated) -> None:
        conn, _, _ = migrated
        conn.execute(
            text(
                "INSERT INTO users (id, email) "
                "VALUES ('00000000000000000000000000000003', 'd@e.f')"
            )
        )
        row = conn.execute(
            text("SELECT status, role, credits FROM users WHERE email = 'd@e.f'")
        ).one()
        assert tuple(row) == ("PENDING", "USER", 0)


class TestDowngrade:
    def test_drops_tables(self, migrated) -> None:
        conn, ctx, migration = migrated
        with Operations.context(ctx):
            migration.downgrade()

        tables = set(inspect(conn).get_table_names())
        assert "users" not in tables
        assert "credit_logs" not in tables
