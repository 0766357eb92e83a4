"""Initial migration against the ORM models."""
import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from fulfillment.database import Base
from fulfillment import models  # noqa: F401

MIGRATION = Path(__file__).resolve().parent.parent / "alembic" / "versions" / "0001_initial_schema.py"


@pytest.fixture(scope="module")
def migrated_columns():
    spec = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    migration = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(migration)

    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()
        inspector = inspect(conn)
        columns = {
            table: {column["name"]: column for column in inspector.get_columns(table)}
            for table in inspector.get_table_names()
        }
    engine.dispose()
    return columns


@pytest.mark.parametrize("table", ["plans", "clients", "document_sequences"])
def test_migration_nullability_matches_models(migrated_columns, table):
    migrated = migrated_columns[table]
    for column in Base.metadata.tables[table].columns:
        assert column.name in migrated, f"{table}.{column.name} missing from migration"
        assert migrated[column.name]["nullable"] == column.nullable, f"{table}.{column.name}"


@pytest.mark.parametrize("table,column", [
    ("clients", "subscription_discount_percent"),
    ("clients", "used_capacity_cbm"),
    ("plans", "capacity_cbm"),
    ("plans", "buffer_cbm"),
    ("plans", "is_active"),
])
def test_capacity_and_plan_columns_are_required(migrated_columns, table, column):
    assert migrated_columns[table][column]["nullable"] is False


def test_shipment_quote_columns_exist(migrated_columns):
    assert {"quoted_at", "quote_notes"} <= set(migrated_columns["shipment_orders"])
