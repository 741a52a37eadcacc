"""Test that the initial migration builds the schema the models map."""
import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from gradebook.database import Base

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "0001_initial_schema.py"


@pytest.fixture
def migration():
    spec = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def run(engine, step):
    with engine.begin() as conn:
        context = MigrationContext.configure(conn)
        with Operations.context(context):
            step()


def test_upgrade_creates_model_tables(migration):
    engine = create_engine("sqlite:///:memory:")
    run(engine, migration.upgrade)

    inspector = inspect(engine)
    assert set(inspector.get_table_names()) == set(Base.metadata.tables)
    for table in Base.metadata.sorted_tables:
        migrated = {column["name"] for column in inspector.get_columns(table.name)}
        assert migrated == set(table.columns.keys()), table.name
    engine.dispose()


def test_downgrade_drops_everything(migration):
    engine = create_engine("sqlite:///:memory:")
    run(engine, migration.upgrade)
    run(engine, migration.downgrade)

    assert inspect(engine).get_table_names() == []
    engine.dispose()
