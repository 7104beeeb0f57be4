"""Tests for startup schema migrations."""
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker

from hifz.db.database import Base
from hifz.db.init_db import apply_schema_migrations, check_index_exists

LOOKUP_INDEXES = (
    ("hifz_records", "idx_records_learner_date"),
    ("notifications", "idx_notifications_learner"),
)


def _session_without_indexes():
    """Current tables with the lookup indexes missing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with engine.begin() as conn:
        for _, index_name in LOOKUP_INDEXES:
            conn.execute(text(f"DROP INDEX {index_name}"))
    return engine, sessionmaker(bind=engine)()


class TestSchemaMigrations:
    """Tests for apply_schema_migrations."""

    def test_creates_missing_indexes(self):
        engine, db = _session_without_indexes()
        assert not check_index_exists(inspect(engine), "hifz_records", "idx_records_learner_date")

        apply_schema_migrations(db)

        inspector = inspect(engine)
        for table_name, index_name in LOOKUP_INDEXES:
            assert check_index_exists(inspector, table_name, index_name)
        db.close()

    def test_idempotent(self):
        engine, db = _session_without_indexes()

        apply_schema_migrations(db)
        apply_schema_migrations(db)

        names = [idx["name"] for idx in inspect(engine).get_indexes("hifz_records")]
        assert names.count("idx_records_learner_date") == 1
        db.close()

    def test_current_schema_needs_nothing(self, caplog):
        engine = create_engine("sqlite:///:memory:")
        Base.metadata.create_all(engine)
        db = sessionmaker(bind=engine)()

        with caplog.at_level("INFO", logger="hifz.db.init_db"):
            apply_schema_migrations(db)

        assert "No schema migrations needed" in caplog.text
        db.close()

    def test_missing_tables_are_skipped(self):
        engine = create_engine("sqlite:///:memory:")
        db = sessionmaker(bind=engine)()

        apply_schema_migrations(db)

        assert inspect(engine).get_table_names() == []
        db.close()
