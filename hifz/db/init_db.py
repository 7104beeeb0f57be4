"""Database initialization with auto-migration."""
import logging
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError
from hifz.db.database import engine, SessionLocal, Base
from hifz.db import models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


def check_index_exists(inspector, table_name: str, index_name: str) -> bool:
    """Check if an index exists on a table."""
    try:
        indexes = inspector.get_indexes(table_name)
        return any(idx['name'] == index_name for idx in indexes)
    except Exception as e:
        logger.warning(f"Error checking index {index_name} in {table_name}: {e}")
        return False


def apply_schema_migrations(db: Session) -> None:
    """
    Apply schema migrations automatically on startup.

    create_all never adds an index to a table that already exists, so the
    per-learner lookup indexes are created here when missing. Every step is
    idempotent.
    """
    inspector = inspect(db.get_bind())
    existing_tables = inspector.get_table_names()
    migrations_applied = []

    indexes = [
        ('hifz_records', 'idx_records_learner_date', 'learner_id, record_date'),
        ('notifications', 'idx_notifications_learner', 'learner_id, created_at'),
    ]
    for table_name, index_name, columns in indexes:
        if table_name in existing_tables and not check_index_exists(inspector, table_name, index_name):
            try:
                logger.info(f"Creating index {index_name}...")
                db.execute(text(f'CREATE INDEX IF NOT EXISTS {index_name} ON {table_name} ({columns})'))
                migrations_applied.append(f"Created index {index_name}")
            except OperationalError as e:
                logger.warning(f"Could not create index {index_name}: {e}")

    if migrations_applied:
        try:
            db.commit()
            logger.info(f"Applied {len(migrations_applied)} schema migrations:")
            for migration in migrations_applied:
                logger.info(f"  - {migration}")
        except Exception as e:
            db.rollback()
            logger.error(f"Error committing migrations: {e}")
            raise
    else:
        logger.info("No schema migrations needed. Database is up to date.")


def init_db() -> None:
    """
    Initialize database: create tables and apply migrations.

    Safe to call multiple times - all operations are idempotent.
    """
    logger.info("Initializing database...")

    Base.metadata.create_all(bind=engine)
    logger.info("Tables created/verified successfully.")

    db = SessionLocal()
    try:
        apply_schema_migrations(db)
        logger.info("Database initialization complete.")
    except Exception as e:
        logger.error(f"Error during database initialization: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    # Set up basic logging for standalone execution
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
