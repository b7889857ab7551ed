"""
NSW Travel-to-Work Atlas - Database Connection Management
SQLAlchemy configuration for raw feeds and materialized views
"""

import json
import logging
import os
import re
from contextlib import contextmanager
from datetime import datetime
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from config.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    directory = os.path.dirname(url.database)
    if directory:
        os.makedirs(directory, exist_ok=True)


_ensure_sqlite_directory(settings.DATABASE_URL)

# SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    poolclass=NullPool if settings.ENVIRONMENT == "production" else None,
    echo=settings.DEBUG,
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_db() as db:
            db.execute(...)
            db.commit()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Database error: {e}")
        raise
    finally:
        db.close()


def validate_table_name(name: str) -> str:
    """Reject identifiers that cannot be interpolated into SQL safely."""
    if not TABLE_NAME_RE.match(name):
        raise ValueError(f"Unsafe table name: {name}")
    return name


def table_name(view_name: str) -> str:
    """
    Physical table name for a named analytical view.

    Args:
        view_name: Registry name (e.g., 'metric_mode_share')

    Returns:
        Prefixed, validated table name (e.g., 'v_metric_mode_share')
    """
    return validate_table_name(f"{settings.TABLE_PREFIX}{view_name}")


def test_connection() -> bool:
    """
    Test database connectivity.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with get_db() as db:
            result = db.execute(text("SELECT 1"))
            assert result.scalar() == 1
            logger.info(f"Database connection successful ({engine.url.get_backend_name()})")
            return True

    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def log_refresh(
    layer_name: str,
    data_source: str,
    status: str,
    records_processed: int = 0,
    records_inserted: int = 0,
    error_message: str = None,
    metadata: dict = None,
):
    """
    Log a pipeline run to the data_refresh_log table.

    Args:
        layer_name: Pipeline stage (e.g., 'view_store')
        data_source: Source of data (e.g., 'ABS Census 2011/2016/2021')
        status: One of 'success', 'partial', 'failed'
        records_processed: Total records processed
        records_inserted: Records written
        error_message: Error description if status != 'success'
        metadata: Additional JSON metadata
    """
    try:
        with get_db() as db:
            db.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS data_refresh_log (
                        layer_name VARCHAR(100) NOT NULL,
                        data_source VARCHAR(200),
                        refresh_date TIMESTAMP,
                        status VARCHAR(20),
                        records_processed INTEGER,
                        records_inserted INTEGER,
                        error_message TEXT,
                        metadata TEXT
                    )
                """
                )
            )

            db.execute(
                text(
                    """
                    INSERT INTO data_refresh_log (
                        layer_name, data_source, refresh_date, status,
                        records_processed, records_inserted, error_message, metadata
                    ) VALUES (
                        :layer_name, :data_source, :refresh_date, :status,
                        :records_processed, :records_inserted, :error_message, :metadata
                    )
                """
                ),
                {
                    "layer_name": layer_name,
                    "data_source": data_source,
                    "refresh_date": datetime.utcnow(),
                    "status": status,
                    "records_processed": records_processed,
                    "records_inserted": records_inserted,
                    "error_message": error_message,
                    "metadata": json.dumps(metadata) if metadata else None,
                },
            )

            logger.info(
                f"Logged refresh: {layer_name} ({data_source}) - "
                f"Status: {status}, Processed: {records_processed}"
            )

    except Exception as e:
        logger.error(f"Failed to log refresh: {e}")
        # Don't raise - logging failure shouldn't break the pipeline


if __name__ == "__main__":
    # Test connection when run directly
    logging.basicConfig(level=logging.INFO)
    if test_connection():
        print("✅ Database connection successful")
    else:
        print("❌ Database connection failed")
