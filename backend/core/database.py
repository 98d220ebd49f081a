"""
Database engine and sessions for stored verification results.
"""

import logging
from typing import Iterator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool
from sqlmodel import Session, SQLModel, create_engine

from backend.core.config import get_settings

logger = logging.getLogger(__name__)


def get_engine(db_url: Optional[str] = None) -> Engine:
    """Create an engine for SQLite (local, tests) or PostgreSQL."""
    db_url = db_url or get_settings().database.url

    if db_url.startswith("sqlite"):
        # Request handlers run in a threadpool
        return create_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False}
        )

    return create_engine(
        db_url,
        echo=False,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_timeout=10,
        pool_recycle=1800,     # Recycle connections after 30 min
        pool_pre_ping=True
    )


engine = get_engine()


def create_db_and_tables(bind: Optional[Engine] = None) -> None:
    """Create the test_result table if it doesn't exist."""
    # Registers the table on the shared metadata
    import backend.models.db  # noqa: F401

    target = bind or engine
    SQLModel.metadata.create_all(target)
    logger.info(f"Database ready at {target.url.render_as_string(hide_password=True)}")


def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session
