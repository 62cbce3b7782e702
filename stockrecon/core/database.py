"""
Stock Reconciliation Database Configuration
Engine and session factory for the count, stock and ledger tables
"""
from sqlalchemy import create_engine, MetaData, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from typing import Any, Dict, Generator, Optional
import logging

from .config import settings

logger = logging.getLogger("stockrecon.database")


def engine_options(database_url: str) -> Dict[str, Any]:
    """
    Pool options for a database URL

    PostgreSQL gets a recycled, pre-pinged QueuePool sized from settings.
    SQLite connections may be shared across threads (the API serves from a
    threadpool), and an in-memory database is pinned to a single connection
    so every session sees the same tables.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options

    return {
        "poolclass": QueuePool,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,
    }


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """Build an engine for the given URL, defaulting to DATABASE_URL"""
    database_url = database_url or settings.DATABASE_URL
    return create_engine(database_url, echo=settings.DEBUG, **engine_options(database_url))


engine = create_db_engine()

# No autoflush; services flush explicitly where generated ids are needed
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Metadata with naming convention for constraints
Base = declarative_base(metadata=MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}))


def get_db() -> Generator:
    """
    Request-scoped session

    Services commit their own work; anything left uncommitted when a
    request fails is rolled back here.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error, rolling back: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None):
    """Create the master data, stock, count document, ledger and audit tables"""
    bind = bind or engine
    try:
        from stockrecon import models  # noqa: F401

        Base.metadata.create_all(bind=bind)
        logger.info(f"Created {len(Base.metadata.tables)} tables on {bind.url.get_backend_name()}")

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


def check_db_connection() -> bool:
    """True when a trivial query succeeds on the configured engine"""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
