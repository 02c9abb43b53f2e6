"""
Database engine and session management.

The analytics engine reads journal records and writes Insight rows through
one session per request. PostgreSQL gets a pooled engine; SQLite URLs (the
test-suite) share a single in-memory connection with foreign keys enforced.
"""
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from core.config import settings
import logging
import time

logger = logging.getLogger(__name__)

SESSION_OPEN_ATTEMPTS = 3
SESSION_RETRY_DELAY = 0.1  # seconds, doubled per attempt


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.DEBUG,
        )

        @event.listens_for(sqlite_engine, "connect")
        def _sqlite_connect(dbapi_conn, connection_record):
            # SQLAlchemy emits BEGIN itself so SAVEPOINTs nest correctly
            dbapi_conn.isolation_level = None
            dbapi_conn.execute("PRAGMA foreign_keys=ON")

        @event.listens_for(sqlite_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return sqlite_engine

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)

Base = declarative_base()


def _open_session() -> Session:
    """Open a session whose connection answers SELECT 1, backing off between attempts."""
    for attempt in range(SESSION_OPEN_ATTEMPTS):
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except Exception as e:
            db.close()
            if attempt == SESSION_OPEN_ATTEMPTS - 1:
                logger.error(f"Database unavailable after {SESSION_OPEN_ATTEMPTS} attempts: {e}")
                raise
            logger.warning(f"Database connection attempt {attempt + 1} failed, retrying...")
            time.sleep(SESSION_RETRY_DELAY * (2 ** attempt))


def get_db() -> Session:
    """
    FastAPI dependency: one session per request.

    Commits when the endpoint returns (the insight assembler's single
    write), rolls back when it raises.
    """
    db = _open_session()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        # HTTP errors raised by routers are not database failures
        from fastapi import HTTPException
        if not isinstance(e, HTTPException):
            logger.error(f"Database transaction error: {e}")
        raise
    finally:
        db.close()


def check_db_connection() -> bool:
    """True when a fresh connection can run SELECT 1."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
