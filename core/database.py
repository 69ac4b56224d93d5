"""
Engine, session factory and declarative Base.

PostgreSQL in production; DATABASE_URL may point anywhere SQLAlchemy can
reach (sqlite for local runs and the test suite). API requests get a
session per request from get_db; Celery tasks and work-queue threads open
their own with get_db_sync and manage the transaction themselves.
"""
import logging
import time
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL or (
    f"postgresql://{settings.POSTGRES_USER}:{settings.POSTGRES_PASSWORD}"
    f"@{settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}"
)

IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    # Shared across work-queue threads; each thread uses its own session.
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=settings.DEBUG,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )

# expire_on_commit=False: workflow steps return ORM values after committing.
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

Base = declarative_base()

CONNECT_ATTEMPTS = 3
CONNECT_BACKOFF_S = 0.1


def utcnow() -> datetime:
    """Naive UTC; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@event.listens_for(engine, "connect")
def _sqlite_pragmas(dbapi_conn, connection_record):
    if not IS_SQLITE:
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _open_session() -> Session:
    """Session whose connection answered SELECT 1, retried with backoff."""
    for attempt in range(CONNECT_ATTEMPTS):
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except Exception as e:
            db.close()
            if attempt == CONNECT_ATTEMPTS - 1:
                logger.error(f"Database unreachable after {CONNECT_ATTEMPTS} attempts: {e}")
                raise
            logger.warning(f"Database connect attempt {attempt + 1} failed, retrying")
            time.sleep(CONNECT_BACKOFF_S * (2 ** attempt))


def get_db():
    """FastAPI dependency: commit on success, roll back on any error."""
    db = _open_session()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        if not isinstance(e, HTTPException):
            logger.error(f"Request transaction rolled back: {e}")
        raise
    finally:
        db.close()


def get_db_sync() -> Session:
    """Session for tasks and worker threads. The caller commits and closes."""
    return SessionLocal()


def check_db_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
    return True
