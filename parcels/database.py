import logging
import os
import time
from contextlib import contextmanager
from typing import Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL
from .errors import ConflictError

logger = logging.getLogger(__name__)

# Get environment-specific pool settings
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
ENABLE_QUERY_LOGGING = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

DEFAULT_DATABASE_URL = "sqlite:///./parcels.db"

Base = declarative_base()


class Database:
    """Owns the engine and connection pool for the lifetime of the app.

    Created at start-up (see ``main.lifespan``) and disposed at shutdown, so
    nothing connects at import time and tests can hand in their own instance.
    """

    def __init__(self, url: Optional[str] = None, **engine_kwargs):
        self.url = url or DATABASE_URL
        if not self.url:
            logger.warning(f"⚠️ DATABASE_URL not set, using local {DEFAULT_DATABASE_URL}")
            self.url = DEFAULT_DATABASE_URL

        try:
            self.engine = create_engine(self.url, **self._engine_options(engine_kwargs))
            logger.info("✅ Database engine created successfully")
        except Exception as e:
            logger.error(f"❌ Failed to create database engine: {e}")
            raise

        if ENABLE_QUERY_LOGGING:
            self._install_slow_query_logging()

        self.SessionLocal = sessionmaker(autoflush=False, bind=self.engine)

    def _engine_options(self, overrides: dict) -> dict:
        if self.url.startswith("sqlite"):
            options = {"connect_args": {"check_same_thread": False}}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                options["poolclass"] = StaticPool
        else:
            options = {
                "pool_pre_ping": True,  # Test connections before using
                "pool_recycle": POOL_RECYCLE,
                "pool_size": POOL_SIZE,
                "max_overflow": MAX_OVERFLOW,
                "pool_timeout": POOL_TIMEOUT,
            }
            logger.info(
                f"📊 Connection pool: size={POOL_SIZE}, max_overflow={MAX_OVERFLOW}, timeout={POOL_TIMEOUT}s"
            )
        options["echo"] = False
        options.update(overrides)
        return options

    def _install_slow_query_logging(self):
        @event.listens_for(self.engine, "before_cursor_execute")
        def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
            conn.info.setdefault("query_start_time", []).append(time.time())

        @event.listens_for(self.engine, "after_cursor_execute")
        def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
            total = time.time() - conn.info["query_start_time"].pop(-1)
            if total > SLOW_QUERY_THRESHOLD:
                logger.warning(f"🐌 Slow query ({total:.2f}s): {statement[:200]}...")

    def create_all(self):
        # Import models so every table is registered on Base
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine, checkfirst=True)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self):
        self.engine.dispose()
        logger.info("Database connection pool disposed")


def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def upsert(db: Session, model):
    """Dialect-specific INSERT that supports ``on_conflict_do_update/do_nothing``."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


@contextmanager
def transaction(db: Session):
    """
    Commit on success, roll back on any error. A unique-constraint violation
    that escapes the workflow surfaces as a 409.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"⚠️ Constraint violation, transaction rolled back: {e.orig}")
        raise ConflictError("conflict", "The resource was modified concurrently") from e
    except Exception:
        db.rollback()
        raise
