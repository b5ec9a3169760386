import os
import time

import structlog
from fastapi import Request
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy import create_engine, event
from .config import settings
from .errors import RequestTimeoutError


log = structlog.get_logger(__name__)


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _configure_sqlite(engine)
        return engine
    # Pooled server database
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,  # Recycle connections after 1 hour
    )


def _configure_sqlite(engine) -> None:
    # pysqlite opens transactions lazily and only on DML; take the write lock
    # up front so read-check-then-write handlers run serialized.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a relative SQLite file URL."""
    if database_url.startswith("sqlite:///./"):
        directory = os.path.dirname(database_url[len("sqlite:///"):])
        if directory:
            os.makedirs(directory, exist_ok=True)


engine = build_engine(settings.database_url)

# One Session per request, handed out by get_db
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def _refuse_late_commit(deadline: float):
    def _before_commit(session):
        if time.monotonic() > deadline:
            log.warning("commit_after_deadline_refused")
            raise RequestTimeoutError("Request timed out")

    return _before_commit


def request_session(factory, request: Request):
    """Yield a Session for one request.

    Once the deadline stored on ``request.state`` by the timeout middleware has
    passed, ``commit()`` raises and the work is rolled back, so a request that
    already answered 504 leaves nothing behind.
    """
    db = factory()
    deadline = getattr(request.state, "deadline", None)
    if deadline is not None:
        event.listen(db, "before_commit", _refuse_late_commit(deadline))
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db(request: Request):
    yield from request_session(SessionLocal, request)
