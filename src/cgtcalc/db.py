from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .settings import get_settings

# ---------- Engine / Session ----------
DB_URL = get_settings().db_url

# echo=False to keep tests quiet
_engine: Engine = create_engine(DB_URL, future=True, echo=False)
# Expose the engine so other modules can import it
engine = _engine


@event.listens_for(_engine, "connect")
def _set_sqlite_pragmas(dbapi_conn, _record) -> None:
    # Safer concurrency defaults for SQLite; no-op for other backends
    if not DB_URL.startswith("sqlite"):
        return
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA busy_timeout=5000;")
    cur.close()


SessionLocal = sessionmaker(
    bind=_engine,
    autoflush=False,
    autocommit=False,
    future=True,
)

# ---------- Init helpers ----------

def init_db() -> None:
    """
    Create ORM tables (idempotent).
    """
    # Import models here to avoid circular imports
    from .models import Base  # noqa: WPS433 (import inside function)

    Base.metadata.create_all(bind=_engine)  # no-ops on existing


@contextmanager
def db_session() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
