# backend/utils/db.py
from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator
import logging
import os
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from utils.errors import Conflict, StoreUnavailable

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


_engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None
EFFECTIVE_DB_URL = ""


def _normalize_url(url: str) -> str:
    if not url:
        return url
    # psycopg v3 driver for bare postgresql:// URLs
    return url.replace("postgresql://", "postgresql+psycopg://") if url.startswith("postgresql://") else url


def _default_sqlite_url() -> str:
    from utils.config_handler import DATA_DIR
    return f"sqlite:///{DATA_DIR / 'moderation.db'}"


def _enable_sqlite_fk(eng: Engine) -> None:
    @event.listens_for(eng, "connect")
    def _fk_pragma(dbapi_conn, _record):  # noqa: F841
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def init_engine_session(url: str | None = None) -> Engine:
    """
    Initialise the engine and session factory:
    1) explicit url argument
    2) DATABASE_URL
    3) SQLite file in the data dir
    Tables are created on first connect; Alembic owns schema changes afterwards.
    """
    global _engine, SessionLocal, EFFECTIVE_DB_URL

    raw = url or os.getenv("DATABASE_URL", "") or _default_sqlite_url()
    effective = _normalize_url(raw)
    eng = create_engine(effective, pool_pre_ping=True)
    if eng.dialect.name == "sqlite":
        _enable_sqlite_fk(eng)
    # fail fast on a bad URL instead of on the first request
    with eng.connect() as conn:
        conn.exec_driver_sql("SELECT 1")

    import models  # noqa: F401  registers every mapped table on Base.metadata
    Base.metadata.create_all(eng)

    if _engine is not None and _engine is not eng:
        _engine.dispose()
    _engine = eng
    SessionLocal = sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)
    EFFECTIVE_DB_URL = effective
    logger.info("DB connected: %s", _mask_url(effective))
    return eng


def get_engine() -> Engine:
    if _engine is None:
        init_engine_session()
    assert _engine is not None
    return _engine


def _mask_url(url: str) -> str:
    if "://" not in url or "@" not in url:
        return url
    left, rest = url.split("://", 1)
    cred_part, host_part = rest.split("@", 1)
    if ":" in cred_part:
        masked = f"{cred_part.split(':', 1)[0]}:***"
    else:
        masked = cred_part
    return f"{left}://{masked}@{host_part}"


def get_db_health() -> dict:
    """DB health for /api/healthz."""
    ok = False
    driver = None
    err = None
    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        ok = True
        driver = eng.url.drivername
    except Exception as e:  # noqa: BLE001
        err = str(e)
    return {
        "ok": ok,
        "url": _mask_url(EFFECTIVE_DB_URL or os.getenv("DATABASE_URL", "")),
        "driver": driver,
        **({"error": err} if err else {}),
    }


def commit_or_conflict(session: Session, what: str) -> None:
    """Commit; a version mismatch means another writer got there first."""
    try:
        session.commit()
    except StaleDataError:
        session.rollback()
        logger.info("lost update race on %s", what)
        raise Conflict(f"{what} was modified concurrently", hint="重新讀取最新狀態後再試")


@contextmanager
def get_session() -> Iterator[Session]:
    """Unit of work: services commit explicitly, anything raised rolls back."""
    get_engine()
    assert SessionLocal is not None
    db = SessionLocal()
    try:
        yield db
    except OperationalError as e:
        db.rollback()
        logger.error("store failure: %s", e.orig)
        raise StoreUnavailable(str(e.orig)) from e
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()
