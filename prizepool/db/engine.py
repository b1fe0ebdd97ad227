import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .utils import resolve_sqlite_url

load_dotenv()

ROOT_DIR = Path(__file__).resolve().parents[2]
"""Repository root; relative SQLite paths are resolved against it."""

FALLBACK_DB_URL = "sqlite:///./lottery.db"

SQLITE_BUSY_TIMEOUT_MS = 5000
"""How long a SQLite writer waits for a concurrent transaction to finish."""


def configured_database_url(env: Optional[Mapping[str, str]] = None) -> str:
    """Return ``DB_URL`` from ``env`` (default ``os.environ``) with SQLite paths resolved."""
    env = os.environ if env is None else env
    return resolve_sqlite_url(env.get("DB_URL") or FALLBACK_DB_URL, ROOT_DIR)


DEFAULT_SQLITE_URL = configured_database_url()


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def make_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """Create the engine used by the lottery workflows and scripts.

    Parameters
    ----------
    database_url : Optional[str]
        Overrides ``DB_URL``.
    echo : Optional[bool]
        Log SQL statements. Defaults to the ``DB_ECHO`` environment flag.

    Notes
    -----
    Keepers and fulfillment handlers may write the same round concurrently.
    On SQLite each connection enforces foreign keys and waits on the write
    lock instead of failing; other backends get pre-ping so stale pooled
    connections are replaced between keeper runs.
    """
    url = database_url or configured_database_url()
    if echo is None:
        echo = _truthy(os.getenv("DB_ECHO"))

    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True, future=True)

    engine = create_engine(url, echo=echo, future=True)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        cursor.close()

    return engine


def get_sessionmaker(engine: Optional[Engine] = None) -> sessionmaker:
    """Session factory for lottery transactions; builds a default engine if needed."""
    return sessionmaker(
        bind=engine if engine is not None else make_engine(),
        # Rounds and outcomes stay readable after the keeper commits.
        expire_on_commit=False,
        future=True,
    )
