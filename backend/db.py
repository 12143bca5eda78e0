# backend/db.py
# Database handle supporting PostgreSQL (production) and SQLite (dev)

from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path as FsPath
from typing import Any, Dict, Generator, List, Optional, Union
from urllib.parse import urlparse

from sqlalchemy import create_engine, event, pool, text
from sqlalchemy.engine import Connection, Engine, RowMapping

from backend.config import DATABASE_PATH, DATABASE_URL, DB_TIMEOUT_SECONDS


def default_database_url() -> str:
    """Resolve the configured database URL (DATABASE_URL or local SQLite file)."""
    if DATABASE_URL:
        url = DATABASE_URL
        # Render/Heroku style URLs use the legacy scheme
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        return url

    db_path = FsPath(DATABASE_PATH)
    if not db_path.is_absolute():
        db_path = FsPath(__file__).resolve().parent / db_path
    return f"sqlite:///{db_path}"


class Database:
    """
    Connection-pool handle shared by all services.

    Created once at process start (see main.create_app) and passed to the
    services that need it. Nothing in the backend opens connections on its own.
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or default_database_url()
        parsed = urlparse(self.url)
        self.is_sqlite = parsed.scheme.startswith("sqlite")
        self.engine: Engine = self._create_engine(echo)

    def _create_engine(self, echo: bool) -> Engine:
        if self.is_sqlite:
            engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False, "timeout": DB_TIMEOUT_SECONDS},
                echo=echo,
            )

            # SQLite needs foreign keys switched on per connection (cascades)
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_conn, _record):
                cur = dbapi_conn.cursor()
                cur.execute("PRAGMA foreign_keys = ON")
                cur.close()

            print("[DB] Using SQLite (local dev mode)")
            return engine

        parsed = urlparse(self.url)
        if not parsed.netloc:
            raise ValueError(f"Invalid DATABASE_URL: {self.url[:20]}...")

        engine = create_engine(
            self.url,
            poolclass=pool.QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before use
            echo=echo,
        )
        print(f"[DB] Using PostgreSQL ({parsed.hostname})")
        return engine

    @contextmanager
    def connect(self) -> Generator[Connection, None, None]:
        """Read connection. Anything written here is rolled back on exit."""
        with self.engine.connect() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Generator[Connection, None, None]:
        """Connection inside a transaction: commit on success, rollback on error."""
        with self.engine.begin() as conn:
            yield conn

    def ping(self) -> bool:
        with self.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------
# Query helpers
# ---------------------------------------------------------
def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def row_to_dict(row: Union[RowMapping, Dict[str, Any], None]) -> dict:
    """
    Convert a result row mapping to a plain dict ({} for None).

    SQLite hands booleans back as 0/1; the `active` column is normalized here
    so callers always see a bool.
    """
    if row is None:
        return {}
    data = dict(row)
    if "active" in data and data["active"] is not None:
        data["active"] = bool(data["active"])
    return data


def fetch_one(conn: Connection, sql: str, params: Optional[dict] = None) -> Optional[dict]:
    row = conn.execute(text(sql), params or {}).mappings().first()
    return row_to_dict(row) if row is not None else None


def fetch_all(conn: Connection, sql: str, params: Optional[dict] = None) -> List[dict]:
    rows = conn.execute(text(sql), params or {}).mappings().all()
    return [row_to_dict(r) for r in rows]


def fetch_scalar(conn: Connection, sql: str, params: Optional[dict] = None) -> Any:
    return conn.execute(text(sql), params or {}).scalar()


def execute(conn: Connection, sql: str, params: Optional[dict] = None) -> int:
    """Execute a write statement and return the affected row count."""
    result = conn.execute(text(sql), params or {})
    return result.rowcount
