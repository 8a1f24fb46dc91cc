import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

DB_ENV_VAR = "FOUNDER_DB_PATH"
# The auto-tick thread and request handlers write save slots concurrently.
BUSY_TIMEOUT_MS = 5000


def _resolve_db_path() -> Path:
    raw_path = os.getenv(DB_ENV_VAR)
    if raw_path:
        path = Path(raw_path).expanduser().resolve()
    else:
        path = (Path(__file__).resolve().parent.parent / "foundermode.db").resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


DB_PATH = _resolve_db_path()


@contextmanager
def get_connection() -> Iterator[sqlite3.Connection]:
    """Open a connection that commits on success and rolls back if the block raises."""
    conn = sqlite3.connect(DB_PATH, check_same_thread=False, timeout=BUSY_TIMEOUT_MS / 1000)
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def execute_script(sql: str) -> None:
    with get_connection() as conn:
        conn.executescript(sql)


def schema_version() -> int:
    with get_connection() as conn:
        return conn.execute("PRAGMA user_version").fetchone()[0]


def ensure_schema(sql: str, version: int) -> None:
    """Create the tables and stamp the file with ``version``.

    A file stamped by a newer release is refused instead of being read with
    the wrong layout. Older or unstamped files are upgraded in place, which is
    safe while every script uses ``CREATE ... IF NOT EXISTS``.
    """
    current = schema_version()
    if current > version:
        raise RuntimeError(f"Database {DB_PATH} has schema version {current}, newer than supported {version}")
    with get_connection() as conn:
        conn.executescript(sql)
        conn.execute(f"PRAGMA user_version = {int(version)}")
    if current != version:
        logger.info("Database %s schema version %s -> %s", DB_PATH, current, version)
