"""Database helpers for fare reporting."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from accessride.config import DB_PATH
from accessride.repo import ensure_schema


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """Return a SQLite connection in WAL mode with the pricing tables present."""
    conn = sqlite3.connect(db_path or DB_PATH)
    conn.execute("PRAGMA journal_mode=WAL;")
    ensure_schema(conn)
    return conn


@contextmanager
def connection_scope(db_path: Optional[str] = None) -> Iterator[sqlite3.Connection]:
    """Context manager that yields a SQLite connection and closes it afterwards."""
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()
