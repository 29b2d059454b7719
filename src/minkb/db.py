"""Shared SQLite connection helper for the index database."""

from __future__ import annotations

import sqlite3
from pathlib import Path


def open_db(path: Path) -> sqlite3.Connection:
    """Open SQLite with WAL mode, durable commits and row access by column name.

    The connection runs in autocommit mode so callers issue explicit
    ``BEGIN``/``COMMIT``/``SAVEPOINT`` statements, and may be used from the
    worker thread that happens to run the current operation.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=FULL")
    conn.row_factory = sqlite3.Row
    return conn
