"""Opening SQLite databases for the content store.

Every connection gets the same setup: ``sqlite3.Row`` rows, the sqlite-vec
extension, foreign keys, WAL journaling and a Unicode-aware ``py_lower()``
SQL function for keyword search.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

MEMORY = ":memory:"

# Seconds a writer waits on a locked database before sqlite3 raises.
BUSY_TIMEOUT = 30.0

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
)


def _py_lower(value: str | None) -> str | None:
    # SQLite's lower() only folds ASCII.
    return value.lower() if value is not None else None


class Database:
    """A content-store database file (or ``":memory:"``).

    Use :meth:`connect` for a long-lived connection owned by the caller, or the
    context manager for a connection scoped to a block.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = db_path if db_path == MEMORY else Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Return a new configured connection.

        Connections may be handed between threads (the HTTP layer opens one per
        request) but must not be used by two threads at once.
        """
        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT, check_same_thread=False)
        try:
            _configure(conn)
        except Exception:
            conn.close()
            raise
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def _configure(conn: sqlite3.Connection) -> None:
    conn.row_factory = sqlite3.Row
    conn.enable_load_extension(True)
    try:
        sqlite_vec.load(conn)
    finally:
        conn.enable_load_extension(False)
    for pragma in _PRAGMAS:
        conn.execute(pragma)
    conn.create_function("py_lower", 1, _py_lower, deterministic=True)
