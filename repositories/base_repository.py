"""
Base repository: SQLite connection handling shared by every ladder repository.
"""

import sqlite3
from abc import ABC
from collections.abc import Iterable
from contextlib import contextmanager

from database import Database

# Concurrent writers wait this long for the lock before raising "database is locked"
BUSY_TIMEOUT_MS = 5000


class BaseRepository(ABC):
    """
    Base class for all repositories.

    Every call opens its own connection, so repositories are safe to share
    between threads; SQLite serializes writers through WAL and busy_timeout.
    """

    # DB paths whose schema has already been initialized in this process
    _schema_initialized_paths: set[str] = set()

    def __init__(self, db_path: str):
        self.db_path = db_path
        if db_path not in BaseRepository._schema_initialized_paths:
            Database(db_path)
            BaseRepository._schema_initialized_paths.add(db_path)

    def get_connection(self) -> sqlite3.Connection:
        """Open a connection with row access by column name."""
        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT_MS / 1000)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        return conn

    @contextmanager
    def connection(self):
        """
        Connection that commits on success, rolls back on error and always closes.
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def atomic_transaction(self):
        """
        Transaction holding the write lock from the first statement.

        BEGIN IMMEDIATE stops another writer from slipping in between a read
        and the write that depends on it, e.g. re-checking the reward guard
        before crediting points.

        Usage:
            with self.atomic_transaction() as conn:
                cursor = conn.cursor()
                cursor.execute(...)
        """
        conn = self.get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Single-statement helpers
    # ------------------------------------------------------------------

    def fetch_one(self, sql: str, params: Iterable = ()) -> sqlite3.Row | None:
        with self.connection() as conn:
            return conn.execute(sql, tuple(params)).fetchone()

    def fetch_all(self, sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
        with self.connection() as conn:
            return conn.execute(sql, tuple(params)).fetchall()

    def execute(self, sql: str, params: Iterable = ()) -> int:
        """Run one write statement and return the number of rows it changed."""
        with self.connection() as conn:
            return conn.execute(sql, tuple(params)).rowcount
