"""
Database bootstrap for the Squad Ladder bot.
"""

import logging
import sqlite3

from infrastructure.schema_manager import SchemaManager

logger = logging.getLogger("ladder_bot.database")


class Database:
    """Opens a SQLite database file and makes sure its schema is current."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.use_uri = db_path.startswith("file:")
        SchemaManager(db_path, use_uri=self.use_uri).initialize()

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, uri=self.use_uri)
        conn.row_factory = sqlite3.Row
        return conn
