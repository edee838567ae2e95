"""
Read-only access to the embedded collection database.

The decoder only ever issues fixed ``SELECT`` and ``PRAGMA`` queries; the
database engine itself is SQLite via the standard library. The collection
bytes are written to a private temporary directory for the lifetime of the
store and removed when it closes.
"""

import logging
import os
import shutil
import sqlite3
import tempfile
from pathlib import Path

from anki_decoder.errors import UnrecognizedCollection

logger = logging.getLogger(__name__)

SQLITE_MAGIC = b"SQLite format 3\x00"


class TabularStore:
    """
    Query a collection database held in memory.

    Use as a context manager::

        with TabularStore.from_bytes(collection_bytes) as store:
            rows = store.query("SELECT id, mid, flds, tags FROM notes")
    """

    def __init__(self, conn: sqlite3.Connection, temp_dir: str | None = None) -> None:
        self.conn = conn
        self.temp_dir = temp_dir

    @classmethod
    def from_bytes(cls, data: bytes) -> "TabularStore":
        """
        Open a database image read-only.

        :param data: Decompressed SQLite database file contents.
        :returns: An open store.
        :raises UnrecognizedCollection: If the bytes are not an SQLite database.
        """
        if not data.startswith(SQLITE_MAGIC):
            raise UnrecognizedCollection(
                "Collection is not an SQLite database "
                f"(leading bytes {data[:16].hex(' ') or 'empty'})"
            )

        temp_dir = tempfile.mkdtemp(prefix="anki_decoder_")
        db_path = os.path.join(temp_dir, "collection.db")
        try:
            with open(db_path, "wb") as f:
                f.write(data)
            uri = Path(db_path).as_uri() + "?mode=ro&immutable=1"
            conn = sqlite3.connect(uri, uri=True)
        except (OSError, sqlite3.Error) as exc:
            shutil.rmtree(temp_dir, ignore_errors=True)
            raise UnrecognizedCollection(f"Cannot open collection: {exc}") from exc

        conn.row_factory = sqlite3.Row
        return cls(conn, temp_dir)

    def __enter__(self) -> "TabularStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
        if self.temp_dir:
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.temp_dir = None

    def query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        """
        Run a read-only query.

        :param sql: Query text.
        :param params: Positional parameters.
        :returns: All result rows.
        :raises UnrecognizedCollection: If the query fails (missing table,
            corrupt database, ...).
        """
        try:
            cursor = self.conn.execute(sql, params)
            return cursor.fetchall()
        except sqlite3.Error as exc:
            raise UnrecognizedCollection(f"Query failed ({sql!r}): {exc}") from exc

    def query_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def table_names(self) -> set[str]:
        rows = self.query("SELECT name FROM sqlite_master WHERE type = 'table'")
        return {row["name"] for row in rows}

    def column_names(self, table: str) -> list[str]:
        """Column names of a table, empty if the table does not exist."""
        if not table.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table!r}")
        rows = self.query(f"PRAGMA table_info({table})")
        return [row["name"] for row in rows]
