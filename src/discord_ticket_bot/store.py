"""Async key-value store over SQLite with dotted-path access.

A path such as ``"1234.status"`` addresses the ``status`` field inside the
JSON value stored under key ``"1234"``. Each store is one table, so several
stores (tickets, blacklist, main) can share a database file.

sqlite3 is blocking, so every operation runs in the default executor. There
is no locking across calls: a ``get`` followed by a ``set`` from two workflows
can interleave and lose an update.
"""

import asyncio
import json
import logging
import re
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

T = TypeVar("T")


@dataclass(frozen=True)
class StoreEntry:
    """One top-level key and its value."""

    id: str
    value: Any


class KeyValueStore:
    """Dotted-path key-value store backed by one SQLite table."""

    def __init__(self, db_path: str | Path, table: str) -> None:
        """Initialize the store and create its table if needed.

        Args:
            db_path: SQLite database file.
            table: Table name for this store.
        """
        if not _TABLE_NAME.match(table):
            msg = f"Invalid store name: {table!r}"
            raise ValueError(msg)
        self.db_path = Path(db_path)
        self.table = table
        with self._connect() as conn:
            conn.execute(f"CREATE TABLE IF NOT EXISTS {self.table} (id TEXT PRIMARY KEY, json TEXT NOT NULL)")
        logger.debug("Opened store %s in %s", self.table, self.db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func, *args)

    @staticmethod
    def _split(path: str) -> tuple[str, list[str]]:
        key, *rest = str(path).split(".")
        if not key:
            msg = f"Invalid store path: {path!r}"
            raise ValueError(msg)
        return key, rest

    # Sync implementations

    def _read(self, conn: sqlite3.Connection, key: str) -> Any:
        row = conn.execute(f"SELECT json FROM {self.table} WHERE id = ?", (key,)).fetchone()  # noqa: S608
        return None if row is None else json.loads(row["json"])

    def _write(self, conn: sqlite3.Connection, key: str, value: Any) -> None:
        conn.execute(
            f"INSERT INTO {self.table} (id, json) VALUES (?, ?) "  # noqa: S608
            "ON CONFLICT(id) DO UPDATE SET json = excluded.json",
            (key, json.dumps(value)),
        )

    def _get_sync(self, path: str) -> Any:
        key, rest = self._split(path)
        with self._connect() as conn:
            value = self._read(conn, key)
        for part in rest:
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value

    def _set_sync(self, path: str, value: Any) -> Any:
        key, rest = self._split(path)
        with self._connect() as conn:
            if not rest:
                self._write(conn, key, value)
                return value
            root = self._read(conn, key)
            if not isinstance(root, dict):
                root = {}
            node = root
            for part in rest[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[rest[-1]] = value
            self._write(conn, key, root)
        return value

    def _delete_sync(self, path: str) -> bool:
        key, rest = self._split(path)
        with self._connect() as conn:
            if not rest:
                cursor = conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (key,))  # noqa: S608
                return cursor.rowcount > 0
            root = self._read(conn, key)
            node = root
            for part in rest[:-1]:
                if not isinstance(node, dict) or part not in node:
                    return False
                node = node[part]
            if not isinstance(node, dict) or rest[-1] not in node:
                return False
            del node[rest[-1]]
            self._write(conn, key, root)
        return True

    def _all_sync(self) -> list[StoreEntry]:
        with self._connect() as conn:
            rows = conn.execute(f"SELECT id, json FROM {self.table} ORDER BY rowid").fetchall()  # noqa: S608
        return [StoreEntry(id=row["id"], value=json.loads(row["json"])) for row in rows]

    # Async API

    async def get(self, path: str | int) -> Any:
        """Return the value at a path, or ``None`` when absent."""
        return await self._run(self._get_sync, str(path))

    async def set(self, path: str | int, value: Any) -> Any:
        """Store a JSON-serialisable value at a path, creating parents as needed."""
        return await self._run(self._set_sync, str(path), value)

    async def delete(self, path: str | int) -> bool:
        """Remove the value at a path. Returns whether anything was removed."""
        return await self._run(self._delete_sync, str(path))

    async def has(self, path: str | int) -> bool:
        """Return whether a value exists at a path."""
        return await self.get(path) is not None

    async def all(self) -> list[StoreEntry]:
        """Return every top-level entry in insertion order."""
        return await self._run(self._all_sync)
