"""SQLite store.

Runs stdlib sqlite3 calls in a worker thread with ``asyncio.to_thread``
and serializes them with a lock. Tables must already exist; use
``query()`` for DDL.
"""

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from ..exceptions import DatabaseError
from .base import Record, StorageBackend, check_identifier

logger = structlog.get_logger("sorionlib.storage")


def build_where(filter: Optional[Mapping[str, Any]], table: str, operation: str) -> Tuple[str, List[Any]]:
    """Parameterized WHERE clause: every field ANDed with ``=``."""
    if not filter:
        return "", []
    columns = [check_identifier(k, operation=operation, table=table) for k in filter]
    clause = " WHERE " + " AND ".join(f"{c} = ?" for c in columns)
    return clause, list(filter.values())


class SQLiteBackend(StorageBackend):
    """SQLite file store.

    Args:
        path: Database file, or ``":memory:"``.
    """

    kind = "sqlite"

    def __init__(self, path):
        super().__init__()
        self.path = path if path == ":memory:" else Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        try:
            self._conn = await asyncio.to_thread(self._open)
        except (OSError, sqlite3.Error) as e:
            raise DatabaseError(
                f"Failed to open {self.path}: {e}", operation="connect"
            ) from e
        self._connected = True
        logger.info("storage_connected", kind=self.kind, path=str(self.path))

    def _open(self) -> sqlite3.Connection:
        if isinstance(self.path, Path):
            self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    async def _run(self, operation: str, table: Optional[str], sql: str, params: Sequence[Any]):
        self._require_connection(operation, table)

        def _execute():
            cursor = self._conn.execute(sql, params)
            rows = [dict(r) for r in cursor.fetchall()] if cursor.description else []
            self._conn.commit()
            return cursor, rows

        async with self._lock:
            try:
                return await asyncio.to_thread(_execute)
            except sqlite3.Error as e:
                logger.error("storage_error", operation=operation, table=table, error=str(e))
                raise DatabaseError(str(e), operation=operation, table=table) from e

    async def get(self, table: str, filter: Optional[Mapping[str, Any]] = None) -> List[Record]:
        check_identifier(table, operation="get")
        where, values = build_where(filter, table, "get")
        _, rows = await self._run("get", table, f"SELECT * FROM {table}{where}", values)
        return rows

    async def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        check_identifier(table, operation="insert")
        columns = [check_identifier(k, operation="insert", table=table) for k in record]
        if columns:
            placeholders = ", ".join("?" for _ in columns)
            sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        cursor, _ = await self._run("insert", table, sql, list(record.values()))
        return {"id": cursor.lastrowid, **record}

    async def update(self, table: str, filter: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, int]:
        check_identifier(table, operation="update")
        if not patch:
            return {"modified": 0}
        columns = [check_identifier(k, operation="update", table=table) for k in patch]
        sets = ", ".join(f"{c} = ?" for c in columns)
        where, values = build_where(filter, table, "update")
        cursor, _ = await self._run(
            "update", table, f"UPDATE {table} SET {sets}{where}", [*patch.values(), *values]
        )
        return {"modified": cursor.rowcount}

    async def delete(self, table: str, filter: Mapping[str, Any]) -> Dict[str, int]:
        check_identifier(table, operation="delete")
        where, values = build_where(filter, table, "delete")
        cursor, _ = await self._run("delete", table, f"DELETE FROM {table}{where}", values)
        return {"deleted": cursor.rowcount}

    async def query(self, sql: str, params: Sequence[Any] = ()) -> List[Record]:
        """Run raw SQL with bound parameters and return any rows."""
        _, rows = await self._run("query", None, sql, params)
        return rows

    async def close(self) -> None:
        if not self._connected:
            return
        async with self._lock:
            await asyncio.to_thread(self._conn.close)
        self._conn = None
        self._connected = False
        logger.info("storage_disconnected", kind=self.kind)
