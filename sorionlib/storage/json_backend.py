"""File-backed document store.

Tables are lists of dicts in a single JSON file. Every mutation is
flushed to disk; ids auto-increment per table.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import structlog

from ..exceptions import DatabaseError
from .base import Record, StorageBackend, check_identifier, matches

logger = structlog.get_logger("sorionlib.storage")


class JSONBackend(StorageBackend):
    """JSON file store.

    Args:
        path: Database file. Created (with parent dirs) on connect.
    """

    kind = "json"

    def __init__(self, path):
        super().__init__()
        self.path = Path(path)
        self._tables: Dict[str, List[Record]] = {}

    async def connect(self) -> None:
        try:
            self._tables = await asyncio.to_thread(self._load)
        except (OSError, ValueError) as e:
            raise DatabaseError(
                f"Failed to open {self.path}: {e}", operation="connect"
            ) from e
        self._connected = True
        logger.info("storage_connected", kind=self.kind, path=str(self.path))

    def _load(self) -> Dict[str, List[Record]]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("{}", encoding="utf-8")
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        if not isinstance(data, dict):
            raise ValueError("top-level JSON value must be an object")
        return data

    async def _save(self) -> None:
        payload = json.dumps(self._tables, indent=2, default=str)
        await asyncio.to_thread(self.path.write_text, payload, "utf-8")

    async def get(self, table: str, filter: Optional[Mapping[str, Any]] = None) -> List[Record]:
        self._require_connection("get", table)
        check_identifier(table, operation="get")
        return [dict(r) for r in self._tables.get(table, []) if matches(r, filter)]

    async def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        self._require_connection("insert", table)
        check_identifier(table, operation="insert")
        rows = self._tables.setdefault(table, [])
        next_id = max((r.get("id") or 0 for r in rows), default=0) + 1
        new_record = {"id": next_id, **record}
        rows.append(new_record)
        await self._save()
        return dict(new_record)

    async def update(self, table: str, filter: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, int]:
        self._require_connection("update", table)
        check_identifier(table, operation="update")
        modified = 0
        for row in self._tables.get(table, []):
            if matches(row, filter):
                row.update(patch)
                modified += 1
        if modified:
            await self._save()
        return {"modified": modified}

    async def delete(self, table: str, filter: Mapping[str, Any]) -> Dict[str, int]:
        self._require_connection("delete", table)
        check_identifier(table, operation="delete")
        rows = self._tables.get(table, [])
        kept = [r for r in rows if not matches(r, filter)]
        deleted = len(rows) - len(kept)
        if deleted:
            self._tables[table] = kept
            await self._save()
        return {"deleted": deleted}

    async def close(self) -> None:
        if not self._connected:
            return
        await self._save()
        self._connected = False
        logger.info("storage_disconnected", kind=self.kind)
