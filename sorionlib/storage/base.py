"""Storage backend contract.

Every backend exposes the same CRUD surface and the same filter
semantics: a record matches when it equals the filter on every
provided field (fields are ANDed, an empty filter matches all).
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import DatabaseError

Record = Dict[str, Any]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def matches(record: Mapping[str, Any], filter: Optional[Mapping[str, Any]]) -> bool:
    """Exact-match equality on every filter field."""
    if not filter:
        return True
    return all(key in record and record[key] == value for key, value in filter.items())


def check_identifier(name: str, *, operation: str, table: Optional[str] = None) -> str:
    """Reject table/column names that aren't plain identifiers."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise DatabaseError(
            f"Invalid identifier: {name!r}", operation=operation, table=table
        )
    return name


class StorageBackend(ABC):
    """Uniform CRUD contract implemented by every backend."""

    kind: str = ""

    def __init__(self):
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def _require_connection(self, operation: str, table: Optional[str] = None) -> None:
        if not self._connected:
            raise DatabaseError(
                "Database not connected", operation=operation, table=table
            )

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def get(self, table: str, filter: Optional[Mapping[str, Any]] = None) -> List[Record]:
        ...

    @abstractmethod
    async def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        """Insert a record; returns it with its assigned ``id``."""
        ...

    @abstractmethod
    async def update(self, table: str, filter: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, int]:
        """Apply ``patch`` to matching records; returns ``{"modified": n}``."""
        ...

    @abstractmethod
    async def delete(self, table: str, filter: Mapping[str, Any]) -> Dict[str, int]:
        """Delete matching records; returns ``{"deleted": n}``."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    async def __aenter__(self) -> "StorageBackend":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
