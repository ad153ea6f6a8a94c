"""Pluggable persistence backends with a shared CRUD contract."""

from typing import Any

from ..exceptions import ConfigurationError
from .base import StorageBackend, matches
from .json_backend import JSONBackend
from .sqlite_backend import SQLiteBackend

BACKENDS = {
    "json": JSONBackend,
    "sqlite": SQLiteBackend,
}


def create_storage(kind: str, **options: Any) -> StorageBackend:
    """Instantiate a backend by kind (``"json"`` or ``"sqlite"``).

    Raises:
        ConfigurationError: Unknown kind.
    """
    backend = BACKENDS.get(str(kind).lower())
    if backend is None:
        raise ConfigurationError(
            f"Unsupported storage type: {kind!r}",
            setting_name="storage.type",
            valid=", ".join(BACKENDS),
        )
    return backend(**options)


__all__ = [
    "BACKENDS",
    "JSONBackend",
    "SQLiteBackend",
    "StorageBackend",
    "create_storage",
    "matches",
]
