"""Small helpers shared across SorionLib modules."""

import asyncio
from typing import Any, Dict, Optional

_BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def merge_options(options: Optional[Dict[str, Any]], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Return defaults overlaid with the caller's options."""
    return {**defaults, **(options or {})}


async def delay(ms: float) -> None:
    """Sleep for ``ms`` milliseconds."""
    await asyncio.sleep(ms / 1000)


def format_bytes(size: int) -> str:
    """Human-readable byte count, e.g. ``format_bytes(1536) == "1.5 KB"``."""
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    index = 0
    while value >= 1024 and index < len(_BYTE_UNITS) - 1:
        value /= 1024
        index += 1
    return f"{format_number(round(value, 2))} {_BYTE_UNITS[index]}"


def format_number(value: float) -> str:
    """Render a number without a trailing ``.0`` (5.0 -> "5", 2.5 -> "2.5")."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_seconds(ms: int) -> str:
    """Milliseconds as a seconds string, e.g. 5000 -> "5", 1500 -> "1.5"."""
    return format_number(ms / 1000)
