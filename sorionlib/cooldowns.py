"""Per-user command cooldowns.

Tracks when each user last ran each command and removes the entry
automatically once its window has elapsed, so a user can never stay
locked out of a command.
"""

import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

import structlog

logger = structlog.get_logger("sorionlib.commands")

CooldownKey = Tuple[str, str]


class CooldownLedger:
    """Timestamp store keyed by (user id, command name).

    Every ``set_cooldown`` schedules exactly one deferred removal on
    the running event loop. Lookups also compare against the clock,
    so an entry is never honoured past its window even if the loop
    was busy when the removal came due.

    Args:
        clock: Monotonic clock returning seconds. Injected by tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[CooldownKey, float] = {}
        self._timers: Dict[CooldownKey, asyncio.TimerHandle] = {}

    @staticmethod
    def _key(user_id, command: str) -> CooldownKey:
        return (str(user_id), command.lower())

    def is_on_cooldown(self, user_id, command: str, window_ms: int) -> bool:
        """Return True while ``now - last_use < window_ms``.

        A zero window never reports a cooldown and touches nothing.
        """
        if window_ms <= 0:
            return False
        last_used = self._entries.get(self._key(user_id, command))
        if last_used is None:
            return False
        return (self._clock() - last_used) * 1000 < window_ms

    def set_cooldown(self, user_id, command: str, window_ms: int) -> None:
        """Record a use now and schedule the entry's removal.

        Args:
            user_id: Discord user id (any value; stored as str).
            command: Command name (case-insensitive).
            window_ms: Cooldown window in milliseconds. 0 is a no-op.
        """
        if window_ms <= 0:
            return

        key = self._key(user_id, command)
        self._entries[key] = self._clock()

        previous = self._timers.pop(key, None)
        if previous is not None:
            previous.cancel()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # No running loop; clock comparison still expires it
        self._timers[key] = loop.call_later(window_ms / 1000, self._expire, key)

    def _expire(self, key: CooldownKey) -> None:
        self._timers.pop(key, None)
        if self._entries.pop(key, None) is not None:
            logger.debug("cooldown_expired", user_id=key[0], command=key[1])

    def release(self, user_id, command: str) -> None:
        """Drop one entry and its pending removal."""
        key = self._key(user_id, command)
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()
        self._entries.pop(key, None)

    def last_used(self, user_id, command: str) -> Optional[float]:
        """Clock value of the last recorded use, if the entry is live."""
        return self._entries.get(self._key(user_id, command))

    def clear(self) -> None:
        """Cancel pending removals and drop every entry."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
