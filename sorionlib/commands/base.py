"""Prefix command registry.

Maps lowercase command names to handlers and dispatches chat
messages that start with the configured prefix. Handlers are grouped
either by registering them one at a time or by subclassing
CommandGroup and registering the whole group.

Key classes:
    Command: Immutable registration record.
    CommandGroup: ABC for bundling related commands.
    CommandRegistry: Name -> Command map plus the dispatch pipeline.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

import structlog

from ..exceptions import ConfigurationError
from ..utils import format_seconds

if TYPE_CHECKING:
    import discord

    from ..cooldowns import CooldownLedger

logger = structlog.get_logger("sorionlib.commands")

# Handler signature: (message, args) -> None | Awaitable[None]
CommandHandler = Callable[["discord.Message", List[str]], Any]

COOLDOWN_MESSAGE = "⏰ Please wait {seconds} seconds before using this command again."
PERMISSION_MESSAGE = "🚫 You need the following permissions to use this command: {permissions}"
ERROR_MESSAGE = "❌ An error occurred while executing this command."


@dataclass(frozen=True)
class Command:
    """A registered prefix command.

    Attributes:
        name: Lowercase command name (registry key).
        handler: Sync or async callable taking (message, args).
        cooldown: Per-user cooldown in milliseconds (0 disables it).
        permissions: Guild permission names the author must hold,
            e.g. ``{"manage_messages"}``.
        description: One-line help text.
    """

    name: str
    handler: CommandHandler
    cooldown: int = 0
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    description: str = ""


class CommandGroup(ABC):
    """Abstract base class for groups of related commands.

    Subclasses implement get_commands() to return a dict mapping
    command names to handlers, and may override get_options() to
    attach cooldowns or permissions per command.
    """

    @abstractmethod
    def get_commands(self) -> Dict[str, CommandHandler]:
        """Return {command_name: handler} mapping."""
        ...

    def get_options(self) -> Dict[str, Dict[str, Any]]:
        """Return {command_name: {"cooldown": ..., "permissions": ...}}."""
        return {}


class CommandRegistry:
    """Maps command names to Command records and dispatches messages.

    Args:
        ledger: Cooldown ledger consulted before each invocation.
        prefix: Marker that starts every command message.
    """

    def __init__(self, ledger: "CooldownLedger", prefix: str = "!"):
        if not prefix:
            raise ConfigurationError("Command prefix must not be empty", setting_name="prefix")
        self.ledger = ledger
        self.prefix = prefix
        self._commands: Dict[str, Command] = {}

    # --- Registration ---

    def register(
        self,
        name: str,
        handler: CommandHandler,
        *,
        cooldown: int = 0,
        permissions: Iterable[str] = (),
        description: str = "",
    ) -> Command:
        """Register a command under ``name.lower()``.

        Args:
            name: Command name; matched case-insensitively.
            handler: Sync or async callable taking (message, args).
            cooldown: Per-user cooldown in milliseconds.
            permissions: Guild permission names required to run it.
            description: One-line help text.

        Returns:
            The stored Command.

        Raises:
            ConfigurationError: Empty name, non-callable handler or
                negative cooldown.
        """
        if not isinstance(name, str) or not name.strip() or any(c.isspace() for c in name):
            raise ConfigurationError(f"Invalid command name: {name!r}", setting_name="name")
        if not callable(handler):
            raise ConfigurationError(f"Handler for {name!r} is not callable", setting_name="handler")
        if cooldown < 0:
            raise ConfigurationError(
                f"Cooldown for {name!r} must be >= 0", setting_name="cooldown", value=cooldown
            )

        key = name.lower()
        if key in self._commands:
            logger.warning("command_handler_conflict", command=key)

        command = Command(
            name=key,
            handler=handler,
            cooldown=int(cooldown),
            permissions=frozenset(permissions),
            description=description,
        )
        self._commands[key] = command
        logger.debug("command_registered", command=key, cooldown=command.cooldown)
        return command

    def register_group(self, group: CommandGroup) -> None:
        """Register every command from a CommandGroup."""
        options = group.get_options()
        for cmd_name, handler in group.get_commands().items():
            self.register(cmd_name, handler, **options.get(cmd_name, {}))

    def get(self, name: str) -> Optional[Command]:
        """Look up a command by name (case-insensitive)."""
        return self._commands.get(name.lower())

    @property
    def command_names(self) -> frozenset:
        """All registered command names."""
        return frozenset(self._commands.keys())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._commands

    def __len__(self) -> int:
        return len(self._commands)

    # --- Dispatch ---

    def parse(self, content: str) -> Optional[Tuple[str, List[str]]]:
        """Split a message into (command_name, args).

        Returns None when the content lacks the prefix or has nothing
        after it.
        """
        if not content or not content.startswith(self.prefix):
            return None
        parts = content[len(self.prefix):].split()
        if not parts:
            return None
        return parts[0].lower(), parts[1:]

    async def handle_message(self, message: "discord.Message") -> bool:
        """Dispatch a chat message if it names a registered command.

        Unknown commands and non-command messages are ignored.

        Returns:
            True if a handler ran and completed.
        """
        parsed = self.parse(message.content)
        if parsed is None:
            return False
        name, args = parsed
        if name not in self._commands:
            return False
        return await self.execute(name, message, args)

    async def execute(
        self, name: str, message: "discord.Message", args: Iterable[str] = ()
    ) -> bool:
        """Run a registered command for a message's author.

        Checks permissions and the cooldown, claims the cooldown, then
        invokes the handler. A failing handler releases the claim; its
        error is logged and answered with a generic failure reply and
        never propagates.

        Args:
            name: Command name (case-insensitive).
            message: Message the command answers.
            args: Positional arguments.

        Returns:
            True if the handler ran and completed.
        """
        command = self.get(name)
        if command is None:
            return False

        user_id = message.author.id

        missing = self.missing_permissions(command, message)
        if missing:
            logger.info("command_permission_denied", command=command.name, user_id=user_id)
            await self._reply(
                message, PERMISSION_MESSAGE.format(permissions=", ".join(missing))
            )
            return False

        if self.ledger.is_on_cooldown(user_id, command.name, command.cooldown):
            logger.debug("command_on_cooldown", command=command.name, user_id=user_id)
            await self._reply(
                message, COOLDOWN_MESSAGE.format(seconds=format_seconds(command.cooldown))
            )
            return False

        # Claimed before the handler suspends so overlapping messages see it
        self.ledger.set_cooldown(user_id, command.name, command.cooldown)
        try:
            result = command.handler(message, list(args))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.ledger.release(user_id, command.name)
            logger.error(
                "command_error",
                command=command.name,
                user_id=user_id,
                error=str(e),
                exc_info=True,
            )
            await self._reply(message, ERROR_MESSAGE)
            return False

        logger.info("command_executed", command=command.name, user_id=user_id)
        return True

    @staticmethod
    def missing_permissions(command: Command, message: "discord.Message") -> List[str]:
        """Permission names the author lacks, sorted. Empty when allowed."""
        if not command.permissions:
            return []
        granted = getattr(message.author, "guild_permissions", None)
        if granted is None:
            return sorted(command.permissions)
        if getattr(granted, "administrator", False) is True:
            return []
        return sorted(p for p in command.permissions if getattr(granted, p, False) is not True)

    @staticmethod
    async def _reply(message: "discord.Message", content: str) -> None:
        try:
            await message.reply(content)
        except Exception as e:
            logger.warning("command_reply_failed", error=str(e))
