"""Interaction registry for slash commands and message components.

Inbound interactions are classified into one of four kinds (slash
command, button, select menu, modal) and routed by exact key to the
handler table for that kind. Also deploys registered slash command
definitions to Discord once the client has logged in.

Key classes:
    InteractionKind: The four routable interaction kinds.
    SlashCommand: Validated slash command definition.
    InteractionRegistry: Per-kind handler tables plus deployment.
"""

from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import discord
import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import ConfigurationError, DeploymentError

logger = structlog.get_logger("sorionlib.interactions")

InteractionHandler = Callable[["discord.Interaction"], Any]

ERROR_MESSAGE = "❌ There was an error executing this interaction!"

# Discord component type codes
_BUTTON_TYPE = 2
_SELECT_TYPES = frozenset({3, 5, 6, 7, 8})


class InteractionKind(str, Enum):
    """Routable interaction kinds, one handler table each."""
    COMMAND = "command"
    BUTTON = "button"
    SELECT_MENU = "select_menu"
    MODAL = "modal"


def classify(interaction: "discord.Interaction") -> Optional[InteractionKind]:
    """Map an inbound interaction to its kind, or None if unroutable."""
    data = interaction.data or {}
    if interaction.type == discord.InteractionType.application_command:
        return InteractionKind.COMMAND
    if interaction.type == discord.InteractionType.modal_submit:
        return InteractionKind.MODAL
    if interaction.type == discord.InteractionType.component:
        component_type = data.get("component_type")
        if component_type == _BUTTON_TYPE:
            return InteractionKind.BUTTON
        if component_type in _SELECT_TYPES:
            return InteractionKind.SELECT_MENU
    return None


def routing_key(kind: InteractionKind, interaction: "discord.Interaction") -> Optional[str]:
    """Command name for slash commands, custom_id for everything else."""
    data = interaction.data or {}
    if kind is InteractionKind.COMMAND:
        return data.get("name")
    return data.get("custom_id")


class SlashCommand(BaseModel):
    """A structured command definition as Discord expects it."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=32)
    description: str = Field(default="No description", min_length=1, max_length=100)
    options: List[Dict[str, Any]] = Field(default_factory=list)
    type: int = 1  # CHAT_INPUT

    @field_validator("name")
    @classmethod
    def _lowercase_name(cls, value: str) -> str:
        if value != value.lower() or any(c.isspace() for c in value):
            raise ValueError("slash command names must be lowercase without spaces")
        return value

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for the bulk-overwrite commands endpoint."""
        return self.model_dump()


class InteractionRegistry:
    """Handler tables for slash commands, buttons, select menus and modals.

    Registration methods return the registry so calls can be chained.
    Registering the same key twice replaces the earlier handler; the
    replacement is logged so accidental collisions show up.
    """

    def __init__(self):
        self._handlers: Dict[InteractionKind, Dict[str, InteractionHandler]] = {
            kind: {} for kind in InteractionKind
        }
        self._definitions: Dict[str, SlashCommand] = {}

    # --- Registration ---

    def _store(self, kind: InteractionKind, key: str, handler: InteractionHandler) -> None:
        if not isinstance(key, str) or not key:
            raise ConfigurationError(f"Invalid {kind.value} key: {key!r}", setting_name="custom_id")
        if not callable(handler):
            raise ConfigurationError(f"Handler for {key!r} is not callable", setting_name="handler")
        table = self._handlers[kind]
        if key in table:
            logger.warning("interaction_handler_replaced", kind=kind.value, key=key)
        table[key] = handler

    def register(
        self,
        definition: Union[SlashCommand, Mapping[str, Any]],
        handler: InteractionHandler,
    ) -> "InteractionRegistry":
        """Register a slash command definition and its handler."""
        if not isinstance(definition, SlashCommand):
            definition = SlashCommand.model_validate(dict(definition))
        self._store(InteractionKind.COMMAND, definition.name, handler)
        self._definitions[definition.name] = definition
        return self

    def button(self, custom_id: str, handler: InteractionHandler) -> "InteractionRegistry":
        """Register a button handler by custom_id."""
        self._store(InteractionKind.BUTTON, custom_id, handler)
        return self

    def select_menu(self, custom_id: str, handler: InteractionHandler) -> "InteractionRegistry":
        """Register a select menu handler by custom_id."""
        self._store(InteractionKind.SELECT_MENU, custom_id, handler)
        return self

    def modal(self, custom_id: str, handler: InteractionHandler) -> "InteractionRegistry":
        """Register a modal submit handler by custom_id."""
        self._store(InteractionKind.MODAL, custom_id, handler)
        return self

    def get(self, kind: InteractionKind, key: str) -> Optional[InteractionHandler]:
        return self._handlers[kind].get(key)

    @property
    def definitions(self) -> List[Dict[str, Any]]:
        """Payloads for every registered slash command."""
        return [d.to_payload() for d in self._definitions.values()]

    # --- Dispatch ---

    async def handle_interaction(self, interaction: "discord.Interaction") -> bool:
        """Route an interaction to its handler.

        Unknown kinds and keys are ignored. Handler errors are logged
        and reported back to the user as an ephemeral message.

        Returns:
            True if a handler ran and completed.
        """
        kind = classify(interaction)
        if kind is None:
            return False
        key = routing_key(kind, interaction)
        handler = self._handlers[kind].get(key) if key else None
        if handler is None:
            return False

        try:
            result = handler(interaction)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                "interaction_error",
                kind=kind.value,
                key=key,
                error=str(e),
                exc_info=True,
            )
            await self._report_error(interaction)
            return False

        logger.debug("interaction_handled", kind=kind.value, key=key)
        return True

    @staticmethod
    async def _report_error(interaction: "discord.Interaction") -> None:
        # An acknowledged interaction only accepts follow-ups
        try:
            if interaction.response.is_done():
                await interaction.followup.send(ERROR_MESSAGE, ephemeral=True)
            else:
                await interaction.response.send_message(ERROR_MESSAGE, ephemeral=True)
        except Exception as e:
            logger.warning("interaction_error_report_failed", error=str(e))

    # --- Deployment ---

    async def deploy(self, client: "discord.Client", guild_id: Optional[int] = None) -> int:
        """Push slash command definitions to Discord.

        Guild-scoped deployment propagates immediately; global
        deployment can take up to an hour. Failures are logged and
        swallowed.

        Args:
            client: Logged-in client.
            guild_id: Target guild, or None for global commands.

        Returns:
            Number of commands deployed (0 on failure).
        """
        payload = self.definitions
        try:
            application_id = _application_id(client)
            if application_id is None:
                raise DeploymentError("Client identity not available")
            logger.info(
                "slash_commands_deploying",
                count=len(payload),
                scope="guild" if guild_id else "global",
                guild_id=guild_id,
            )
            if guild_id:
                await client.http.bulk_upsert_guild_commands(application_id, guild_id, payload)
            else:
                await client.http.bulk_upsert_global_commands(application_id, payload)
        except Exception as e:
            logger.error("slash_commands_deploy_failed", error=str(e), exc_info=True)
            return 0

        logger.info("slash_commands_deployed", count=len(payload))
        return len(payload)

    async def deploy_when_ready(
        self,
        client: "discord.Client",
        guild_id: Optional[int] = None,
        retry_delay: float = 5.0,
        max_attempts: int = 12,
    ) -> int:
        """Deploy once the client knows its own identity.

        Retries on a fixed delay while ``client.user`` is unavailable.
        """
        for attempt in range(1, max_attempts + 1):
            if _application_id(client) is not None:
                return await self.deploy(client, guild_id)
            logger.warning(
                "slash_commands_client_not_ready",
                attempt=attempt,
                retry_delay=retry_delay,
            )
            if attempt < max_attempts:
                await asyncio.sleep(retry_delay)

        logger.error("slash_commands_deploy_gave_up", attempts=max_attempts)
        return 0


def _application_id(client: "discord.Client") -> Optional[int]:
    application_id = getattr(client, "application_id", None)
    if application_id:
        return application_id
    user = getattr(client, "user", None)
    return user.id if user is not None else None
