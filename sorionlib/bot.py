"""Discord bot facade for SorionLib.

Owns one instance of every registry (cooldowns, prefix commands,
interactions, events) and wires them to a py-cord client. Platform
events enter through the event dispatch core, which times them and
hands messages and interactions to the matching registry.

Key classes:
    DiscordBot: Registration surface and client lifecycle.
"""

import asyncio
import inspect
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

import discord
import structlog

from .builders import ContainerBuilder, EmbedBuilder
from .builders.container import DEFAULT_MAX_COMPONENTS
from .commands import CommandRegistry, InteractionRegistry, SlashCommand
from .cooldowns import CooldownLedger
from .events import CHANNELS, EventManager, EventRegistration
from .exceptions import ConfigurationError
from .storage import StorageBackend, create_storage

logger = structlog.get_logger("sorionlib.bot")

CORE_CATEGORY = "core"


def log_task_exception(task: asyncio.Task) -> None:
    """Done-callback that logs exceptions from fire-and-forget tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("background_task_error", task=task.get_name(), error=str(exc))


class DiscordBot:
    """Discord bot with prefix commands, interactions and event dispatch.

    Configuration comes from keyword arguments first, then from
    ``config`` (a Config), then defaults.

    Args:
        token: Bot token. May also be passed to ``login()``.
        prefix: Prefix for text commands.
        config: Optional Config supplying defaults for everything.
        guild_id: Guild for slash command deployment; None is global.
        storage: Storage backend connected on login.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        prefix: Optional[str] = None,
        config=None,
        guild_id: Optional[int] = None,
        storage: Optional[StorageBackend] = None,
    ):
        self.config = config
        self.token = token or (config.discord_token if config is not None else None)
        self.prefix = prefix or (config.prefix if config is not None else "!")
        self.guild_id = guild_id if guild_id is not None else (
            config.guild_id if config is not None else None
        )
        self.deploy_retry_delay = config.deploy_retry_delay if config is not None else 5.0
        self.max_container_components = (
            config.max_container_components if config is not None else DEFAULT_MAX_COMPONENTS
        )

        if storage is None and config is not None and config.storage_type is not None:
            storage = create_storage(config.storage_type, path=config.storage_path)
        self.storage = storage

        self.client: Optional[discord.Client] = None
        self.cooldowns = CooldownLedger()
        self.commands = CommandRegistry(self.cooldowns, self.prefix)
        self.interactions = InteractionRegistry()
        if config is not None:
            self.events = EventManager(
                max_events=config.max_events,
                default_timeout_ms=config.default_event_timeout_ms,
                metrics_retention_hours=config.metrics_retention_hours,
                metrics_sweep_interval=config.metrics_sweep_interval,
                metrics_window=config.metrics_window,
            )
        else:
            self.events = EventManager()

        self._ready_callbacks: List[Callable[..., Any]] = []
        self._deploy_task: Optional[asyncio.Task] = None
        self._register_core_events()

    def _register_core_events(self) -> None:
        self.events.register_event("ready", self._on_ready, category=CORE_CATEGORY, priority=100)
        self.events.register_event("message", self._on_message, category=CORE_CATEGORY, priority=100)
        self.events.register_event(
            "interaction", self._on_interaction, category=CORE_CATEGORY, priority=100
        )

    # ------------------------------------------------------------------
    # Platform event handlers
    # ------------------------------------------------------------------

    async def _on_ready(self) -> None:
        user = self.user
        logger.info("bot_ready", user=str(user) if user else None)

        if self.interactions.definitions and self._deploy_task is None:
            self._deploy_task = asyncio.create_task(
                self.interactions.deploy_when_ready(
                    self.client, self.guild_id, retry_delay=self.deploy_retry_delay
                ),
                name="sorionlib-deploy-commands",
            )
            self._deploy_task.add_done_callback(log_task_exception)

        for callback in list(self._ready_callbacks):
            result = callback(self)
            if inspect.isawaitable(result):
                await result

    async def _on_message(self, message: "discord.Message") -> None:
        if message.author.bot:
            return
        await self.commands.handle_message(message)

    async def _on_interaction(self, interaction: "discord.Interaction") -> None:
        await self.interactions.handle_interaction(interaction)

    # ------------------------------------------------------------------
    # Registration surface
    # ------------------------------------------------------------------

    def command(
        self,
        name: str,
        handler: Optional[Callable[..., Any]] = None,
        *,
        cooldown: int = 0,
        permissions: Iterable[str] = (),
        description: str = "",
    ):
        """Register a prefix command.

        Works as a call (``bot.command("ping", handler)``, returns the
        bot for chaining) or as a decorator (``@bot.command("ping")``).
        """
        def _register(func):
            self.commands.register(
                name, func, cooldown=cooldown, permissions=permissions, description=description
            )
            return func

        if handler is None:
            return _register
        _register(handler)
        return self

    def slash(self, definition: Union[SlashCommand, Mapping[str, Any]], handler: Optional[Callable[..., Any]] = None):
        """Register a slash command (call or decorator form)."""
        def _register(func):
            self.interactions.register(definition, func)
            return func

        if handler is None:
            return _register
        _register(handler)
        return self

    def button(self, custom_id: str, handler: Optional[Callable[..., Any]] = None):
        """Register a button handler (call or decorator form)."""
        return self._component(self.interactions.button, custom_id, handler)

    def select_menu(self, custom_id: str, handler: Optional[Callable[..., Any]] = None):
        """Register a select menu handler (call or decorator form)."""
        return self._component(self.interactions.select_menu, custom_id, handler)

    def modal(self, custom_id: str, handler: Optional[Callable[..., Any]] = None):
        """Register a modal submit handler (call or decorator form)."""
        return self._component(self.interactions.modal, custom_id, handler)

    def _component(self, register, custom_id, handler):
        def _register(func):
            register(custom_id, func)
            return func

        if handler is None:
            return _register
        _register(handler)
        return self

    def on(self, event: str, callback: Callable[..., Any], **options: Any) -> "DiscordBot":
        """Subscribe to an event.

        ``"ready"`` callbacks receive the bot once the client is
        connected. ``"error"`` and ``"event_executed"`` observe the
        dispatch core. Any other name registers an event handler.
        """
        if event == "ready":
            self._ready_callbacks.append(callback)
        elif event in CHANNELS:
            self.events.on(event, callback)
        else:
            self.events.register_event(event, callback, **options)
        return self

    def register_event(self, name: str, handler: Callable[..., Any], **options: Any) -> EventRegistration:
        return self.events.register_event(name, handler, **options)

    def remove_event(self, name: str) -> bool:
        return self.events.remove_event(name)

    def remove_category(self, category: str) -> int:
        return self.events.remove_category(category)

    def add_middleware(self, name: str, *, before=None, after=None):
        return self.events.add_middleware(name, before=before, after=after)

    def get_metrics(self, name: Optional[str] = None):
        return self.events.get_metrics(name)

    async def emit(self, name: str, *args: Any) -> Any:
        return await self.events.emit(name, *args)

    async def execute_command(self, name: str, message: "discord.Message", args: Iterable[str] = ()) -> bool:
        """Run a prefix command programmatically for ``message``'s author."""
        return await self.commands.execute(name, message, args)

    # ------------------------------------------------------------------
    # Builder factories
    # ------------------------------------------------------------------

    def embed(self) -> EmbedBuilder:
        return EmbedBuilder()

    def container(self) -> ContainerBuilder:
        return ContainerBuilder(self.max_container_components)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def create_client() -> discord.Client:
        """Client with guild, guild message and message content intents."""
        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = True
        return discord.Client(intents=intents)

    @property
    def user(self) -> Optional["discord.ClientUser"]:
        return self.client.user if self.client is not None else None

    def initialize(self) -> None:
        """Start background work owned by the dispatch core."""
        self.events.initialize()

    async def login(self, token: Optional[str] = None) -> "DiscordBot":
        """Authenticate with Discord.

        Connects storage first (its errors propagate), then creates
        the client, subscribes registered events and logs in.

        Raises:
            ConfigurationError: No token given or configured.
        """
        token = token or self.token
        if not token:
            raise ConfigurationError("No Discord token provided", setting_name="discord.token")
        self.token = token

        if self.storage is not None and not self.storage.connected:
            await self.storage.connect()

        if self.client is None:
            self.client = self.create_client()
        self.events.bind(self.client)
        self.initialize()

        await self.client.login(token)
        logger.info("bot_logged_in", prefix=self.prefix, guild_id=self.guild_id)
        return self

    async def start(self, token: Optional[str] = None) -> None:
        """Log in and run the gateway connection until closed."""
        await self.login(token)
        await self.client.connect()

    async def destroy(self) -> None:
        """Tear down events, timers, the client connection and storage."""
        if self._deploy_task is not None and not self._deploy_task.done():
            self._deploy_task.cancel()
        self._deploy_task = None
        self.events.destroy()
        self.cooldowns.clear()
        if self.client is not None and not self.client.is_closed():
            await self.client.close()
        if self.storage is not None and self.storage.connected:
            await self.storage.close()
        logger.info("bot_destroyed")
