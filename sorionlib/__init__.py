"""SorionLib: command registries, event dispatch and message builders for Discord bots."""

__version__ = "0.1.7"

from .bot import DiscordBot
from .builders import ButtonStyle, ContainerBuilder, EmbedBuilder
from .commands import CommandGroup, CommandRegistry, InteractionKind, InteractionRegistry, SlashCommand
from .cooldowns import CooldownLedger
from .events import EventManager, EventMetrics, EventOptions
from .exceptions import (
    ComponentLimitError,
    ConfigurationError,
    DatabaseError,
    DeploymentError,
    ErrorCategory,
    EventLimitError,
    EventRegistrationError,
    HandlerTimeoutError,
    SorionError,
)
from .storage import create_storage
from .utils import delay, format_bytes, format_number, format_seconds, merge_options

__all__ = [
    "ButtonStyle",
    "CommandGroup",
    "CommandRegistry",
    "ComponentLimitError",
    "ConfigurationError",
    "ContainerBuilder",
    "CooldownLedger",
    "DatabaseError",
    "DeploymentError",
    "DiscordBot",
    "EmbedBuilder",
    "ErrorCategory",
    "EventLimitError",
    "EventManager",
    "EventMetrics",
    "EventOptions",
    "EventRegistrationError",
    "HandlerTimeoutError",
    "InteractionKind",
    "InteractionRegistry",
    "SlashCommand",
    "SorionError",
    "create_storage",
    "delay",
    "format_bytes",
    "format_number",
    "format_seconds",
    "merge_options",
    "__version__",
]
