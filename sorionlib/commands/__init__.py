"""Command and interaction registries for SorionLib.

Provides the prefix CommandRegistry (with CommandGroup for bundling
handlers) and the InteractionRegistry for slash commands, buttons,
select menus and modals.
"""

from .base import Command, CommandGroup, CommandRegistry
from .interactions import InteractionKind, InteractionRegistry, SlashCommand, classify

__all__ = [
    "Command",
    "CommandGroup",
    "CommandRegistry",
    "InteractionKind",
    "InteractionRegistry",
    "SlashCommand",
    "classify",
]
