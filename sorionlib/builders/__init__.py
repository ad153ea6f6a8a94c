"""Fluent builders for embeds and layout containers."""

from .container import (
    ActionRow,
    ActionRowBuilder,
    Button,
    ButtonStyle,
    Container,
    ContainerBuilder,
    Section,
    SectionBuilder,
    SelectMenu,
    Separator,
    TextDisplay,
    Thumbnail,
)
from .embed import Embed, EmbedBuilder, MessagePayload, parse_color

__all__ = [
    "ActionRow",
    "ActionRowBuilder",
    "Button",
    "ButtonStyle",
    "Container",
    "ContainerBuilder",
    "Embed",
    "EmbedBuilder",
    "MessagePayload",
    "Section",
    "SectionBuilder",
    "SelectMenu",
    "Separator",
    "TextDisplay",
    "Thumbnail",
    "parse_color",
]
