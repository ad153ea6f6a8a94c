"""Fluent embed builder.

Each call mutates the builder and returns it; ``build()`` produces a
frozen MessagePayload and resets the builder for the next embed.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

import discord
from pydantic import BaseModel, ConfigDict

from ..exceptions import ComponentLimitError

DEFAULT_COLOR = 0x0099FF
DEFAULT_FOOTER = "Powered by SorionLib"
MAX_FIELDS = 25

SUCCESS_COLOR = "#00ff00"
ERROR_COLOR = "#ff0000"
INFO_COLOR = "#0099ff"


def parse_color(color: Union[int, str]) -> int:
    """Accept ``0x00ff00``, ``"#00ff00"`` or ``"00ff00"``."""
    if isinstance(color, bool):
        raise ValueError(f"Invalid color: {color!r}")
    if isinstance(color, int):
        value = color
    elif isinstance(color, str):
        try:
            value = int(color.strip().lstrip("#"), 16)
        except ValueError:
            raise ValueError(f"Invalid color: {color!r}") from None
    else:
        raise ValueError(f"Invalid color: {color!r}")
    if not 0 <= value <= 0xFFFFFF:
        raise ValueError(f"Color out of range: {color!r}")
    return value


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class EmbedField(_Frozen):
    name: str
    value: str
    inline: bool = False


class EmbedAuthor(_Frozen):
    name: str
    icon_url: Optional[str] = None
    url: Optional[str] = None


class EmbedMedia(_Frozen):
    url: str


class EmbedFooter(_Frozen):
    text: str
    icon_url: Optional[str] = None


class Embed(_Frozen):
    """An immutable embed in Discord's JSON shape."""

    title: Optional[str] = None
    description: Optional[str] = None
    color: int = DEFAULT_COLOR
    fields: Tuple[EmbedField, ...] = ()
    author: Optional[EmbedAuthor] = None
    thumbnail: Optional[EmbedMedia] = None
    image: Optional[EmbedMedia] = None
    footer: Optional[EmbedFooter] = None
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude_none=True)
        if not data.get("fields"):
            data.pop("fields", None)
        return data

    def to_discord(self) -> discord.Embed:
        return discord.Embed.from_dict(self.to_dict())


class MessagePayload(_Frozen):
    """Keyword payload for a send call: ``{"embeds": [...]}``."""

    embeds: Tuple[Embed, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"embeds": [e.to_dict() for e in self.embeds]}

    def to_discord(self) -> Dict[str, List[discord.Embed]]:
        """Send kwargs for py-cord, e.g. ``channel.send(**payload.to_discord())``."""
        return {"embeds": [e.to_discord() for e in self.embeds]}


class EmbedBuilder:
    """Chainable embed construction.

    Example::

        payload = (
            EmbedBuilder()
            .title("User Information")
            .add_field("User ID", str(user.id))
            .color("#0099ff")
            .build()
        )
        await channel.send(**payload.to_discord())
    """

    def __init__(self):
        self.reset()

    def reset(self) -> "EmbedBuilder":
        self._data: Dict[str, Any] = {
            "color": DEFAULT_COLOR,
            "footer": EmbedFooter(text=DEFAULT_FOOTER),
        }
        self._fields: List[EmbedField] = []
        return self

    def title(self, text: str) -> "EmbedBuilder":
        self._data["title"] = text
        return self

    def description(self, text: str) -> "EmbedBuilder":
        self._data["description"] = text
        return self

    def color(self, color: Union[int, str]) -> "EmbedBuilder":
        self._data["color"] = parse_color(color)
        return self

    def add_field(self, name: str, value: str, inline: bool = False) -> "EmbedBuilder":
        if len(self._fields) >= MAX_FIELDS:
            raise ComponentLimitError(
                f"An embed holds at most {MAX_FIELDS} fields", limit=MAX_FIELDS
            )
        self._fields.append(EmbedField(name=name, value=str(value), inline=inline))
        return self

    def author(self, name: str, icon_url: Optional[str] = None, url: Optional[str] = None) -> "EmbedBuilder":
        self._data["author"] = EmbedAuthor(name=name, icon_url=icon_url, url=url)
        return self

    def thumbnail(self, url: str) -> "EmbedBuilder":
        self._data["thumbnail"] = EmbedMedia(url=url)
        return self

    def image(self, url: str) -> "EmbedBuilder":
        self._data["image"] = EmbedMedia(url=url)
        return self

    def footer(self, text: str, icon_url: Optional[str] = None) -> "EmbedBuilder":
        self._data["footer"] = EmbedFooter(text=text, icon_url=icon_url)
        return self

    def timestamp(self, when: Optional[datetime] = None) -> "EmbedBuilder":
        """Stamp the embed; defaults to the current UTC time."""
        if when is None:
            when = datetime.now(timezone.utc)
        self._data["timestamp"] = when.isoformat()
        return self

    # Presets

    def success(self, message: str) -> "EmbedBuilder":
        return self.reset().title("✅ Success").color(SUCCESS_COLOR).description(message)

    def error(self, message: str) -> "EmbedBuilder":
        return self.reset().title("❌ Error").color(ERROR_COLOR).description(message)

    def info(self, message: str) -> "EmbedBuilder":
        return self.reset().title("ℹ️ Information").color(INFO_COLOR).description(message)

    def build(self) -> MessagePayload:
        """Freeze the embed into a payload and reset the builder."""
        embed = Embed(fields=tuple(self._fields), **self._data)
        self.reset()
        return MessagePayload(embeds=(embed,))
