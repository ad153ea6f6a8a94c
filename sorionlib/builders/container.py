"""Builders for Discord's layout components (components v2).

A container holds text displays, separators, action rows and
sections. Every component, nested ones included, counts toward the
container's ceiling; the call that would exceed it raises
ComponentLimitError and leaves the builder untouched.
"""

from enum import IntEnum
from typing import Any, Callable, Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..exceptions import ComponentLimitError
from .embed import parse_color

DEFAULT_MAX_COMPONENTS = 40
MAX_ROW_BUTTONS = 5
MAX_SECTION_TEXTS = 3

# Message flag that switches a message to layout components
IS_COMPONENTS_V2 = 1 << 15

SELECT_TYPES = {"string": 3, "user": 5, "role": 6, "mentionable": 7, "channel": 8}


class ButtonStyle(IntEnum):
    PRIMARY = 1
    SECONDARY = 2
    SUCCESS = 3
    DANGER = 4
    LINK = 5

    @classmethod
    def coerce(cls, style: Union[int, str, "ButtonStyle"]) -> "ButtonStyle":
        if isinstance(style, str):
            try:
                return cls[style.upper()]
            except KeyError:
                raise ValueError(f"Unknown button style: {style!r}") from None
        return cls(style)


class Component(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def count(self) -> int:
        return 1

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class TextDisplay(Component):
    type: Literal[10] = 10
    content: str = Field(..., min_length=1)


class Separator(Component):
    type: Literal[14] = 14
    divider: bool = True
    spacing: Literal[1, 2] = 1


class Emoji(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    id: Optional[int] = None


class Button(Component):
    type: Literal[2] = 2
    style: ButtonStyle = ButtonStyle.PRIMARY
    label: Optional[str] = None
    custom_id: Optional[str] = None
    url: Optional[str] = None
    emoji: Optional[Emoji] = None
    disabled: bool = False

    @model_validator(mode="after")
    def _check_target(self) -> "Button":
        if self.style == ButtonStyle.LINK:
            if not self.url or self.custom_id:
                raise ValueError("link buttons need a url and no custom_id")
        elif not self.custom_id or self.url:
            raise ValueError("non-link buttons need a custom_id and no url")
        if self.label is None and self.emoji is None:
            raise ValueError("buttons need a label or an emoji")
        return self


class SelectOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: str
    description: Optional[str] = None
    default: bool = False


class SelectMenu(Component):
    type: Literal[3, 5, 6, 7, 8] = 3
    custom_id: str = Field(..., min_length=1)
    placeholder: Optional[str] = None
    options: Optional[Tuple[SelectOption, ...]] = None
    min_values: int = Field(default=1, ge=0, le=25)
    max_values: int = Field(default=1, ge=1, le=25)
    disabled: bool = False

    @model_validator(mode="after")
    def _check_options(self) -> "SelectMenu":
        if self.type == 3 and not self.options:
            raise ValueError("string select menus need at least one option")
        if self.type != 3 and self.options:
            raise ValueError("only string select menus take options")
        return self


class ActionRow(Component):
    type: Literal[1] = 1
    components: Tuple[Union[Button, SelectMenu], ...]

    @property
    def count(self) -> int:
        return 1 + len(self.components)


class Thumbnail(Component):
    type: Literal[11] = 11
    media: Dict[str, str]
    description: Optional[str] = None


class Section(Component):
    type: Literal[9] = 9
    components: Tuple[TextDisplay, ...]
    accessory: Union[Button, Thumbnail]

    @property
    def count(self) -> int:
        return 1 + len(self.components) + 1


LayoutComponent = Union[TextDisplay, Separator, ActionRow, Section]


class Container(Component):
    """Immutable container payload."""

    type: Literal[17] = 17
    components: Tuple[LayoutComponent, ...] = ()
    accent_color: Optional[int] = None
    spoiler: bool = False

    @property
    def count(self) -> int:
        """Components inside the container, nested ones included."""
        return sum(c.count for c in self.components)

    def to_message(self) -> Dict[str, Any]:
        """Message body carrying this container."""
        return {"components": [self.to_dict()], "flags": IS_COMPONENTS_V2}


def make_button(
    custom_id: Optional[str] = None,
    label: Optional[str] = None,
    style: Union[int, str, ButtonStyle] = ButtonStyle.PRIMARY,
    *,
    emoji: Optional[str] = None,
    url: Optional[str] = None,
    disabled: bool = False,
) -> Button:
    return Button(
        custom_id=custom_id,
        label=label,
        style=ButtonStyle.coerce(style),
        emoji=Emoji(name=emoji) if emoji else None,
        url=url,
        disabled=disabled,
    )


class ActionRowBuilder:
    """Collects up to five buttons, or a single select menu."""

    def __init__(self):
        self._components: List[Union[Button, SelectMenu]] = []

    def add_button(self, custom_id: Optional[str] = None, label: Optional[str] = None,
                   style: Union[int, str, ButtonStyle] = ButtonStyle.PRIMARY, **kwargs: Any) -> "ActionRowBuilder":
        if any(isinstance(c, SelectMenu) for c in self._components):
            raise ComponentLimitError("A row with a select menu holds nothing else", limit=1)
        if len(self._components) >= MAX_ROW_BUTTONS:
            raise ComponentLimitError(
                f"An action row holds at most {MAX_ROW_BUTTONS} buttons", limit=MAX_ROW_BUTTONS
            )
        self._components.append(make_button(custom_id, label, style, **kwargs))
        return self

    def add_select_menu(
        self,
        custom_id: str,
        options: Iterable[Union[SelectOption, Mapping[str, Any]]] = (),
        *,
        kind: str = "string",
        placeholder: Optional[str] = None,
        min_values: int = 1,
        max_values: int = 1,
        disabled: bool = False,
    ) -> "ActionRowBuilder":
        if self._components:
            raise ComponentLimitError("A select menu needs a row of its own", limit=1)
        if kind not in SELECT_TYPES:
            raise ValueError(f"Unknown select menu kind: {kind!r}")
        parsed = tuple(
            o if isinstance(o, SelectOption) else SelectOption(**o) for o in options
        )
        self._components.append(
            SelectMenu(
                type=SELECT_TYPES[kind],
                custom_id=custom_id,
                placeholder=placeholder,
                options=parsed or None,
                min_values=min_values,
                max_values=max_values,
                disabled=disabled,
            )
        )
        return self

    def build(self) -> ActionRow:
        if not self._components:
            raise ValueError("An action row needs at least one component")
        return ActionRow(components=tuple(self._components))


class SectionBuilder:
    """One to three text displays plus a button or thumbnail accessory."""

    def __init__(self):
        self._texts: List[TextDisplay] = []
        self._accessory: Optional[Union[Button, Thumbnail]] = None

    def add_text(self, content: str) -> "SectionBuilder":
        if len(self._texts) >= MAX_SECTION_TEXTS:
            raise ComponentLimitError(
                f"A section holds at most {MAX_SECTION_TEXTS} text displays",
                limit=MAX_SECTION_TEXTS,
            )
        self._texts.append(TextDisplay(content=content))
        return self

    def button_accessory(self, custom_id: Optional[str] = None, label: Optional[str] = None,
                         style: Union[int, str, ButtonStyle] = ButtonStyle.PRIMARY, **kwargs: Any) -> "SectionBuilder":
        self._accessory = make_button(custom_id, label, style, **kwargs)
        return self

    def thumbnail_accessory(self, url: str, description: Optional[str] = None) -> "SectionBuilder":
        self._accessory = Thumbnail(media={"url": url}, description=description)
        return self

    def build(self) -> Section:
        if not self._texts:
            raise ValueError("A section needs at least one text display")
        if self._accessory is None:
            raise ValueError("A section needs an accessory")
        return Section(components=tuple(self._texts), accessory=self._accessory)


class ContainerBuilder:
    """Chainable container construction with a component ceiling.

    Args:
        max_components: Ceiling on components inside the container.
    """

    def __init__(self, max_components: int = DEFAULT_MAX_COMPONENTS):
        if max_components < 1:
            raise ValueError("max_components must be >= 1")
        self.max_components = max_components
        self._components: List[LayoutComponent] = []
        self._accent_color: Optional[int] = None
        self._spoiler = False

    @classmethod
    def create(cls, max_components: int = DEFAULT_MAX_COMPONENTS) -> "ContainerBuilder":
        return cls(max_components)

    @property
    def count(self) -> int:
        return sum(c.count for c in self._components)

    def _add(self, *components: LayoutComponent) -> "ContainerBuilder":
        added = sum(c.count for c in components)
        if self.count + added > self.max_components:
            raise ComponentLimitError(
                f"Container would hold {self.count + added} components "
                f"(limit {self.max_components})",
                limit=self.max_components,
            )
        self._components.extend(components)
        return self

    def accent_color(self, color: Union[int, str]) -> "ContainerBuilder":
        self._accent_color = parse_color(color)
        return self

    def spoiler(self, value: bool = True) -> "ContainerBuilder":
        self._spoiler = value
        return self

    def add_text_display(self, content: str) -> "ContainerBuilder":
        return self._add(TextDisplay(content=content))

    def add_text_displays(self, *contents: str) -> "ContainerBuilder":
        return self._add(*(TextDisplay(content=c) for c in contents))

    def add_separator(self, divider: bool = True, spacing: int = 1) -> "ContainerBuilder":
        return self._add(Separator(divider=divider, spacing=spacing))

    def add_action_row(self, callback: Callable[[ActionRowBuilder], Any]) -> "ContainerBuilder":
        row = ActionRowBuilder()
        callback(row)
        return self._add(row.build())

    def add_section(self, callback: Callable[[SectionBuilder], Any]) -> "ContainerBuilder":
        section = SectionBuilder()
        callback(section)
        return self._add(section.build())

    def add_quick_section(self, text: str, button: Mapping[str, Any]) -> "ContainerBuilder":
        """Section with one text display and a button accessory.

        ``button`` keys: ``id``, ``label``, ``style`` and optionally
        ``emoji``, ``url``, ``disabled``.
        """
        section = SectionBuilder().add_text(text).button_accessory(
            button.get("id"),
            button.get("label"),
            button.get("style", ButtonStyle.PRIMARY),
            emoji=button.get("emoji"),
            url=button.get("url"),
            disabled=bool(button.get("disabled", False)),
        )
        return self._add(section.build())

    def build(self) -> Container:
        """Freeze the current components into a Container."""
        return Container(
            components=tuple(self._components),
            accent_color=self._accent_color,
            spoiler=self._spoiler,
        )
