"""Descriptors and records shared by the registry, loader and dispatcher."""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .context import PluginContext

TextHandler = Callable[..., Awaitable[Any]]
InteractionHandler = Callable[..., Awaitable[Any]]
EventHandler = Callable[..., Awaitable[Any]]

DEFAULT_COOLDOWN_SECONDS = 3


def _normalize_names(values: Iterable[str]) -> frozenset[str]:
    return frozenset(value.strip().lower() for value in values if value.strip())


@dataclass(frozen=True, slots=True)
class CommandDescriptor:
    name: str
    description: str = ""
    aliases: frozenset[str] = frozenset()
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS
    guild_only: bool = False
    owner_only: bool = False
    required_permissions: frozenset[str] = frozenset()
    invoke: TextHandler | None = None
    invoke_interaction: InteractionHandler | None = None
    options: tuple[dict[str, Any], ...] = ()
    owner: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", (self.name or "").strip().lower())
        object.__setattr__(self, "aliases", _normalize_names(self.aliases))
        object.__setattr__(
            self,
            "required_permissions",
            frozenset(p.strip().lower() for p in self.required_permissions),
        )
        object.__setattr__(self, "options", tuple(self.options))
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")

    @property
    def keys(self) -> frozenset[str]:
        """Every registry key this command occupies (name plus aliases)."""
        return frozenset({self.name}) | self.aliases

    @property
    def is_slash(self) -> bool:
        return self.invoke_interaction is not None


@dataclass(frozen=True, slots=True)
class EventDescriptor:
    event_name: str
    invoke: EventHandler | None = None
    once: bool = False
    owner: str | None = None

    def __post_init__(self) -> None:
        name = (self.event_name or "").strip()
        if name.startswith("on_"):
            name = name[3:]
        object.__setattr__(self, "event_name", name)


class PluginState(enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    ACTIVE = "active"
    UNLOADING = "unloading"


@dataclass(slots=True)
class PluginRecord:
    name: str
    version: str
    folder: str
    path: Path
    module_name: str
    module: ModuleType
    description: str = "No description provided"
    author: str = "Unknown"
    state: PluginState = PluginState.UNLOADED
    context: PluginContext | None = field(default=None, repr=False)

    def info(self) -> dict[str, str]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "author": self.author,
            "path": str(self.path),
        }


@runtime_checkable
class Plugin(Protocol):
    """Shape a plugin entry module must expose.

    Optional hooks: ``shutdown(ctx)``, ``handle_button(ctx, interaction,
    action, data)``, ``handle_select_menu(...)`` and ``handle_modal_submit(...)``.
    """

    name: str
    version: str

    def initialize(self, ctx: PluginContext) -> Any: ...

