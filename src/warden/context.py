"""Runtime containers handed to the dispatcher, loader and plugins."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from .cooldowns import CooldownTracker
from .loader import PluginLoader
from .logging import get_logger
from .model import CommandDescriptor, EventDescriptor
from .permissions import Capabilities, resolve_capabilities
from .pipeline import CommandPipeline
from .registry import EventSource, ModuleRegistry
from .settings import WardenSettings
from .storage import ScopedStore, SettingsStore

FRAMEWORK_OWNER = "warden"
PREFIX_KEY = "prefix"


class FrameworkContext:
    """Owns the registries and shared services for one bot instance."""

    def __init__(
        self,
        settings: WardenSettings,
        *,
        source: EventSource | None = None,
        store: SettingsStore | None = None,
        cooldowns: CooldownTracker | None = None,
        client: Any = None,
        plugins_dir: Path | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self._plugin_contexts: dict[str, PluginContext] = {}
        self.registry = ModuleRegistry(source, context=self)
        self.registry.context_resolver = self.plugin_context
        self.cooldowns = cooldowns if cooldowns is not None else CooldownTracker()
        self.store = store or SettingsStore(settings.state_path)
        self.pipeline = CommandPipeline(self.cooldowns)
        self.loader = PluginLoader(plugins_dir or settings.plugins_dir, self)
        self.started_at = time.monotonic()
        self.commands_changed_hook: Callable[[], Awaitable[Any]] | None = None

    @property
    def owner_ids(self) -> frozenset[int]:
        return self.settings.owner_ids

    def plugin_context(self, owner: str | None) -> PluginContext:
        name = owner or FRAMEWORK_OWNER
        ctx = self._plugin_contexts.get(name)
        if ctx is None:
            ctx = PluginContext(self, name)
            self._plugin_contexts[name] = ctx
        return ctx

    def discard_plugin_context(self, owner: str) -> None:
        self._plugin_contexts.pop(owner, None)

    def capabilities(self, user: Any, guild: Any | None) -> Capabilities:
        return resolve_capabilities(user, guild, owner_ids=self.owner_ids)

    async def prefix_for(self, guild_id: int | None) -> str:
        default = self.settings.default_prefix
        if guild_id is None:
            return default
        value = await self.store.get(FRAMEWORK_OWNER, PREFIX_KEY, guild_id=guild_id)
        if isinstance(value, str) and value:
            return value
        return default

    async def set_prefix(self, guild_id: int, prefix: str | None) -> None:
        if prefix is None or prefix == self.settings.default_prefix:
            await self.store.delete(FRAMEWORK_OWNER, PREFIX_KEY, guild_id=guild_id)
            return
        await self.store.set(FRAMEWORK_OWNER, PREFIX_KEY, prefix, guild_id=guild_id)

    async def notify_commands_changed(self) -> None:
        """Called after plugins are loaded or unloaded at runtime."""
        if self.commands_changed_hook is not None:
            await self.commands_changed_hook()

    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at


class PluginContext:
    """What a plugin sees: registration bound to its name, plus shared services."""

    def __init__(self, framework: FrameworkContext, owner: str) -> None:
        self.framework = framework
        self.owner = owner
        self.store = ScopedStore(framework.store, owner)
        self.logger = get_logger(f"warden.plugins.{owner}").bind(plugin=owner)

    @property
    def settings(self) -> WardenSettings:
        return self.framework.settings

    @property
    def registry(self) -> ModuleRegistry:
        return self.framework.registry

    @property
    def loader(self) -> PluginLoader:
        return self.framework.loader

    @property
    def client(self) -> Any:
        return self.framework.client

    def register_command(self, descriptor: CommandDescriptor) -> bool:
        return self.framework.registry.register_command(descriptor, self.owner)

    def register_event(self, descriptor: EventDescriptor) -> bool:
        return self.framework.registry.register_event(descriptor, self.owner)

    def is_owner(self, user_id: int) -> bool:
        return user_id in self.framework.owner_ids
