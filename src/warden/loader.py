"""Discover, import, initialize and tear down plugin packages."""

from __future__ import annotations

import importlib.util
import inspect
import re
import sys
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any

from .errors import PluginError, PluginInvalidError, PluginLoadError
from .logging import get_logger
from .model import PluginRecord, PluginState

if TYPE_CHECKING:
    from .context import FrameworkContext

logger = get_logger(__name__)

ENTRY_MODULE = "__init__.py"
MODULE_PREFIX = "warden_plugin_"
RESERVED_NAMES = frozenset({"warden"})
OPTIONAL_HOOKS = (
    "shutdown",
    "handle_button",
    "handle_select_menu",
    "handle_modal_submit",
)

_UNSAFE_CHARS = re.compile(r"[^0-9a-zA-Z_]")


def _module_name(folder: str) -> str:
    return MODULE_PREFIX + _UNSAFE_CHARS.sub("_", folder)


def _evict_modules(module_name: str) -> None:
    prefix = module_name + "."
    for key in [k for k in sys.modules if k == module_name or k.startswith(prefix)]:
        del sys.modules[key]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _validate_module(folder: str, module: ModuleType) -> tuple[str, str]:
    name = getattr(module, "name", None)
    if not isinstance(name, str) or not name.strip():
        raise PluginInvalidError(folder, f"Plugin {folder!r} is missing a `name`")
    version = getattr(module, "version", None)
    if not isinstance(version, str) or not version.strip():
        raise PluginInvalidError(folder, f"Plugin {folder!r} is missing a `version`")
    if not callable(getattr(module, "initialize", None)):
        raise PluginInvalidError(
            folder, f"Plugin {folder!r} does not define `initialize`"
        )
    for hook in OPTIONAL_HOOKS:
        value = getattr(module, hook, None)
        if value is not None and not callable(value):
            raise PluginInvalidError(
                folder, f"Plugin {folder!r} has a non-callable `{hook}`"
            )
    name = name.strip()
    if name in RESERVED_NAMES:
        raise PluginInvalidError(folder, f"Plugin name {name!r} is reserved")
    return name, version.strip()


def discover_plugins(plugins_dir: Path) -> list[str]:
    """Plugin folder names, skipping hidden and dunder directories."""
    if not plugins_dir.is_dir():
        return []
    folders = []
    for entry in plugins_dir.iterdir():
        if not entry.is_dir():
            continue
        if entry.name.startswith((".", "_")):
            continue
        folders.append(entry.name)
    return sorted(folders)


class PluginLoader:
    def __init__(self, plugins_dir: Path, ctx: FrameworkContext) -> None:
        self.plugins_dir = Path(plugins_dir)
        self._ctx = ctx
        self._records: dict[str, PluginRecord] = {}

    def discover(self) -> list[str]:
        return discover_plugins(self.plugins_dir)

    async def load_all(self) -> list[str]:
        if not self.plugins_dir.exists():
            logger.warning("plugins.dir_missing", path=str(self.plugins_dir))
            self.plugins_dir.mkdir(parents=True, exist_ok=True)
            return []
        loaded = []
        for folder in self.discover():
            if await self.load_one(folder):
                record = self._find_by_folder(folder)
                if record is not None:
                    loaded.append(record.name)
        logger.info("plugins.loaded", count=len(loaded), plugins=loaded)
        return loaded

    async def load_one(self, folder: str) -> bool:
        try:
            await self.load_one_or_raise(folder)
        except PluginError as exc:
            logger.error(
                "plugin.load_failed",
                folder=folder,
                plugin=exc.plugin,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return False
        return True

    async def load_one_or_raise(self, folder: str) -> PluginRecord:
        path = self.plugins_dir / folder
        entry = path / ENTRY_MODULE
        if not entry.is_file():
            raise PluginLoadError(folder, f"Plugin {folder!r} has no {ENTRY_MODULE}")

        module_name = _module_name(folder)
        _evict_modules(module_name)
        module = self._import(folder, module_name, entry, path)

        try:
            name, version = _validate_module(folder, module)
        except PluginInvalidError:
            _evict_modules(module_name)
            raise

        if name in self._records:
            logger.warning("plugin.replacing", plugin=name, folder=folder)
            await self.unload(name)
            # unload evicts by the old record's module name; the fresh import
            # is still needed
            sys.modules[module_name] = module

        record = PluginRecord(
            name=name,
            version=version,
            folder=folder,
            path=path,
            module_name=module_name,
            module=module,
            description=getattr(module, "description", None)
            or "No description provided",
            author=getattr(module, "author", None) or "Unknown",
            state=PluginState.LOADING,
        )
        plugin_ctx = self._ctx.plugin_context(name)
        record.context = plugin_ctx
        try:
            await _maybe_await(module.initialize(plugin_ctx))
        except Exception as exc:
            removed = self._ctx.registry.unregister_owner(name)
            self._ctx.discard_plugin_context(name)
            _evict_modules(module_name)
            record.state = PluginState.UNLOADED
            logger.debug(
                "plugin.rolled_back",
                plugin=name,
                commands_removed=removed.commands_removed,
                events_removed=removed.events_removed,
            )
            raise PluginLoadError(
                name, f"Plugin {name!r} failed to initialize: {exc}"
            ) from exc

        record.state = PluginState.ACTIVE
        self._records[name] = record
        logger.info(
            "plugin.loaded",
            plugin=name,
            version=version,
            commands=len(self._ctx.registry.commands_for(name)),
        )
        return record

    def _import(self, folder: str, module_name: str, entry: Path, path: Path) -> ModuleType:
        spec = importlib.util.spec_from_file_location(
            module_name, entry, submodule_search_locations=[str(path)]
        )
        if spec is None or spec.loader is None:
            raise PluginLoadError(folder, f"Cannot import plugin {folder!r}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            _evict_modules(module_name)
            raise PluginLoadError(
                folder, f"Plugin {folder!r} failed to import: {exc}"
            ) from exc
        return module

    async def unload(self, name: str) -> bool:
        record = self._records.get(name)
        if record is None or record.state is not PluginState.ACTIVE:
            return False
        record.state = PluginState.UNLOADING
        shutdown = getattr(record.module, "shutdown", None)
        if shutdown is not None:
            try:
                await _maybe_await(shutdown(record.context))
            except Exception as exc:
                logger.exception(
                    "plugin.shutdown_failed",
                    plugin=name,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
        removed = self._ctx.registry.unregister_owner(name)
        _evict_modules(record.module_name)
        self._ctx.discard_plugin_context(name)
        record.state = PluginState.UNLOADED
        record.context = None
        del self._records[name]
        logger.info(
            "plugin.unloaded",
            plugin=name,
            commands_removed=removed.commands_removed,
            events_removed=removed.events_removed,
        )
        return True

    async def unload_all(self) -> list[str]:
        names = list(reversed(self._records))
        unloaded = []
        for name in names:
            if await self.unload(name):
                unloaded.append(name)
        return unloaded

    async def reload(self, name: str) -> bool:
        record = self._records.get(name)
        if record is None:
            return False
        folder = record.folder
        if not await self.unload(name):
            return False
        return await self.load_one(folder)

    def get(self, name: str) -> PluginRecord | None:
        return self._records.get(name)

    def records(self) -> list[PluginRecord]:
        return list(self._records.values())

    def plugins_info(self) -> list[dict[str, str]]:
        return [record.info() for record in self.records()]

    def _find_by_folder(self, folder: str) -> PluginRecord | None:
        for record in self._records.values():
            if record.folder == folder:
                return record
        return None
