"""JSON-backed key-value settings, scoped by (owner, guild, key)."""

from __future__ import annotations

import copy
from collections.abc import Callable
from pathlib import Path
from typing import Any

import anyio

from .logging import get_logger
from .utils.json_state import StateFileError, atomic_write_json, read_json_object

logger = get_logger(__name__)

STATE_VERSION = 1
GLOBAL_SCOPE = "global"


def _scope(guild_id: int | None) -> str:
    return GLOBAL_SCOPE if guild_id is None else str(guild_id)


class SettingsStore:
    """Settings persisted in a single JSON state file.

    Layout: ``{"version": 1, "owners": {owner: {scope: {key: value}}}}`` where
    scope is the guild id as a string or ``"global"``. Values must be JSON
    serializable. The file is reloaded when its mtime changes, so edits made
    while the bot runs are picked up on the next access.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = anyio.Lock()
        self._loaded = False
        self._mtime_ns: int | None = None
        self._owners: dict[str, dict[str, dict[str, Any]]] = {}

    @property
    def path(self) -> Path:
        return self._path

    def _stat_mtime_ns(self) -> int | None:
        try:
            return self._path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def _reload_if_needed(self) -> None:
        current = self._stat_mtime_ns()
        if self._loaded and current == self._mtime_ns:
            return
        self._load()

    def _load(self) -> None:
        self._loaded = True
        self._mtime_ns = self._stat_mtime_ns()
        try:
            data = read_json_object(self._path)
        except StateFileError as exc:
            logger.warning("storage.load_failed", path=str(self._path), error=str(exc))
            self._owners = {}
            return
        if data is None:
            self._owners = {}
            return
        owners = data.get("owners")
        self._owners = owners if isinstance(owners, dict) else {}

    def _save(self, owners: dict[str, dict[str, dict[str, Any]]]) -> None:
        atomic_write_json(self._path, {"version": STATE_VERSION, "owners": owners})
        self._owners = owners
        self._mtime_ns = self._stat_mtime_ns()

    def _with_bucket(
        self, owner: str, scope: str, bucket: dict[str, Any]
    ) -> dict[str, dict[str, dict[str, Any]]]:
        """A copy of the owners table with one scope replaced; empty scopes are pruned."""
        owners = dict(self._owners)
        scopes = dict(owners.get(owner, {}))
        if bucket:
            scopes[scope] = bucket
        else:
            scopes.pop(scope, None)
        if scopes:
            owners[owner] = scopes
        else:
            owners.pop(owner, None)
        return owners

    def _bucket(self, owner: str, guild_id: int | None) -> dict[str, Any]:
        return self._owners.get(owner, {}).get(_scope(guild_id), {})

    async def get(
        self,
        owner: str,
        key: str,
        guild_id: int | None = None,
        default: Any = None,
    ) -> Any:
        async with self._lock:
            self._reload_if_needed()
            bucket = self._bucket(owner, guild_id)
            if key not in bucket:
                return default
            return copy.deepcopy(bucket[key])

    async def set(
        self,
        owner: str,
        key: str,
        value: Any,
        guild_id: int | None = None,
    ) -> None:
        async with self._lock:
            self._reload_if_needed()
            bucket = dict(self._bucket(owner, guild_id))
            bucket[key] = copy.deepcopy(value)
            self._save(self._with_bucket(owner, _scope(guild_id), bucket))

    async def update(
        self,
        owner: str,
        key: str,
        fn: Callable[[Any], Any],
        guild_id: int | None = None,
        default: Any = None,
    ) -> Any:
        """Apply ``fn`` to the stored value and save the result in one locked step.

        ``fn`` receives a copy of the current value (or ``default``) and returns
        the new one. Returns a copy of what was saved.
        """
        async with self._lock:
            self._reload_if_needed()
            bucket = dict(self._bucket(owner, guild_id))
            current = copy.deepcopy(bucket.get(key, default))
            updated = fn(current)
            bucket[key] = copy.deepcopy(updated)
            self._save(self._with_bucket(owner, _scope(guild_id), bucket))
            return copy.deepcopy(updated)

    async def delete(self, owner: str, key: str, guild_id: int | None = None) -> bool:
        async with self._lock:
            self._reload_if_needed()
            bucket = dict(self._bucket(owner, guild_id))
            if key not in bucket:
                return False
            del bucket[key]
            self._save(self._with_bucket(owner, _scope(guild_id), bucket))
            return True

    async def get_all(self, owner: str, guild_id: int | None = None) -> dict[str, Any]:
        async with self._lock:
            self._reload_if_needed()
            return copy.deepcopy(self._bucket(owner, guild_id))


class ScopedStore:
    """A :class:`SettingsStore` view with the owner bound."""

    def __init__(self, store: SettingsStore, owner: str) -> None:
        self._store = store
        self.owner = owner

    async def get(self, key: str, guild_id: int | None = None, default: Any = None) -> Any:
        return await self._store.get(self.owner, key, guild_id=guild_id, default=default)

    async def set(self, key: str, value: Any, guild_id: int | None = None) -> None:
        await self._store.set(self.owner, key, value, guild_id=guild_id)

    async def delete(self, key: str, guild_id: int | None = None) -> bool:
        return await self._store.delete(self.owner, key, guild_id=guild_id)

    async def get_all(self, guild_id: int | None = None) -> dict[str, Any]:
        return await self._store.get_all(self.owner, guild_id=guild_id)

    async def update(
        self,
        key: str,
        fn: Callable[[Any], Any],
        guild_id: int | None = None,
        default: Any = None,
    ) -> Any:
        return await self._store.update(
            self.owner, key, fn, guild_id=guild_id, default=default
        )
