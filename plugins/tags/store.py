from __future__ import annotations

from typing import Any

from warden.storage import ScopedStore

from .matching import Tag

TAGS_KEY = "tags"


async def load_tags(store: ScopedStore, guild_id: int) -> list[Tag]:
    raw = await store.get(TAGS_KEY, guild_id=guild_id, default={})
    return [Tag.from_dict(item) for item in raw.values()]


async def get_tag(store: ScopedStore, guild_id: int, name: str) -> Tag | None:
    for tag in await load_tags(store, guild_id):
        if tag.name == name:
            return tag
    return None


async def add_tag(store: ScopedStore, guild_id: int, tag: Tag) -> bool:
    added = False

    def insert(raw: dict[str, Any]) -> dict[str, Any]:
        nonlocal added
        if tag.name not in raw:
            raw[tag.name] = tag.to_dict()
            added = True
        return raw

    await store.update(TAGS_KEY, insert, guild_id=guild_id, default={})
    return added


async def remove_tag(store: ScopedStore, guild_id: int, name: str) -> bool:
    removed = False

    def drop(raw: dict[str, Any]) -> dict[str, Any]:
        nonlocal removed
        removed = raw.pop(name, None) is not None
        return raw

    await store.update(TAGS_KEY, drop, guild_id=guild_id, default={})
    return removed


async def record_use(store: ScopedStore, guild_id: int, name: str) -> int:
    count = 0

    def bump(raw: dict[str, Any]) -> dict[str, Any]:
        nonlocal count
        item = raw.get(name)
        if item is not None:
            count = int(item.get("usage_count", 0)) + 1
            item["usage_count"] = count
        return raw

    await store.update(TAGS_KEY, bump, guild_id=guild_id, default={})
    return count
