from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import discord


def readable_permission(flag: str) -> str:
    """``"manage_messages"`` -> ``"Manage Messages"``."""
    return " ".join(part.capitalize() for part in flag.replace("_", " ").split())


def granted_flags(permissions: discord.Permissions | None) -> frozenset[str]:
    if permissions is None:
        return frozenset()
    return frozenset(name for name, value in permissions if value)


@dataclass(frozen=True, slots=True)
class Capabilities:
    """What the invoking user may do, resolved once per invocation."""

    user_id: int
    is_bot_owner: bool = False
    is_guild_owner: bool = False
    granted: frozenset[str] = frozenset()

    @property
    def bypasses_permissions(self) -> bool:
        return self.is_bot_owner or self.is_guild_owner

    @property
    def is_admin(self) -> bool:
        return "administrator" in self.granted

    def has_permission(self, flag: str) -> bool:
        if self.bypasses_permissions or self.is_admin:
            return True
        return flag in self.granted

    def missing(self, required: Iterable[str]) -> list[str]:
        """Readable names of exactly the required flags that are not held."""
        return [
            readable_permission(flag)
            for flag in sorted(required)
            if not self.has_permission(flag)
        ]


def resolve_capabilities(
    user: Any,
    guild: Any | None,
    *,
    owner_ids: Iterable[int],
) -> Capabilities:
    """Build :class:`Capabilities` from a py-cord user/member and guild."""
    user_id = int(user.id)
    is_guild_owner = guild is not None and getattr(guild, "owner_id", None) == user_id
    permissions = getattr(user, "guild_permissions", None) if guild is not None else None
    return Capabilities(
        user_id=user_id,
        is_bot_owner=user_id in set(owner_ids),
        is_guild_owner=is_guild_owner,
        granted=granted_flags(permissions),
    )
