"""Push slash-command schemas to Discord."""

from __future__ import annotations

from typing import Any

from ..logging import get_logger
from ..model import CommandDescriptor
from ..registry import ModuleRegistry

logger = get_logger(__name__)

CHAT_INPUT = 1
DESCRIPTION_LIMIT = 100


def command_payload(command: CommandDescriptor) -> dict[str, Any]:
    description = (command.description or command.name)[:DESCRIPTION_LIMIT]
    payload: dict[str, Any] = {
        "name": command.name,
        "description": description,
        "type": CHAT_INPUT,
        "dm_permission": not command.guild_only,
    }
    if command.options:
        payload["options"] = [dict(option) for option in command.options]
    return payload


async def sync_application_commands(
    http: Any,
    registry: ModuleRegistry,
    application_id: int,
    *,
    guild_id: int | None = None,
) -> int:
    """Replace the registered slash commands with the registry's; returns count."""
    payload = [command_payload(command) for command in registry.slash_commands()]
    if guild_id is not None:
        await http.bulk_upsert_guild_commands(application_id, guild_id, payload)
    else:
        await http.bulk_upsert_global_commands(application_id, payload)
    logger.info(
        "commands.synced",
        count=len(payload),
        scope="guild" if guild_id is not None else "global",
        guild_id=guild_id,
    )
    return len(payload)
