from __future__ import annotations

import re
from typing import Any

from warden.context import PluginContext

from .greeting import DEFAULT_MESSAGE, render_for

_MENTION = re.compile(r"^<[#@]&?(\d+)>$")


def parse_snowflake(value: str | None) -> int | None:
    """Accepts a raw id or a channel/role mention."""
    if not value:
        return None
    value = value.strip()
    match = _MENTION.match(value)
    if match:
        return int(match.group(1))
    return int(value) if value.isdigit() else None


async def describe_welcome(ctx: PluginContext, guild_id: int) -> str:
    config = await ctx.store.get_all(guild_id=guild_id)
    enabled = "enabled" if config.get("welcome_enabled") else "disabled"
    channel_id = config.get("welcome_channel_id")
    channel = f"<#{channel_id}>" if channel_id else "not set"
    message = config.get("welcome_message") or DEFAULT_MESSAGE
    return (
        f"Welcome messages are {enabled}.\n"
        f"Channel: {channel}\n"
        f"Message: {message}\n"
        "Placeholders: {user}, {server}, {count}"
    )


async def configure_welcome(
    ctx: PluginContext,
    guild: Any,
    action: str | None,
    value: str | None,
    *,
    channel: Any = None,
    member: Any = None,
) -> str:
    store = ctx.store
    guild_id = guild.id
    action = (action or "").lower()
    if not action:
        return await describe_welcome(ctx, guild_id)
    if action == "channel":
        channel_id = parse_snowflake(value) or (channel.id if channel is not None else None)
        if channel_id is None or guild.get_channel(channel_id) is None:
            return "That channel was not found in this server."
        await store.set("welcome_channel_id", channel_id, guild_id=guild_id)
        return f"Welcome channel set to <#{channel_id}>."
    if action == "message":
        if not value:
            return "Usage: welcome message <text>"
        await store.set("welcome_message", value, guild_id=guild_id)
        return "Welcome message updated."
    if action in {"enable", "on"}:
        if not await store.get("welcome_channel_id", guild_id=guild_id):
            return "Set a welcome channel first."
        await store.set("welcome_enabled", True, guild_id=guild_id)
        return "Welcome messages enabled."
    if action in {"disable", "off"}:
        await store.set("welcome_enabled", False, guild_id=guild_id)
        return "Welcome messages disabled."
    if action == "test":
        if member is None:
            return "Nothing to preview."
        template = await store.get("welcome_message", guild_id=guild_id)
        return render_for(member, template)
    return "Usage: welcome [channel <#channel>|message <text>|enable|disable|test]"


async def configure_autorole(
    ctx: PluginContext, guild: Any, action: str | None, value: str | None
) -> str:
    store = ctx.store
    guild_id = guild.id
    action = (action or "").lower()
    if not action:
        config = await store.get_all(guild_id=guild_id)
        role_id = config.get("auto_role_id")
        if config.get("auto_role_enabled") and role_id:
            return f"New members receive <@&{role_id}>."
        return "Auto-role is disabled."
    if action == "set":
        role_id = parse_snowflake(value)
        if role_id is None or guild.get_role(role_id) is None:
            return "That role was not found in this server."
        await store.set("auto_role_id", role_id, guild_id=guild_id)
        await store.set("auto_role_enabled", True, guild_id=guild_id)
        return f"New members will receive <@&{role_id}>."
    if action in {"disable", "off"}:
        await store.set("auto_role_enabled", False, guild_id=guild_id)
        return "Auto-role disabled."
    return "Usage: autorole [set <@role>|disable]"
