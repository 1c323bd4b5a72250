from __future__ import annotations

from typing import Any

from warden.context import PluginContext
from warden.discord.adapters import option_values, respond
from warden.model import CommandDescriptor
from warden.permissions import readable_permission

STRING_OPTION = 3
MAX_PREFIX_LENGTH = 5
PLUGIN_ACTIONS = ("list", "load", "unload", "reload")


def _latency_text(ctx: PluginContext) -> str:
    latency = ctx.client.latency_ms if ctx.client is not None else None
    if latency is None:
        return "Pong!"
    return f"Pong! Latency: {round(latency)}ms"


async def ping_text(ctx: PluginContext, message: Any, args: list[str]) -> None:
    await message.reply(_latency_text(ctx), mention_author=False)


async def ping_slash(ctx: PluginContext, interaction: Any) -> None:
    await respond(interaction, _latency_text(ctx))


def render_help(ctx: PluginContext, prefix: str) -> str:
    lines = [f"**Commands** (prefix `{prefix}`)"]
    for command in ctx.registry.commands():
        summary = command.description or "No description"
        lines.append(f"`{command.name}` - {summary}")
    lines.append(f"Use `{prefix}help <command>` for details on a command.")
    return "\n".join(lines)


def render_command(command: CommandDescriptor, prefix: str) -> str:
    lines = [f"**{prefix}{command.name}**"]
    if command.description:
        lines.append(command.description)
    if command.aliases:
        lines.append("Aliases: " + ", ".join(sorted(command.aliases)))
    if command.cooldown_seconds:
        lines.append(f"Cooldown: {command.cooldown_seconds}s")
    if command.required_permissions:
        names = [readable_permission(flag) for flag in sorted(command.required_permissions)]
        lines.append("Required permissions: " + ", ".join(names))
    if command.guild_only:
        lines.append("Server only")
    if command.owner_only:
        lines.append("Bot owner only")
    lines.append(f"Plugin: {command.owner}")
    return "\n".join(lines)


def help_for(ctx: PluginContext, prefix: str, query: str | None) -> str:
    if not query:
        return render_help(ctx, prefix)
    command = ctx.registry.lookup(query)
    if command is None:
        return f"No command named `{query}`."
    return render_command(command, prefix)


async def help_text(ctx: PluginContext, message: Any, args: list[str]) -> None:
    guild_id = message.guild.id if message.guild is not None else None
    prefix = await ctx.framework.prefix_for(guild_id)
    await message.reply(
        help_for(ctx, prefix, args[0] if args else None), mention_author=False
    )


async def help_slash(ctx: PluginContext, interaction: Any) -> None:
    prefix = await ctx.framework.prefix_for(interaction.guild_id)
    query = option_values(interaction).get("command")
    await respond(interaction, help_for(ctx, prefix, query), ephemeral=True)


async def manage_plugins(ctx: PluginContext, action: str, target: str | None) -> str:
    loader = ctx.loader
    action = (action or "list").lower()
    if action == "list":
        records = loader.records()
        if not records:
            return "No plugins loaded."
        lines = ["**Loaded plugins**"]
        for info in loader.plugins_info():
            lines.append(
                f"`{info['name']}` v{info['version']} - {info['description']}"
                f" (by {info['author']})"
            )
        return "\n".join(lines)
    if action not in PLUGIN_ACTIONS:
        return f"Unknown action `{action}`. Use one of: {', '.join(PLUGIN_ACTIONS)}."
    if not target:
        return f"Usage: plugins {action} <name>"
    if action == "load":
        ok = await loader.load_one(target)
    elif action == "unload":
        ok = await loader.unload(target)
    else:
        ok = await loader.reload(target)
    past = {"load": "loaded", "unload": "unloaded", "reload": "reloaded"}[action]
    if ok:
        await ctx.framework.notify_commands_changed()
        return f"Plugin `{target}` {past}."
    return f"Failed to {action} plugin `{target}`. Check the logs for details."


async def plugins_text(ctx: PluginContext, message: Any, args: list[str]) -> None:
    action = args[0] if args else "list"
    target = args[1] if len(args) > 1 else None
    await message.reply(await manage_plugins(ctx, action, target), mention_author=False)


async def plugins_slash(ctx: PluginContext, interaction: Any) -> None:
    values = option_values(interaction)
    reply = await manage_plugins(ctx, values.get("action") or "list", values.get("name"))
    await respond(interaction, reply, ephemeral=True)


async def update_prefix(ctx: PluginContext, guild_id: int, value: str | None) -> str:
    framework = ctx.framework
    if not value:
        current = await framework.prefix_for(guild_id)
        return f"The prefix for this server is `{current}`."
    if value.lower() == "reset":
        await framework.set_prefix(guild_id, None)
        return f"Prefix reset to `{framework.settings.default_prefix}`."
    if len(value) > MAX_PREFIX_LENGTH or any(ch.isspace() for ch in value):
        return f"A prefix must be 1-{MAX_PREFIX_LENGTH} characters without spaces."
    await framework.set_prefix(guild_id, value)
    return f"Prefix set to `{value}`."


async def prefix_text(ctx: PluginContext, message: Any, args: list[str]) -> None:
    reply = await update_prefix(ctx, message.guild.id, args[0] if args else None)
    await message.reply(reply, mention_author=False)


async def prefix_slash(ctx: PluginContext, interaction: Any) -> None:
    value = option_values(interaction).get("prefix")
    reply = await update_prefix(ctx, interaction.guild_id, value)
    await respond(interaction, reply, ephemeral=True)


COMMANDS = (
    CommandDescriptor(
        name="ping",
        description="Check the bot's latency",
        invoke=ping_text,
        invoke_interaction=ping_slash,
    ),
    CommandDescriptor(
        name="help",
        description="List commands or show details for one",
        aliases=frozenset({"commands", "h"}),
        cooldown_seconds=2,
        invoke=help_text,
        invoke_interaction=help_slash,
        options=(
            {
                "type": STRING_OPTION,
                "name": "command",
                "description": "Command to describe",
                "required": False,
            },
        ),
    ),
    CommandDescriptor(
        name="plugins",
        description="List, load, unload or reload plugins",
        cooldown_seconds=0,
        owner_only=True,
        invoke=plugins_text,
        invoke_interaction=plugins_slash,
        options=(
            {
                "type": STRING_OPTION,
                "name": "action",
                "description": "What to do",
                "required": False,
                "choices": [{"name": a, "value": a} for a in PLUGIN_ACTIONS],
            },
            {
                "type": STRING_OPTION,
                "name": "name",
                "description": "Plugin name (folder name for load)",
                "required": False,
            },
        ),
    ),
    CommandDescriptor(
        name="prefix",
        description="Show or change the text command prefix for this server",
        guild_only=True,
        required_permissions=frozenset({"manage_guild"}),
        invoke=prefix_text,
        invoke_interaction=prefix_slash,
        options=(
            {
                "type": STRING_OPTION,
                "name": "prefix",
                "description": "New prefix, or 'reset'",
                "required": False,
            },
        ),
    ),
)
