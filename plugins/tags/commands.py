from __future__ import annotations

from typing import Any

import discord

from warden.context import PluginContext
from warden.discord.adapters import respond

from .matching import Tag, validate_pattern
from .store import add_tag, get_tag, load_tags, remove_tag

MANAGE_PERMISSION = "manage_messages"
CONFIRM_TIMEOUT = 300
# keeps "tags:confirm_remove:<name>" under the 100 character custom id limit
MAX_NAME_LENGTH = 32
USAGE = (
    "Usage: tag add <name> <pattern> | <response>\n"
    "       tag addregex <name> <regex> | <response>\n"
    "       tag remove <name>\n"
    "       tag list\n"
    "       tag info <name>"
)


def parse_definition(args: list[str]) -> tuple[str, str, str] | None:
    """``["hello", "hi", "there", "|", "Hey!"]`` -> ``("hello", "hi there", "Hey!")``."""
    if len(args) < 2:
        return None
    name = args[0].lower()
    pattern, sep, response = " ".join(args[1:]).partition("|")
    pattern, response = pattern.strip(), response.strip()
    if not sep or not pattern or not response:
        return None
    return name, pattern, response


class RemoveConfirmView(discord.ui.View):
    """Confirm/cancel buttons; clicks are routed by custom id to the plugin."""

    def __init__(self, tag_name: str) -> None:
        super().__init__(timeout=CONFIRM_TIMEOUT)
        self.add_item(
            discord.ui.Button(
                label="Remove",
                style=discord.ButtonStyle.danger,
                custom_id=f"tags:confirm_remove:{tag_name}",
            )
        )
        self.add_item(
            discord.ui.Button(
                label="Cancel",
                style=discord.ButtonStyle.secondary,
                custom_id=f"tags:cancel_remove:{tag_name}",
            )
        )

    async def interaction_check(self, interaction: Any) -> bool:
        return False


def _can_manage(ctx: PluginContext, user: Any, guild: Any) -> bool:
    return ctx.framework.capabilities(user, guild).has_permission(MANAGE_PERMISSION)


async def _add(ctx: PluginContext, message: Any, args: list[str], *, is_regex: bool) -> str:
    parsed = parse_definition(args)
    if parsed is None:
        return USAGE
    name, pattern, response = parsed
    if len(name) > MAX_NAME_LENGTH:
        return f"Tag names can be at most {MAX_NAME_LENGTH} characters."
    if is_regex:
        error = validate_pattern(pattern)
        if error is not None:
            return f"Invalid regex: {error}"
    tag = Tag(
        name=name,
        pattern=pattern,
        response=response,
        is_regex=is_regex,
        created_by=message.author.id,
    )
    if not await add_tag(ctx.store, message.guild.id, tag):
        return f"A tag named `{name}` already exists."
    ctx.logger.info("tags.added", tag=name, guild_id=message.guild.id, regex=is_regex)
    return f"Tag `{name}` added."


async def _list(ctx: PluginContext, guild_id: int) -> str:
    tags = await load_tags(ctx.store, guild_id)
    if not tags:
        return "No tags in this server."
    lines = [f"**Tags** ({len(tags)})"]
    for tag in tags:
        kind = "regex" if tag.is_regex else "text"
        lines.append(f"`{tag.name}` ({kind}) - {tag.pattern}")
    return "\n".join(lines)


async def _info(ctx: PluginContext, guild_id: int, name: str | None) -> str:
    if not name:
        return USAGE
    tag = await get_tag(ctx.store, guild_id, name.lower())
    if tag is None:
        return f"No tag named `{name}`."
    creator = f"<@{tag.created_by}>" if tag.created_by else "unknown"
    return (
        f"**{tag.name}**\n"
        f"Pattern: `{tag.pattern}` ({'regex' if tag.is_regex else 'text'})\n"
        f"Response: {tag.response}\n"
        f"Created by: {creator}\n"
        f"Uses: {tag.usage_count}"
    )


async def tag_command(ctx: PluginContext, message: Any, args: list[str]) -> None:
    action = args[0].lower() if args else "list"
    rest = args[1:]
    guild_id = message.guild.id

    if action in {"add", "addregex", "remove"} and not _can_manage(
        ctx, message.author, message.guild
    ):
        await message.reply("You need Manage Messages to change tags.", mention_author=False)
        return

    if action == "add":
        reply = await _add(ctx, message, rest, is_regex=False)
    elif action == "addregex":
        reply = await _add(ctx, message, rest, is_regex=True)
    elif action == "list":
        reply = await _list(ctx, guild_id)
    elif action == "info":
        reply = await _info(ctx, guild_id, rest[0] if rest else None)
    elif action == "remove":
        if not rest:
            reply = USAGE
        else:
            name = rest[0].lower()
            if await get_tag(ctx.store, guild_id, name) is None:
                reply = f"No tag named `{name}`."
            else:
                await message.reply(
                    f"Remove tag `{name}`?",
                    view=RemoveConfirmView(name),
                    mention_author=False,
                )
                return
    else:
        reply = USAGE
    await message.reply(reply, mention_author=False)


async def handle_remove_button(
    ctx: PluginContext, interaction: Any, action: str, data: str
) -> None:
    if action == "cancel_remove":
        await interaction.response.edit_message(
            content=f"Kept tag `{data}`.", view=None
        )
        return
    if action != "confirm_remove":
        await respond(interaction, "This button is not handled properly.", ephemeral=True)
        return
    if interaction.guild is None or not _can_manage(ctx, interaction.user, interaction.guild):
        await respond(interaction, "You need Manage Messages to remove tags.", ephemeral=True)
        return
    removed = await remove_tag(ctx.store, interaction.guild.id, data)
    content = f"Tag `{data}` removed." if removed else f"Tag `{data}` no longer exists."
    if removed:
        ctx.logger.info("tags.removed", tag=data, guild_id=interaction.guild.id)
    await interaction.response.edit_message(content=content, view=None)
