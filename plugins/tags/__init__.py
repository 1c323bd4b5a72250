"""Keyword auto-responder with per-server tags."""

from __future__ import annotations

from typing import Any

from warden.context import PluginContext
from warden.model import CommandDescriptor, EventDescriptor

from . import commands
from .matching import find_match
from .store import load_tags, record_use

name = "tags"
version = "1.0.0"
description = "Automatic responses to keywords and patterns"
author = "warden"


async def on_message(ctx: PluginContext, message: Any) -> None:
    if message.author.bot or message.guild is None:
        return
    content = message.content or ""
    guild_id = message.guild.id
    # command invocations are not tag triggers
    if content.startswith(await ctx.framework.prefix_for(guild_id)):
        return
    tag = find_match(await load_tags(ctx.store, guild_id), content)
    if tag is None:
        return
    await message.channel.send(tag.response)
    count = await record_use(ctx.store, guild_id, tag.name)
    ctx.logger.info("tags.used", tag=tag.name, guild_id=guild_id, usage_count=count)


def initialize(ctx: PluginContext) -> None:
    ctx.register_event(EventDescriptor("message", invoke=on_message))
    ctx.register_command(
        CommandDescriptor(
            name="tag",
            description="Manage automatic tag responses",
            aliases=frozenset({"tags"}),
            guild_only=True,
            invoke=commands.tag_command,
        )
    )


async def handle_button(ctx: PluginContext, interaction: Any, action: str, data: str) -> None:
    await commands.handle_remove_button(ctx, interaction, action, data)
