"""Greets new members and hands out an automatic role."""

from __future__ import annotations

from typing import Any

from warden.context import PluginContext
from warden.model import CommandDescriptor, EventDescriptor

from . import settings as welcome_settings
from .greeting import on_member_join

name = "welcome"
version = "1.0.0"
description = "Welcome messages and auto-role for new members"
author = "warden"


async def _welcome_text(ctx: PluginContext, message: Any, args: list[str]) -> None:
    action = args[0] if args else None
    value = " ".join(args[1:]) or None
    reply = await welcome_settings.configure_welcome(
        ctx, message.guild, action, value, channel=message.channel, member=message.author
    )
    await message.reply(reply, mention_author=False)


async def _autorole_text(ctx: PluginContext, message: Any, args: list[str]) -> None:
    action = args[0] if args else None
    value = args[1] if len(args) > 1 else None
    reply = await welcome_settings.configure_autorole(ctx, message.guild, action, value)
    await message.reply(reply, mention_author=False)


def initialize(ctx: PluginContext) -> None:
    ctx.register_event(EventDescriptor("member_join", invoke=on_member_join))
    ctx.register_command(
        CommandDescriptor(
            name="welcome",
            description="Configure welcome messages",
            guild_only=True,
            required_permissions=frozenset({"manage_guild"}),
            invoke=_welcome_text,
        )
    )
    ctx.register_command(
        CommandDescriptor(
            name="autorole",
            description="Configure the role given to new members",
            guild_only=True,
            required_permissions=frozenset({"manage_guild"}),
            invoke=_autorole_text,
        )
    )
