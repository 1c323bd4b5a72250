"""Built-in commands: ping, help, plugin management and prefix."""

from __future__ import annotations

from warden.context import PluginContext

from .commands import COMMANDS

name = "core"
version = "1.0.0"
description = "Core commands for the bot"
author = "warden"


def initialize(ctx: PluginContext) -> None:
    for command in COMMANDS:
        ctx.register_command(command)
    ctx.logger.debug("core.initialized", commands=len(COMMANDS))
