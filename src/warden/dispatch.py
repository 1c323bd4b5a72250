"""Route interactions and prefixed messages to their owning handlers."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import discord

from .discord.adapters import (
    interaction_invocation,
    message_invocation,
    safe_send_ephemeral,
)
from .logging import get_logger
from .pipeline import PipelineOutcome

if TYPE_CHECKING:
    from .context import FrameworkContext

logger = get_logger(__name__)

UNKNOWN_COMMAND = (
    "Unknown command. The bot may have been updated since this command was registered."
)

BUTTON_COMPONENT_TYPE = 2


class InteractionKind(enum.Enum):
    COMMAND = "command"
    BUTTON = "button"
    SELECT_MENU = "select_menu"
    MODAL_SUBMIT = "modal_submit"

    @property
    def hook(self) -> str:
        return f"handle_{self.value}"

    @property
    def control(self) -> str:
        return _CONTROL_NAMES[self]

    @property
    def failure_message(self) -> str:
        return _FAILURE_MESSAGES[self]


_CONTROL_NAMES = {
    InteractionKind.COMMAND: "command",
    InteractionKind.BUTTON: "button",
    InteractionKind.SELECT_MENU: "select menu",
    InteractionKind.MODAL_SUBMIT: "form",
}

_FAILURE_MESSAGES = {
    InteractionKind.COMMAND: "There was an error while executing this command!",
    InteractionKind.BUTTON: "There was an error processing this button!",
    InteractionKind.SELECT_MENU: "There was an error processing this selection!",
    InteractionKind.MODAL_SUBMIT: "There was an error processing this form submission!",
}


@dataclass(frozen=True, slots=True)
class ComponentId:
    owner: str
    action: str = ""
    data: str = ""


def parse_custom_id(custom_id: str) -> ComponentId:
    """Split ``owner:action:data`` on the first two colons only."""
    parts = (custom_id or "").split(":", 2)
    parts += [""] * (3 - len(parts))
    return ComponentId(owner=parts[0], action=parts[1], data=parts[2])


def classify_interaction(interaction: Any) -> InteractionKind | None:
    kind = interaction.type
    if kind == discord.InteractionType.application_command:
        return InteractionKind.COMMAND
    if kind == discord.InteractionType.modal_submit:
        return InteractionKind.MODAL_SUBMIT
    if kind == discord.InteractionType.component:
        data = interaction.data or {}
        if data.get("component_type") == BUTTON_COMPONENT_TYPE:
            return InteractionKind.BUTTON
        return InteractionKind.SELECT_MENU
    return None


class InteractionDispatcher:
    def __init__(self, ctx: FrameworkContext) -> None:
        self._ctx = ctx

    async def dispatch(self, interaction: Any) -> None:
        kind = classify_interaction(interaction)
        if kind is None:
            return
        try:
            if kind is InteractionKind.COMMAND:
                await self._dispatch_command(interaction)
            else:
                await self._dispatch_component(kind, interaction)
        except Exception as exc:
            logger.exception(
                "interaction.failed",
                kind=kind.value,
                interaction_id=getattr(interaction, "id", None),
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            await safe_send_ephemeral(interaction, kind.failure_message)

    async def _dispatch_command(self, interaction: Any) -> PipelineOutcome | None:
        data = interaction.data or {}
        name = str(data.get("name", ""))
        command = self._ctx.registry.lookup(name) if name else None
        if command is None or command.invoke_interaction is None:
            logger.warning("interaction.unknown_command", command=name or None)
            await safe_send_ephemeral(interaction, UNKNOWN_COMMAND)
            return None

        handler = command.invoke_interaction
        plugin_ctx = self._ctx.plugin_context(command.owner)
        invocation = interaction_invocation(self._ctx, interaction)
        return await self._ctx.pipeline.run(
            command, invocation, lambda: handler(plugin_ctx, interaction)
        )

    async def _dispatch_component(self, kind: InteractionKind, interaction: Any) -> None:
        data = interaction.data or {}
        component = parse_custom_id(str(data.get("custom_id", "")))
        record = self._ctx.loader.get(component.owner) if component.owner else None
        if record is None:
            logger.debug(
                "interaction.unknown_plugin",
                kind=kind.value,
                plugin=component.owner or None,
            )
            await safe_send_ephemeral(
                interaction,
                f"This {kind.control} is no longer supported. "
                "The bot may have been updated.",
            )
            return

        handler = getattr(record.module, kind.hook, None)
        if handler is None:
            logger.warning(
                "interaction.missing_handler", kind=kind.value, plugin=record.name
            )
            await safe_send_ephemeral(
                interaction, f"This {kind.control} is not handled properly."
            )
            return

        try:
            await handler(record.context, interaction, component.action, component.data)
        except Exception as exc:
            logger.exception(
                "component.failed",
                kind=kind.value,
                plugin=record.name,
                action=component.action,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            await safe_send_ephemeral(interaction, kind.failure_message)


def parse_text_command(content: str, prefix: str) -> tuple[str, list[str]] | None:
    """``"!Ping a b"`` with prefix ``!`` -> ``("ping", ["a", "b"])``."""
    if not prefix or not content.startswith(prefix):
        return None
    parts = content[len(prefix) :].strip().split()
    if not parts:
        return None
    return parts[0].lower(), parts[1:]


class MessageRouter:
    def __init__(self, ctx: FrameworkContext) -> None:
        self._ctx = ctx

    async def route(self, message: Any) -> PipelineOutcome | None:
        if message.author.bot or getattr(message, "webhook_id", None):
            return None
        guild = message.guild
        prefix = await self._ctx.prefix_for(guild.id if guild is not None else None)
        parsed = parse_text_command(message.content or "", prefix)
        if parsed is None:
            return None
        name, args = parsed
        command = self._ctx.registry.lookup(name)
        if command is None or command.invoke is None:
            return None

        handler = command.invoke
        plugin_ctx = self._ctx.plugin_context(command.owner)
        invocation = message_invocation(self._ctx, message)
        return await self._ctx.pipeline.run(
            command, invocation, lambda: handler(plugin_ctx, message, args)
        )
