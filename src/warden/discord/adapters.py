"""Turn py-cord messages and interactions into framework invocations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..logging import get_logger
from ..pipeline import Invocation

if TYPE_CHECKING:
    from ..context import FrameworkContext

logger = get_logger(__name__)


def option_values(interaction: Any) -> dict[str, Any]:
    """Top-level slash option values keyed by option name."""
    data = interaction.data or {}
    return {
        str(option.get("name")): option.get("value")
        for option in data.get("options") or ()
        if isinstance(option, dict)
    }


async def respond(
    interaction: Any, content: str, *, ephemeral: bool = False, **kwargs: Any
) -> None:
    """Send a response, as a follow-up if the interaction was already answered."""
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=ephemeral, **kwargs)
    else:
        await interaction.response.send_message(content, ephemeral=ephemeral, **kwargs)


async def send_ephemeral(interaction: Any, content: str) -> None:
    await respond(interaction, content, ephemeral=True)


async def safe_send_ephemeral(interaction: Any, content: str) -> bool:
    try:
        await send_ephemeral(interaction, content)
    except Exception as exc:
        logger.exception(
            "interaction.reply_failed",
            interaction_id=getattr(interaction, "id", None),
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        return False
    return True


async def safe_reply(message: Any, content: str) -> bool:
    try:
        await message.reply(content, mention_author=False)
    except Exception as exc:
        logger.exception(
            "message.reply_failed",
            message_id=getattr(message, "id", None),
            channel_id=getattr(message.channel, "id", None),
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        return False
    return True


def interaction_invocation(ctx: FrameworkContext, interaction: Any) -> Invocation:
    guild = interaction.guild
    user = interaction.user

    async def _reply(content: str) -> None:
        await safe_send_ephemeral(interaction, content)

    return Invocation(
        capabilities=ctx.capabilities(user, guild),
        guild_id=guild.id if guild is not None else None,
        reply=_reply,
        source="slash",
    )


def message_invocation(ctx: FrameworkContext, message: Any) -> Invocation:
    guild = message.guild

    async def _reply(content: str) -> None:
        await safe_reply(message, content)

    return Invocation(
        capabilities=ctx.capabilities(message.author, guild),
        guild_id=guild.id if guild is not None else None,
        reply=_reply,
        source="text",
    )
