from __future__ import annotations

from typing import Any

from warden.context import PluginContext

DEFAULT_MESSAGE = "Welcome {user} to {server}!"


def format_welcome(template: str, *, user: str, server: str, count: int | None) -> str:
    return (
        template.replace("{user}", user)
        .replace("{server}", server)
        .replace("{count}", str(count) if count is not None else "?")
    )


def render_for(member: Any, template: str | None) -> str:
    guild = member.guild
    return format_welcome(
        template or DEFAULT_MESSAGE,
        user=member.mention,
        server=guild.name,
        count=guild.member_count,
    )


async def send_welcome(ctx: PluginContext, member: Any, channel_id: int, template: str | None) -> bool:
    channel = member.guild.get_channel(channel_id)
    if channel is None:
        ctx.logger.warning(
            "welcome.channel_missing", guild_id=member.guild.id, channel_id=channel_id
        )
        return False
    await channel.send(render_for(member, template))
    ctx.logger.info("welcome.sent", guild_id=member.guild.id, user_id=member.id)
    return True


async def assign_auto_role(ctx: PluginContext, member: Any, role_id: int) -> bool:
    role = member.guild.get_role(role_id)
    if role is None:
        ctx.logger.warning("welcome.role_missing", guild_id=member.guild.id, role_id=role_id)
        return False
    me = member.guild.me
    perms = me.guild_permissions if me is not None else None
    if perms is None or not (perms.manage_roles or perms.administrator):
        ctx.logger.warning("welcome.role_forbidden", guild_id=member.guild.id, role_id=role_id)
        return False
    await member.add_roles(role, reason="Auto-role")
    ctx.logger.info(
        "welcome.role_assigned", guild_id=member.guild.id, user_id=member.id, role_id=role_id
    )
    return True


async def on_member_join(ctx: PluginContext, member: Any) -> None:
    config = await ctx.store.get_all(guild_id=member.guild.id)
    if not config:
        return
    channel_id = config.get("welcome_channel_id")
    if config.get("welcome_enabled") and channel_id:
        try:
            await send_welcome(ctx, member, int(channel_id), config.get("welcome_message"))
        except Exception as exc:
            ctx.logger.exception("welcome.send_failed", guild_id=member.guild.id, error=str(exc))
    role_id = config.get("auto_role_id")
    if config.get("auto_role_enabled") and role_id:
        await assign_auto_role(ctx, member, int(role_id))
