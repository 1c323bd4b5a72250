"""Startup and shutdown wiring for a running bot."""

from __future__ import annotations

from typing import Any

import anyio

from .context import FRAMEWORK_OWNER, FrameworkContext
from .discord.client import DiscordBotClient
from .discord.registration import sync_application_commands
from .dispatch import InteractionDispatcher, MessageRouter
from .logging import get_logger
from .model import EventDescriptor
from .settings import WardenSettings

logger = get_logger(__name__)


class WardenBot:
    def __init__(
        self,
        settings: WardenSettings,
        *,
        client: DiscordBotClient | None = None,
    ) -> None:
        if client is None:
            token = settings.token.get_secret_value() if settings.token else ""
            client = DiscordBotClient(token)
        self.settings = settings
        self.client = client
        self.ctx = FrameworkContext(settings, source=client, client=client)
        self.dispatcher = InteractionDispatcher(self.ctx)
        self.router = MessageRouter(self.ctx)
        self._framework_events_registered = False
        self._ready = False
        self.ctx.commands_changed_hook = self._resync_commands

    def register_framework_events(self) -> None:
        if self._framework_events_registered:
            return
        registry = self.ctx.registry
        registry.register_event(
            EventDescriptor("interaction", invoke=self._on_interaction), FRAMEWORK_OWNER
        )
        registry.register_event(
            EventDescriptor("message", invoke=self._on_message), FRAMEWORK_OWNER
        )
        registry.register_event(
            EventDescriptor("ready", invoke=self._on_ready, once=True), FRAMEWORK_OWNER
        )
        self._framework_events_registered = True

    async def _on_interaction(self, _ctx: Any, interaction: Any) -> None:
        await self.dispatcher.dispatch(interaction)

    async def _on_message(self, _ctx: Any, message: Any) -> None:
        await self.router.route(message)

    async def _on_ready(self, _ctx: Any) -> None:
        self._ready = True
        await self.sync_commands()
        try:
            await self.client.change_presence(self.settings.activity)
        except Exception as exc:
            logger.warning("bot.presence_failed", error=str(exc))
        user = self.client.user
        logger.info(
            "bot.ready",
            user=str(user) if user is not None else None,
            guilds=self.client.guild_count,
            plugins=len(self.ctx.loader.records()),
            commands=len(self.ctx.registry),
        )

    async def _resync_commands(self) -> None:
        if not self._ready:
            return
        await self.sync_commands()

    async def sync_commands(self) -> int | None:
        application_id = self.settings.application_id or self.client.application_id
        if application_id is None:
            logger.warning("commands.sync_skipped", reason="no application id")
            return None
        try:
            return await sync_application_commands(
                self.client.client.http,
                self.ctx.registry,
                application_id,
                guild_id=self.settings.dev_guild_id,
            )
        except Exception as exc:
            logger.exception(
                "commands.sync_failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return None

    async def start(self) -> None:
        self.register_framework_events()
        await self.ctx.loader.load_all()
        await self.client.start()

    async def shutdown(self) -> None:
        unloaded = await self.ctx.loader.unload_all()
        logger.info("bot.shutdown", plugins_unloaded=len(unloaded))
        await self.client.close()

    async def run(self) -> None:
        """Run until the gateway connection ends or the task is cancelled."""
        try:
            await self.start()
            await self.client.wait_closed()
        finally:
            with anyio.CancelScope(shield=True):
                await self.shutdown()
