"""py-cord gateway client acting as the framework's event source."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any

import discord

from ..logging import get_logger

logger = get_logger(__name__)

EventCallback = Callable[..., Awaitable[None]]


def default_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    # member_join needs the privileged members intent
    intents.members = True
    return intents


class _GatewayClient(discord.Client):
    """``discord.Client`` that mirrors every dispatched event to its owner."""

    def __init__(self, owner: DiscordBotClient, **options: Any) -> None:
        super().__init__(**options)
        self._owner = owner

    def dispatch(self, event: str, *args: Any, **kwargs: Any) -> None:
        super().dispatch(event, *args, **kwargs)
        self._owner._forward(event, *args)


class DiscordBotClient:
    """Wrapper around a py-cord client with one subscription per event name."""

    def __init__(
        self,
        token: str,
        *,
        intents: discord.Intents | None = None,
    ) -> None:
        self._token = token
        self._intents = intents
        # Defer client creation until inside async context
        self._client: discord.Client | None = None
        self._ready_event: asyncio.Event | None = None
        self._start_task: asyncio.Task[None] | None = None
        self._subscriptions: dict[str, EventCallback] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def _ensure_client(self) -> discord.Client:
        """Create the client if needed. Must be called from async context."""
        if self._client is not None:
            return self._client
        self._client = _GatewayClient(self, intents=self._intents or default_intents())
        self._ready_event = asyncio.Event()
        return self._client

    @property
    def client(self) -> discord.Client:
        return self._ensure_client()

    @property
    def user(self) -> discord.ClientUser | None:
        if self._client is None:
            return None
        return self._client.user

    @property
    def latency_ms(self) -> float | None:
        if self._client is None:
            return None
        latency = self._client.latency
        if latency != latency or latency == float("inf"):
            return None
        return latency * 1000

    @property
    def application_id(self) -> int | None:
        if self._client is None:
            return None
        return self._client.application_id

    @property
    def guild_count(self) -> int:
        if self._client is None:
            return 0
        return len(self._client.guilds)

    @property
    def subscriptions(self) -> list[str]:
        return sorted(self._subscriptions)

    def subscribe(self, event_name: str, callback: EventCallback) -> None:
        if event_name in self._subscriptions:
            logger.warning("discord.subscription_replaced", event_name=event_name)
        self._subscriptions[event_name] = callback

    def unsubscribe(self, event_name: str) -> None:
        self._subscriptions.pop(event_name, None)

    def _forward(self, event_name: str, *args: Any) -> None:
        if event_name == "ready" and self._ready_event is not None:
            self._ready_event.set()
        callback = self._subscriptions.get(event_name)
        if callback is None:
            return
        task = asyncio.create_task(callback(*args), name=f"warden-event-{event_name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def start(self) -> None:
        """Log in, connect, and wait until the gateway reports ready."""
        client = self._ensure_client()
        assert self._ready_event is not None

        async def _run_client() -> None:
            try:
                await client.start(self._token)
            except asyncio.CancelledError:
                pass
            except RuntimeError as e:
                # Suppress "Session is closed" error during shutdown
                if "Session is closed" not in str(e):
                    raise

        self._start_task = asyncio.create_task(_run_client(), name="discord-client-start")
        ready = asyncio.create_task(self._ready_event.wait())
        done, _ = await asyncio.wait(
            {ready, self._start_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if ready not in done:
            ready.cancel()
            # login failed before ready; surface the error
            await self._start_task
            raise RuntimeError("Discord client stopped before becoming ready")

    async def wait_closed(self) -> None:
        if self._start_task is not None:
            await self._start_task

    async def change_presence(self, text: str | None) -> None:
        if self._client is None or not text:
            return
        await self._client.change_presence(
            activity=discord.Activity(type=discord.ActivityType.watching, name=text)
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            if self._start_task is not None and not self._start_task.done():
                self._start_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._start_task
        for task in list(self._tasks):
            task.cancel()
