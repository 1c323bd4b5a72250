from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from warden.bot import WardenBot
from warden.context import FRAMEWORK_OWNER
from warden.model import CommandDescriptor
from warden.registry import NullEventSource
from warden.settings import WardenSettings
from tests.discord_fakes import FakeMessage, FakeUser, make_slash
from tests.factories import OWNER_ID
from tests.plugin_fixtures import BUILTIN_PLUGINS_DIR, command_plugin, write_plugin


class FakeClient(NullEventSource):
    def __init__(self) -> None:
        super().__init__()
        self.client = MagicMock()
        self.client.http.bulk_upsert_global_commands = AsyncMock()
        self.client.http.bulk_upsert_guild_commands = AsyncMock()
        self.application_id: int | None = 99
        self.user = "warden#0001"
        self.guild_count = 3
        self.latency_ms = None
        self.presence: list[str | None] = []
        self.started = False
        self.closed = False

    async def change_presence(self, text: str | None) -> None:
        self.presence.append(text)

    async def start(self) -> None:
        self.started = True

    async def wait_closed(self) -> None:
        return None

    async def close(self) -> None:
        self.closed = True


async def _pong(ctx: Any, interaction: Any) -> None:
    await interaction.response.send_message("pong")


async def _echo(ctx: Any, message: Any, args: list[str]) -> None:
    await message.reply(" ".join(args))


@pytest.fixture
def bot(settings: WardenSettings) -> WardenBot:
    return WardenBot(settings, client=FakeClient())  # type: ignore[arg-type]


def test_framework_events_registered_once(bot: WardenBot) -> None:
    bot.register_framework_events()
    bot.register_framework_events()
    registry = bot.ctx.registry
    assert registry.subscribed_events() == ["interaction", "message", "ready"]
    assert all(d.owner == FRAMEWORK_OWNER for d in registry.events_for("message"))
    assert len(registry.events_for("message")) == 1
    assert sorted(bot.client.subscriptions) == ["interaction", "message", "ready"]


@pytest.mark.anyio
async def test_upstream_events_reach_dispatcher_and_router(bot: WardenBot) -> None:
    bot.register_framework_events()
    registry = bot.ctx.registry
    registry.register_command(
        CommandDescriptor(name="ping", invoke=_echo, invoke_interaction=_pong), "core"
    )

    interaction = make_slash("ping", user=FakeUser(id=3))
    await bot.client.subscriptions["interaction"](interaction)
    assert interaction.response.sent[0]["content"] == "pong"

    message = FakeMessage("!ping a b", author=FakeUser(id=4))
    await bot.client.subscriptions["message"](message)
    assert message.reply_texts == ["a b"]


@pytest.mark.anyio
async def test_ready_syncs_commands_once(bot: WardenBot) -> None:
    bot.register_framework_events()
    bot.ctx.registry.register_command(
        CommandDescriptor(name="ping", invoke_interaction=_pong), "core"
    )

    await bot.client.subscriptions["ready"]()

    http = bot.client.client.http
    http.bulk_upsert_global_commands.assert_awaited_once()
    assert bot.client.presence == ["commands"]
    assert "ready" not in bot.client.subscriptions


@pytest.mark.anyio
async def test_sync_uses_dev_guild(settings: WardenSettings) -> None:
    client = FakeClient()
    scoped = settings.model_copy(update={"dev_guild_id": 7, "application_id": 5})
    bot = WardenBot(scoped, client=client)  # type: ignore[arg-type]

    assert await bot.sync_commands() == 0
    client.client.http.bulk_upsert_guild_commands.assert_awaited_once_with(5, 7, [])


@pytest.mark.anyio
async def test_sync_skipped_without_application_id(bot: WardenBot) -> None:
    bot.client.application_id = None
    assert await bot.sync_commands() is None


@pytest.mark.anyio
async def test_run_loads_plugins_and_unloads_on_exit(bot: WardenBot) -> None:
    bot.ctx.loader.load_all = AsyncMock(return_value=[])  # type: ignore[method-assign]
    bot.ctx.loader.unload_all = AsyncMock(return_value=[])  # type: ignore[method-assign]

    await bot.run()

    bot.ctx.loader.load_all.assert_awaited_once()
    bot.ctx.loader.unload_all.assert_awaited_once()
    assert bot.client.started
    assert bot.client.closed


@pytest.mark.anyio
async def test_runtime_plugin_changes_resync_after_ready(
    bot: WardenBot, plugins_dir: Path
) -> None:
    shutil.copytree(
        BUILTIN_PLUGINS_DIR / "core",
        plugins_dir / "core",
        ignore=shutil.ignore_patterns("__pycache__"),
    )
    write_plugin(plugins_dir, "dice", command_plugin("dice", ["roll"]))
    bot.register_framework_events()
    assert await bot.ctx.loader.load_one("core")
    owner = FakeUser(id=OWNER_ID)
    http = bot.client.client.http

    early = FakeMessage("!plugins load dice", author=owner)
    await bot.client.subscriptions["message"](early)
    assert early.reply_texts == ["Plugin `dice` loaded."]
    http.bulk_upsert_global_commands.assert_not_awaited()

    await bot.client.subscriptions["ready"]()
    http.bulk_upsert_global_commands.reset_mock()

    unload = FakeMessage("!plugins unload dice", author=owner)
    await bot.client.subscriptions["message"](unload)
    synced = http.bulk_upsert_global_commands.await_args.args[1]
    assert "roll" not in [item["name"] for item in synced]

    reload = FakeMessage("!plugins load dice", author=owner)
    await bot.client.subscriptions["message"](reload)
    synced = http.bulk_upsert_global_commands.await_args.args[1]
    assert "roll" in [item["name"] for item in synced]
    assert http.bulk_upsert_global_commands.await_count == 2
