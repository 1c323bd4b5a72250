"""Tests for the py-cord client wrapper and command sync."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import anyio
import pytest

from warden.discord.client import DiscordBotClient, default_intents
from warden.discord.registration import command_payload, sync_application_commands
from warden.model import CommandDescriptor
from warden.registry import ModuleRegistry


async def _noop(*_args: Any) -> None:
    return None


class TestDiscordBotClientInitialization:
    """Test DiscordBotClient initialization."""

    def test_creates_client_with_token(self) -> None:
        client = DiscordBotClient("test-token")
        assert client._token == "test-token"
        assert client._client is None

    def test_properties_before_connect(self) -> None:
        client = DiscordBotClient("test-token")
        assert client.user is None
        assert client.latency_ms is None
        assert client.application_id is None
        assert client.guild_count == 0

    def test_default_intents_include_members_and_content(self) -> None:
        intents = default_intents()
        assert intents.members
        assert intents.message_content


class TestDiscordBotClientSubscriptions:
    """Event forwarding to registered subscriptions."""

    def test_subscribe_and_unsubscribe(self) -> None:
        client = DiscordBotClient("test-token")
        client.subscribe("message", _noop)
        client.subscribe("ready", _noop)
        assert client.subscriptions == ["message", "ready"]
        client.unsubscribe("message")
        client.unsubscribe("missing")
        assert client.subscriptions == ["ready"]

    @pytest.mark.anyio
    async def test_forward_schedules_callback(self) -> None:
        client = DiscordBotClient("test-token")
        received: list[tuple[Any, ...]] = []
        done = anyio.Event()

        async def callback(*args: Any) -> None:
            received.append(args)
            done.set()

        client.subscribe("message", callback)
        client._forward("message", "payload")
        client._forward("typing", "ignored")
        with anyio.fail_after(1):
            await done.wait()
        assert received == [("payload",)]

    @pytest.mark.anyio
    async def test_gateway_dispatch_reaches_subscription(self) -> None:
        client = DiscordBotClient("test-token")
        gateway = client.client
        callback = AsyncMock()
        client.subscribe("member_join", callback)

        gateway.dispatch("member_join", "member")
        await anyio.sleep(0)
        await anyio.sleep(0)

        callback.assert_awaited_once_with("member")


class TestDiscordBotClientClose:
    """Test DiscordBotClient close method."""

    @pytest.mark.anyio
    async def test_close_without_client_does_nothing(self) -> None:
        client = DiscordBotClient("test-token")
        await client.close()
        assert client._client is None

    @pytest.mark.anyio
    async def test_change_presence_without_client(self) -> None:
        client = DiscordBotClient("test-token")
        await client.change_presence("commands")


class TestCommandSync:
    """Slash command schema payloads and bulk upsert scope."""

    def test_payload_truncates_description(self) -> None:
        command = CommandDescriptor(
            name="help",
            description="x" * 150,
            guild_only=True,
            invoke_interaction=_noop,
            options=({"type": 3, "name": "command", "description": "d"},),
        )
        payload = command_payload(command)
        assert payload["name"] == "help"
        assert len(payload["description"]) == 100
        assert payload["dm_permission"] is False
        assert payload["options"] == [{"type": 3, "name": "command", "description": "d"}]

    def test_payload_falls_back_to_name(self) -> None:
        payload = command_payload(CommandDescriptor(name="ping", invoke_interaction=_noop))
        assert payload["description"] == "ping"
        assert "options" not in payload

    @pytest.mark.anyio
    async def test_sync_only_slash_commands_globally(self) -> None:
        registry = ModuleRegistry()
        registry.register_command(CommandDescriptor(name="ping", invoke_interaction=_noop), "core")
        registry.register_command(CommandDescriptor(name="legacy", invoke=_noop), "core")
        http = MagicMock()
        http.bulk_upsert_global_commands = AsyncMock()

        count = await sync_application_commands(http, registry, 42)

        assert count == 1
        http.bulk_upsert_global_commands.assert_awaited_once()
        app_id, payload = http.bulk_upsert_global_commands.await_args.args
        assert app_id == 42
        assert [item["name"] for item in payload] == ["ping"]

    @pytest.mark.anyio
    async def test_sync_to_dev_guild(self) -> None:
        registry = ModuleRegistry()
        http = MagicMock()
        http.bulk_upsert_guild_commands = AsyncMock()
        http.bulk_upsert_global_commands = AsyncMock()

        await sync_application_commands(http, registry, 42, guild_id=7)

        http.bulk_upsert_guild_commands.assert_awaited_once_with(42, 7, [])
        http.bulk_upsert_global_commands.assert_not_awaited()
