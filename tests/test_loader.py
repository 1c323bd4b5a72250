from __future__ import annotations

import sys
from pathlib import Path

import pytest

from warden.context import FrameworkContext
from warden.errors import PluginInvalidError, PluginLoadError
from warden.model import PluginState
from warden.registry import NullEventSource
from tests.plugin_fixtures import command_plugin, write_plugin


class TestDiscover:
    """Plugin folder discovery."""

    def test_lists_plugin_folders(self, framework: FrameworkContext, plugins_dir: Path) -> None:
        (plugins_dir / "beta").mkdir()
        (plugins_dir / "alpha").mkdir()
        (plugins_dir / ".hidden").mkdir()
        (plugins_dir / "__pycache__").mkdir()
        (plugins_dir / "notes.txt").write_text("x", encoding="utf-8")

        assert framework.loader.discover() == ["alpha", "beta"]

    @pytest.mark.anyio
    async def test_load_all_creates_missing_directory(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        plugins_dir.rmdir()
        assert await framework.loader.load_all() == []
        assert plugins_dir.is_dir()


class TestLoad:
    """Loading plugins from folders."""

    @pytest.mark.anyio
    async def test_load_registers_commands(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(plugins_dir, "greeter", command_plugin("greeter", ["hello"]))

        assert await framework.loader.load_one("greeter")

        record = framework.loader.get("greeter")
        assert record is not None
        assert record.state is PluginState.ACTIVE
        assert record.description == "No description provided"
        assert record.author == "Unknown"
        command = framework.registry.lookup("hello")
        assert command is not None and command.owner == "greeter"

    @pytest.mark.anyio
    async def test_async_initialize_and_submodules(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(
            plugins_dir,
            "multi",
            """
            from .handlers import COMMAND

            name = "multi"
            version = "2.0.0"
            description = "Split across modules"

            async def initialize(ctx):
                ctx.register_command(COMMAND)
            """,
            submodules={
                "handlers": """
                from warden.model import CommandDescriptor

                async def run(ctx, message, args):
                    await message.reply("multi")

                COMMAND = CommandDescriptor(name="multi", invoke=run)
                """
            },
        )

        record = await framework.loader.load_one_or_raise("multi")
        assert record.version == "2.0.0"
        assert record.description == "Split across modules"
        assert "multi" in framework.registry

    @pytest.mark.anyio
    async def test_missing_entry_module(self, framework: FrameworkContext, plugins_dir: Path) -> None:
        (plugins_dir / "empty").mkdir()
        with pytest.raises(PluginLoadError):
            await framework.loader.load_one_or_raise("empty")
        assert not await framework.loader.load_one("empty")

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "body",
        [
            "version = '1.0'\ndef initialize(ctx): pass\n",
            "name = 'x'\ndef initialize(ctx): pass\n",
            "name = 'x'\nversion = '1.0'\n",
            "name = 'x'\nversion = '1.0'\ndef initialize(ctx): pass\nshutdown = 5\n",
            "name = 'warden'\nversion = '1.0'\ndef initialize(ctx): pass\n",
        ],
    )
    async def test_invalid_shape_rejected(
        self, framework: FrameworkContext, plugins_dir: Path, body: str
    ) -> None:
        write_plugin(plugins_dir, "bad", body)
        with pytest.raises(PluginInvalidError):
            await framework.loader.load_one_or_raise("bad")
        assert framework.loader.records() == []
        assert "warden_plugin_bad" not in sys.modules

    @pytest.mark.anyio
    async def test_import_error_is_contained(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(plugins_dir, "broken", "raise RuntimeError('nope')\n")
        write_plugin(plugins_dir, "good", command_plugin("good", ["good"]))

        assert await framework.loader.load_all() == ["good"]

    @pytest.mark.anyio
    async def test_failed_initialize_rolls_back(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(
            plugins_dir,
            "partial",
            """
            from warden.model import CommandDescriptor, EventDescriptor

            name = "partial"
            version = "1.0.0"

            async def _run(*args):
                return None

            def initialize(ctx):
                ctx.register_command(CommandDescriptor(name="half", invoke=_run))
                ctx.register_event(EventDescriptor("member_join", invoke=_run))
                raise RuntimeError("init failed")
            """,
        )

        assert not await framework.loader.load_one("partial")
        assert framework.registry.lookup("half") is None
        assert framework.registry.events_for("member_join") == []
        assert framework.loader.get("partial") is None

    @pytest.mark.anyio
    async def test_loading_active_name_replaces_it(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(plugins_dir, "one", command_plugin("same", ["first"]))
        write_plugin(plugins_dir, "two", command_plugin("same", ["second"]))

        assert await framework.loader.load_one("one")
        assert await framework.loader.load_one("two")

        assert framework.registry.lookup("first") is None
        assert framework.registry.lookup("second") is not None
        assert [r.folder for r in framework.loader.records()] == ["two"]


class TestUnloadReload:
    """Unloading and reloading."""

    @pytest.mark.anyio
    async def test_unload_removes_everything(
        self, settings, plugins_dir: Path
    ) -> None:
        source = NullEventSource()
        framework = FrameworkContext(settings, source=source)
        write_plugin(
            plugins_dir,
            "watcher",
            """
            from warden.model import CommandDescriptor, EventDescriptor

            name = "watcher"
            version = "1.0.0"
            stopped = []

            async def _run(*args):
                return None

            def initialize(ctx):
                ctx.register_command(
                    CommandDescriptor(name="watch", aliases=frozenset({"w"}), invoke=_run)
                )
                ctx.register_event(EventDescriptor("member_join", invoke=_run))

            async def shutdown(ctx):
                stopped.append(ctx.owner)
            """,
        )
        assert await framework.loader.load_one("watcher")
        module = framework.loader.get("watcher").module
        assert "member_join" in source.subscriptions

        assert await framework.loader.unload("watcher")

        assert module.stopped == ["watcher"]
        assert framework.registry.lookup("watch") is None
        assert framework.registry.lookup("w") is None
        assert "member_join" not in source.subscriptions
        assert "warden_plugin_watcher" not in sys.modules
        assert not await framework.loader.unload("watcher")

    @pytest.mark.anyio
    async def test_shutdown_error_does_not_block_unload(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(
            plugins_dir,
            "grumpy",
            command_plugin("grumpy", ["grump"])
            + "\ndef shutdown(ctx):\n    raise RuntimeError('no')\n",
        )
        await framework.loader.load_one("grumpy")
        assert await framework.loader.unload("grumpy")
        assert framework.registry.lookup("grump") is None

    @pytest.mark.anyio
    async def test_reload_picks_up_source_changes(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(plugins_dir, "live", command_plugin("live", ["old"], version="1.0.0"))
        await framework.loader.load_one("live")

        write_plugin(plugins_dir, "live", command_plugin("live", ["fresh_command"], version="1.1.0"))
        assert await framework.loader.reload("live")

        assert framework.registry.lookup("old") is None
        assert framework.registry.lookup("fresh_command") is not None
        assert framework.loader.get("live").version == "1.1.0"

    @pytest.mark.anyio
    async def test_reload_is_idempotent(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(
            plugins_dir, "stable", command_plugin("stable", ["s"], aliases={"s": ["s2"]})
        )
        await framework.loader.load_one("stable")
        before = {(c.name, c.aliases, c.owner) for c in framework.registry.commands()}

        assert await framework.loader.reload("stable")
        assert await framework.loader.reload("stable")

        after = {(c.name, c.aliases, c.owner) for c in framework.registry.commands()}
        assert before == after

    @pytest.mark.anyio
    async def test_reload_unknown_plugin(self, framework: FrameworkContext) -> None:
        assert not await framework.loader.reload("ghost")

    @pytest.mark.anyio
    async def test_unload_all_and_plugins_info(
        self, framework: FrameworkContext, plugins_dir: Path
    ) -> None:
        write_plugin(plugins_dir, "a", command_plugin("a", ["aa"]))
        write_plugin(plugins_dir, "b", command_plugin("b", ["bb"]))
        await framework.loader.load_all()

        info = framework.loader.plugins_info()
        assert [item["name"] for item in info] == ["a", "b"]
        assert info[0]["version"] == "1.0.0"

        assert sorted(await framework.loader.unload_all()) == ["a", "b"]
        assert len(framework.registry) == 0
