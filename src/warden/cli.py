from __future__ import annotations

import tempfile
from pathlib import Path
from typing import NoReturn

import anyio
import typer

from . import __version__
from .config import ConfigError
from .context import FrameworkContext
from .errors import PluginError
from .loader import discover_plugins
from .logging import get_logger, setup_logging
from .settings import WardenSettings, load_settings, load_settings_if_exists, require_token
from .storage import SettingsStore

logger = get_logger(__name__)


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _fail(message: str) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=1)


def _load_settings_optional(config: Path | None) -> WardenSettings:
    try:
        loaded = load_settings_if_exists(config)
    except ConfigError as exc:
        _fail(str(exc))
    if loaded is None:
        return WardenSettings()
    settings, _ = loaded
    return settings


def run_cmd(
    config: Path | None = typer.Option(
        None, "--config", help="Path to warden.toml (default ~/.warden/warden.toml)."
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Connect to Discord and serve commands until interrupted."""
    from .bot import WardenBot

    try:
        settings, config_path = load_settings(config)
        require_token(settings, config_path)
    except ConfigError as exc:
        _fail(str(exc))
    setup_logging(debug=debug, level=settings.log_level)
    logger.info("warden.starting", version=__version__, config=str(config_path))
    bot = WardenBot(settings)
    try:
        anyio.run(bot.run)
    except KeyboardInterrupt:
        logger.info("warden.interrupted")


async def _validate_plugins(settings: WardenSettings, plugins_dir: Path) -> int:
    failures = 0
    with tempfile.TemporaryDirectory(prefix="warden-plugins-") as tmp:
        ctx = FrameworkContext(
            settings,
            store=SettingsStore(Path(tmp) / "state.json"),
            plugins_dir=plugins_dir,
        )
        for folder in ctx.loader.discover():
            try:
                record = await ctx.loader.load_one_or_raise(folder)
            except PluginError as exc:
                failures += 1
                typer.echo(f"  {folder}: error: {exc}")
                continue
            commands = ctx.registry.commands_for(record.name)
            names = ", ".join(cmd.name for cmd in commands) or "(no commands)"
            typer.echo(f"  {folder}: {record.name} {record.version} [{names}]")
        await ctx.loader.unload_all()
    return failures


def plugins_cmd(
    config: Path | None = typer.Option(None, "--config", help="Path to warden.toml."),
    load: bool = typer.Option(
        False,
        "--load/--no-load",
        help="Load plugins to validate and surface import errors.",
    ),
    plugins_dir: Path | None = typer.Option(
        None, "--dir", help="Plugins directory (overrides config)."
    ),
) -> None:
    """List discovered plugins and optionally validate them."""
    settings = _load_settings_optional(config)
    directory = (plugins_dir or settings.plugins_dir).expanduser()
    typer.echo(f"plugins ({directory}):")
    if not directory.is_dir():
        typer.echo("  (directory not found)")
        return
    if not load:
        folders = discover_plugins(directory)
        if not folders:
            typer.echo("  (none)")
        for folder in folders:
            typer.echo(f"  {folder}")
        return

    setup_logging(level="error")
    failures = anyio.run(_validate_plugins, settings, directory)
    if failures:
        typer.echo(f"{failures} plugin(s) failed to load", err=True)
        raise typer.Exit(code=1)


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        invoke_without_command=True,
        help="Discord community bot with loadable plugins.",
    )

    @app.callback()
    def app_main(
        ctx: typer.Context,
        version: bool = typer.Option(
            False,
            "--version",
            help="Show the version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ) -> None:
        if ctx.invoked_subcommand is None:
            typer.echo(ctx.get_help())
            raise typer.Exit()

    app.command(name="run")(run_cmd)
    app.command(name="plugins")(plugins_cmd)
    return app


def main() -> None:
    app = create_app()
    app()
