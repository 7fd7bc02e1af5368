from __future__ import annotations

from functools import partial

import anyio
import typer

from . import __version__
from .bot import BotBuilder, ChatBot
from .errors import ConfigError, InvalidCredentials
from .logging import get_logger, setup_logging
from .platforms import PLATFORM_IDS, open_platform
from .plugins import list_plugin_ids, register_plugins
from .settings import RelaySettings, build_store, load_settings

logger = get_logger(__name__)


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _exit_config_error(exc: ConfigError) -> None:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=1) from exc


def build_bot(settings: RelaySettings) -> ChatBot:
    builder = BotBuilder(
        store=build_store(settings.store),
        ack_timeout=settings.ack_timeout,
    )
    enabled = register_plugins(builder, settings.plugins.enabled)
    logger.info("plugins.enabled", plugins=enabled)
    return builder.build()


async def _serve(bot: ChatBot, platform_id: str) -> None:
    async with open_platform(platform_id) as platform:
        await bot.serve(platform)


def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    _ = version


def run(
    platform: str | None = typer.Option(
        None,
        "--platform",
        help=f"Platform to attach to ({', '.join(PLATFORM_IDS)}).",
    ),
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log debug details to stderr.",
    ),
) -> None:
    """Register the enabled plugins and serve until the platform goes away."""
    overrides: dict[str, object] = {}
    if platform is not None:
        overrides["platform"] = platform
    if debug:
        overrides["debug"] = True
    try:
        settings = load_settings(**overrides)
        setup_logging(debug=settings.debug)
        bot = build_bot(settings)
        anyio.run(partial(_serve, bot, settings.platform))
    except ConfigError as exc:
        _exit_config_error(exc)
    except InvalidCredentials as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def plugins_cmd() -> None:
    """List the builtin plugins."""
    try:
        enabled = set(load_settings().plugins.enabled)
    except ConfigError as exc:
        _exit_config_error(exc)
        return
    typer.echo("plugins:")
    for plugin_id in list_plugin_ids():
        status = ""
        if enabled:
            status = " enabled" if plugin_id in enabled else " disabled"
        typer.echo(f"  {plugin_id}{status}")


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        no_args_is_help=True,
        help="Command routing runtime for chat bots.",
    )
    app.callback()(app_main)
    app.command(name="run")(run)
    app.command(name="plugins")(plugins_cmd)
    return app


def main() -> None:
    app = create_app()
    app()


if __name__ == "__main__":
    main()
