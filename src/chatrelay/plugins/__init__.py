from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from ..errors import ConfigError
from .github import GithubPlugin
from .log import RoomLogPlugin
from .shell import ShellPlugin
from .track import TrackPlugin

if TYPE_CHECKING:
    from ..bot import BotBuilder, Plugin

BUILTIN_PLUGINS: dict[str, Callable[[], Plugin]] = {
    "github": GithubPlugin,
    "log": RoomLogPlugin,
    "shell": ShellPlugin,
    "track": TrackPlugin,
}


def list_plugin_ids() -> list[str]:
    return sorted(BUILTIN_PLUGINS)


def register_plugins(builder: BotBuilder, enabled: Iterable[str] = ()) -> list[str]:
    """Register the ``enabled`` builtin plugins (all of them when empty)."""
    ids = list(enabled) or list_plugin_ids()
    unknown = [plugin_id for plugin_id in ids if plugin_id not in BUILTIN_PLUGINS]
    if unknown:
        available = ", ".join(list_plugin_ids())
        raise ConfigError(
            f"Unknown plugin(s): {', '.join(unknown)}. Available: {available}."
        )
    for plugin_id in ids:
        builder.add_plugin(BUILTIN_PLUGINS[plugin_id]())
    return ids


__all__ = ["BUILTIN_PLUGINS", "list_plugin_ids", "register_plugins"]
