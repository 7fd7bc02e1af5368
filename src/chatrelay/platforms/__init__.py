from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any

from ..errors import ConfigError
from ..platform import Platform
from .console import ConsolePlatform

PLATFORM_IDS = ("console",)


def open_platform(platform_id: str, **kwargs: Any) -> AbstractAsyncContextManager[Platform]:
    if platform_id == "console":
        return ConsolePlatform(**kwargs)
    available = ", ".join(PLATFORM_IDS)
    raise ConfigError(f"Unknown platform {platform_id!r}. Available: {available}.")


__all__ = ["PLATFORM_IDS", "ConsolePlatform", "open_platform"]
