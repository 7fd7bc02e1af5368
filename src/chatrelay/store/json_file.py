from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

import msgspec

from ..errors import ConfigError
from ..logging import get_logger
from ..utils.json_state import atomic_write_json, read_json
from .memory import STATE_VERSION, MemoryStore, _StoreState

logger = get_logger(__name__)


class JsonFileStore(MemoryStore):
    """Memory store written through to a JSON file after every change."""

    def __init__(self, path: Path, *, clock: Callable[[], float] = time.time) -> None:
        super().__init__(clock=clock)
        self.path = path
        self._state = self._load()

    def _load(self) -> _StoreState:
        if not self.path.exists():
            return _StoreState()
        if not self.path.is_file():
            raise ConfigError(f"Store path {self.path} exists but is not a file.")
        try:
            state = read_json(self.path, _StoreState)
        except (OSError, msgspec.DecodeError) as exc:
            raise ConfigError(f"Failed to read store file {self.path}: {exc}") from exc
        if state.version != STATE_VERSION:
            logger.warning(
                "store.version_mismatch",
                path=str(self.path),
                version=state.version,
                expected=STATE_VERSION,
            )
            return _StoreState()
        return state

    def persist_locked(self) -> None:
        atomic_write_json(self.path, self._state)
