from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from .logging import get_logger

logger = get_logger(__name__)


class TaskGroup(Protocol):
    def start_soon(
        self, func: Callable[..., Awaitable[object]], *args: Any, name: object = None
    ) -> None: ...


class TaskSpawner:
    """Starts handler work either detached or awaited.

    Detached work runs in the bot's task group; the caller gets no result and
    failures are only logged. Awaited work runs on the caller's task.
    """

    def __init__(self, task_group: TaskGroup | None = None) -> None:
        self._task_group = task_group

    @property
    def running(self) -> bool:
        return self._task_group is not None

    def bind(self, task_group: TaskGroup | None) -> None:
        self._task_group = task_group

    def detached(
        self,
        func: Callable[..., Awaitable[object]],
        *args: Any,
        name: str | None = None,
    ) -> None:
        if self._task_group is None:
            raise RuntimeError("cannot spawn tasks before the bot is serving")
        label = name or getattr(func, "__qualname__", repr(func))
        self._task_group.start_soon(self._run_detached, func, args, label, name=label)

    async def awaited(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        return await func(*args)

    async def _run_detached(
        self,
        func: Callable[..., Awaitable[object]],
        args: tuple[Any, ...],
        label: str,
    ) -> None:
        try:
            await func(*args)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "task.detached_failed",
                task=label,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
