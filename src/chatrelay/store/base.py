from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")

NEVER_EXPIRE: datetime | None = None


class ItemNotFound(LookupError):
    pass


@runtime_checkable
class Storable(Protocol):
    def store_id(self) -> str: ...


def expires_at(item: Any) -> float | None:
    """Expiry of ``item`` as a unix timestamp, if the item declares one."""
    hint = getattr(item, "store_expires", None)
    if hint is None:
        return None
    value = hint() if callable(hint) else hint
    if value is NEVER_EXPIRE:
        return None
    return value.timestamp()


class Namespace(Protocol):
    async def find_by_id(self, item_id: str, type: type[T]) -> T: ...

    async def save(self, item: Storable) -> None: ...

    async def delete(self, item_id: str) -> None: ...

    async def push(self, stack: str, item: Any) -> None: ...

    async def pop(self, stack: str, type: type[T]) -> T: ...

    async def all(self, stack: str, type: type[T]) -> list[T]: ...


class Store(Protocol):
    def namespace(self, name: str) -> Namespace: ...
