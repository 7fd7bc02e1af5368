from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, TypeVar

import anyio
import msgspec

from ..logging import get_logger
from .base import ItemNotFound, Storable, expires_at

logger = get_logger(__name__)

T = TypeVar("T")

STATE_VERSION = 1


class _Record(msgspec.Struct, forbid_unknown_fields=False):
    value: Any
    expires_at: float | None = None


class _NamespaceState(msgspec.Struct, forbid_unknown_fields=False):
    items: dict[str, _Record] = msgspec.field(default_factory=dict)
    lists: dict[str, list[Any]] = msgspec.field(default_factory=dict)


class _StoreState(msgspec.Struct, forbid_unknown_fields=False):
    version: int = STATE_VERSION
    namespaces: dict[str, _NamespaceState] = msgspec.field(default_factory=dict)


def _decode(value: Any, type: type[T]) -> T:
    try:
        return msgspec.convert(value, type=type)
    except msgspec.ValidationError as exc:
        raise ValueError(f"stored value does not match {type.__name__}: {exc}") from exc


class StoreNamespace:
    def __init__(self, store: MemoryStore, name: str) -> None:
        self._store = store
        self.name = name

    async def find_by_id(self, item_id: str, type: type[T]) -> T:
        async with self._store.lock:
            record = self._store.record_locked(self.name, item_id)
            if record is None:
                raise ItemNotFound(f"{self.name}/{item_id}")
            value = record.value
        return _decode(value, type)

    async def save(self, item: Storable) -> None:
        record = _Record(value=msgspec.to_builtins(item), expires_at=expires_at(item))
        async with self._store.lock:
            state = self._store.namespace_locked(self.name)
            state.items[item.store_id()] = record
            self._store.persist_locked()

    async def delete(self, item_id: str) -> None:
        async with self._store.lock:
            state = self._store.namespace_locked(self.name)
            if state.items.pop(item_id, None) is not None:
                self._store.persist_locked()

    async def push(self, stack: str, item: Any) -> None:
        value = msgspec.to_builtins(item)
        async with self._store.lock:
            state = self._store.namespace_locked(self.name)
            state.lists.setdefault(stack, []).append(value)
            self._store.persist_locked()

    async def pop(self, stack: str, type: type[T]) -> T:
        async with self._store.lock:
            state = self._store.namespace_locked(self.name)
            items = state.lists.get(stack)
            if not items:
                raise ItemNotFound(f"{self.name}/{stack}")
            value = items.pop(0)
            if not items:
                state.lists.pop(stack, None)
            self._store.persist_locked()
        return _decode(value, type)

    async def all(self, stack: str, type: type[T]) -> list[T]:
        async with self._store.lock:
            state = self._store.namespace_locked(self.name)
            values = list(state.lists.get(stack, ()))
        return [_decode(value, type) for value in values]


class MemoryStore:
    """Namespaced key/value records plus FIFO lists, kept in memory."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._state = _StoreState()
        self.lock = anyio.Lock()

    def namespace(self, name: str) -> StoreNamespace:
        return StoreNamespace(self, name)

    def namespace_locked(self, name: str) -> _NamespaceState:
        state = self._state.namespaces.get(name)
        if state is None:
            state = _NamespaceState()
            self._state.namespaces[name] = state
        return state

    def record_locked(self, namespace: str, item_id: str) -> _Record | None:
        state = self._state.namespaces.get(namespace)
        if state is None:
            return None
        record = state.items.get(item_id)
        if record is None:
            return None
        if record.expires_at is not None and record.expires_at <= self._clock():
            logger.debug("store.expired", namespace=namespace, item_id=item_id)
            state.items.pop(item_id, None)
            self.persist_locked()
            return None
        return record

    def persist_locked(self) -> None:
        return None
