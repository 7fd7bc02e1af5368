from __future__ import annotations

from .base import NEVER_EXPIRE, ItemNotFound, Namespace, Storable, Store
from .json_file import JsonFileStore
from .memory import MemoryStore, StoreNamespace

__all__ = [
    "NEVER_EXPIRE",
    "ItemNotFound",
    "JsonFileStore",
    "MemoryStore",
    "Namespace",
    "Storable",
    "Store",
    "StoreNamespace",
]
