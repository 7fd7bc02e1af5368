from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import msgspec


def atomic_write_json(path: Path, payload: Any) -> None:
    """Replace ``path`` with the JSON encoding of ``payload`` in one step."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    data = msgspec.json.format(msgspec.json.encode(payload), indent=2)
    with open(tmp_path, "wb") as handle:
        handle.write(data)
        handle.write(b"\n")
    os.replace(tmp_path, path)


def read_json(path: Path, type: type[Any]) -> Any:
    return msgspec.json.decode(path.read_bytes(), type=type)
