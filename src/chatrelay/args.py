from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass

from .errors import BindingError
from .logging import get_logger
from .tokenizer import has_marker, iter_tokens, split_marker

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ArgSpec:
    name: str
    required: bool = False
    default: str = ""
    description: str = ""


def optional_arg(name: str, default: str = "", description: str = "") -> ArgSpec:
    return ArgSpec(name=name, required=False, default=default, description=description)


def required_arg(name: str, description: str = "") -> ArgSpec:
    return ArgSpec(name=name, required=True, description=description)


class ParsedArgs(Mapping[str, str]):
    """Arguments bound for a single action invocation."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ParsedArgs({self._values!r})"

    def string(self, name: str) -> str | None:
        return self._values.get(name)

    def integer(self, name: str) -> int | None:
        value = self._values.get(name)
        if value is None:
            return None
        try:
            return int(value.strip())
        except ValueError:
            logger.debug("args.not_an_integer", name=name, value=value)
            return None

    def boolean(self, name: str) -> bool:
        value = self._values.get(name)
        if value is None:
            return False
        return value.strip().lower() == "true"

    def inclusion(self, name: str, *valid: str) -> str | None:
        value = self._values.get(name)
        if value is None or value not in valid:
            return None
        return value


def _find_spec(remaining: Sequence[ArgSpec], key: str) -> int | None:
    wanted = key.casefold()
    for index, spec in enumerate(remaining):
        if spec.name.casefold() == wanted:
            return index
    return None


def bind_args(specs: Iterable[ArgSpec], raw: str) -> ParsedArgs:
    """Bind the words of ``raw`` to ``specs``.

    ``key=value`` words bind by (case-insensitive) name and may appear in any
    position; unknown names are dropped. Plain words fill the remaining specs
    left to right. Leftover optional specs take their defaults.
    """
    remaining = list(specs)
    values: dict[str, str] = {}
    seen_positional = False

    for token in iter_tokens(raw):
        if not token:
            continue

        if has_marker(token):
            key, value = split_marker(token)
            if seen_positional:
                logger.debug("args.named_after_positional", name=key)
            index = _find_spec(remaining, key)
            if index is None:
                logger.debug("args.unknown_name", name=key)
                continue
            spec = remaining.pop(index)
            values[spec.name] = value
            continue

        if not remaining:
            raise BindingError(f"unexpected argument {token!r}")
        spec = remaining.pop(0)
        values[spec.name] = token
        seen_positional = True

    for spec in remaining:
        if spec.required:
            raise BindingError(f"missing required argument {spec.name}")
        values[spec.name] = spec.default

    return ParsedArgs(values)
