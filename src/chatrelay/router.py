from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from .args import ArgSpec
from .logging import get_logger

if TYPE_CHECKING:
    from .chat import ChatMessage

logger = get_logger(__name__)


class MessageHandler(Protocol):
    name: str

    async def on_message(self, msg: ChatMessage) -> None: ...


@dataclass(frozen=True, slots=True)
class ActionFlags:
    private: bool = False
    mention_required: bool = False


@dataclass(frozen=True, slots=True)
class Action:
    handler: MessageHandler
    args: tuple[ArgSpec, ...] = ()
    flags: ActionFlags = ActionFlags()

    @property
    def name(self) -> str:
        return getattr(self.handler, "name", self.handler.__class__.__name__)


@dataclass(frozen=True, slots=True)
class Match:
    pattern: str | None
    remainder: str
    actions: tuple[Action, ...]


class CommandTable:
    """Command patterns and the actions registered under each of them.

    Patterns are matched as plain prefixes of the message text, in the order
    they were first registered; the first matching pattern wins even when a
    longer registered pattern would also match.
    """

    def __init__(self) -> None:
        self._actions: dict[str, list[Action]] = {}
        self._default: Action | None = None
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def patterns(self) -> tuple[str, ...]:
        return tuple(self._actions)

    @property
    def default(self) -> Action | None:
        return self._default

    def freeze(self) -> None:
        self._frozen = True

    def _check_open(self) -> None:
        if self._frozen:
            raise RuntimeError("command registration is closed once the bot is built")

    def register(
        self,
        pattern: str,
        handler: MessageHandler,
        args: Iterable[ArgSpec] = (),
        flags: ActionFlags | None = None,
    ) -> Action:
        self._check_open()
        if not pattern:
            raise ValueError("command pattern must be a non-empty string")
        action = Action(
            handler=handler,
            args=tuple(args),
            flags=flags if flags is not None else ActionFlags(),
        )
        if pattern not in self._actions:
            for existing in self._actions:
                if existing.startswith(pattern) or pattern.startswith(existing):
                    logger.debug(
                        "router.overlapping_pattern",
                        pattern=pattern,
                        existing=existing,
                    )
        self._actions.setdefault(pattern, []).append(action)
        return action

    def set_default(
        self, handler: MessageHandler, args: Iterable[ArgSpec] = ()
    ) -> Action:
        self._check_open()
        self._default = Action(handler=handler, args=tuple(args))
        return self._default

    def actions_for(self, pattern: str) -> tuple[Action, ...]:
        return tuple(self._actions.get(pattern, ()))

    def match(self, text: str) -> Match | None:
        for pattern, actions in self._actions.items():
            if text.startswith(pattern):
                remainder = text[len(pattern) :].lstrip()
                return Match(pattern=pattern, remainder=remainder, actions=tuple(actions))
        if self._default is not None:
            return Match(pattern=None, remainder=text, actions=(self._default,))
        return None
