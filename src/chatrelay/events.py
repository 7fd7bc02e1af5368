"""Fan-out of non-message platform events to subscribed handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

from .chat import ChatTarget

if TYPE_CHECKING:
    from .bot import ChatBot

type EventCategory = Literal["connection", "presence", "reaction"]

EVENT_CONNECTION: EventCategory = "connection"
EVENT_PRESENCE: EventCategory = "presence"
EVENT_REACTION: EventCategory = "reaction"

EVENT_CATEGORIES: frozenset[str] = frozenset(
    {EVENT_CONNECTION, EVENT_PRESENCE, EVENT_REACTION}
)


@dataclass(frozen=True, slots=True)
class ConnectionEvent:
    connected: bool


@dataclass(frozen=True, slots=True)
class PresenceEvent:
    status: str
    user: ChatTarget


@dataclass(frozen=True, slots=True)
class ReactionEvent:
    timestamp: str
    user: ChatTarget
    channel: ChatTarget
    reaction: str
    removed: bool = False


@dataclass(frozen=True, slots=True)
class ChatEvent:
    bot: ChatBot
    category: EventCategory
    data: ConnectionEvent | PresenceEvent | ReactionEvent | Any


class EventHandler(Protocol):
    name: str

    async def on_event(self, event: ChatEvent) -> None: ...


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def subscribe(self, category: EventCategory, handler: EventHandler) -> None:
        if self._frozen:
            raise RuntimeError("event subscriptions are closed once the bot is built")
        if category not in EVENT_CATEGORIES:
            raise ValueError(f"unknown event category {category!r}")
        self._handlers.setdefault(category, []).append(handler)

    def handlers(self, category: str) -> tuple[EventHandler, ...]:
        return tuple(self._handlers.get(category, ()))

    async def publish(self, category: str, event: ChatEvent) -> Exception | None:
        """Deliver ``event`` to the handlers of ``category`` in order.

        Delivery stops at the first handler that raises; that exception is
        returned instead of propagated and the remaining handlers are skipped.
        """
        for handler in self._handlers.get(category, ()):
            try:
                await handler.on_event(event)
            except Exception as exc:  # noqa: BLE001
                return exc
        return None
