from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

import anyio

from .auth import AuthHandler, AuthRegistry, ExternalIdentity
from .chat import ChatMessage, ChatTarget, ChatUser
from .correlator import ACK_TIMEOUT_S, SendCorrelator, SentMessage
from .dispatch import Dispatcher
from .errors import InvalidCredentials
from .events import (
    EVENT_CONNECTION,
    EVENT_PRESENCE,
    EVENT_REACTION,
    ChatEvent,
    ConnectionEvent,
    EventBus,
    EventCategory,
    EventHandler,
    PresenceEvent,
    ReactionEvent,
)
from .logging import get_logger
from .options import ActionDraft, ChatOption
from .platform import (
    Connected,
    CredentialsRejected,
    Disconnected,
    IncomingText,
    LatencyReport,
    Platform,
    PlatformEvent,
    PresenceChanged,
    ProtocolError,
    ReactionAdded,
    ReactionRemoved,
    SendAcknowledged,
)
from .router import Action, CommandTable, MessageHandler
from .store import MemoryStore, Store
from .tasks import TaskSpawner

logger = get_logger(__name__)

IGNORED_SUBTYPES = frozenset({"message_replied"})


class Plugin(Protocol):
    name: str

    def register(self, builder: BotBuilder) -> None: ...


def _require_method(handler: object, method: str, capability: str) -> None:
    if not callable(getattr(handler, method, None)):
        raise TypeError(
            f"{handler!r} cannot be registered as {capability}: missing {method}()"
        )


class NameDirectory:
    """Display names for user and channel ids, replaced wholesale on connect."""

    def __init__(self) -> None:
        self._users: Mapping[str, str] = {}
        self._channels: Mapping[str, str] = {}

    def reset(self, users: Mapping[str, str], channels: Mapping[str, str]) -> None:
        self._users = dict(users)
        self._channels = dict(channels)

    def name_for_id(self, item_id: str) -> str | None:
        name = self._users.get(item_id)
        if name is not None:
            return name
        return self._channels.get(item_id)


class BotBuilder:
    """Collects registrations; ``build`` closes them and returns the bot."""

    def __init__(
        self,
        *,
        store: Store | None = None,
        ack_timeout: float = ACK_TIMEOUT_S,
    ) -> None:
        self._table = CommandTable()
        self._bus = EventBus()
        self._auth = AuthRegistry()
        self._store: Store = store if store is not None else MemoryStore()
        self._ack_timeout = ack_timeout
        self._plugins: list[Plugin] = []
        self._built = False

    @property
    def store(self) -> Store:
        return self._store

    def _check_open(self) -> None:
        if self._built:
            raise RuntimeError("registration is closed once the bot is built")

    def add_message_handler(
        self, pattern: str, handler: MessageHandler, *options: ChatOption
    ) -> Action:
        self._check_open()
        _require_method(handler, "on_message", "a message handler")
        draft = ActionDraft()
        for option in options:
            option(draft)
        return self._table.register(pattern, handler, draft.args, draft.flags)

    def set_default_handler(self, handler: MessageHandler) -> Action:
        self._check_open()
        _require_method(handler, "on_message", "a message handler")
        return self._table.set_default(handler)

    def add_event_handler(self, category: EventCategory, handler: EventHandler) -> None:
        self._check_open()
        _require_method(handler, "on_event", "an event handler")
        self._bus.subscribe(category, handler)

    def add_auth_handler(self, handler: AuthHandler) -> None:
        self._check_open()
        _require_method(handler, "authorize", "an auth handler")
        self._auth.add(handler)

    def add_plugin(self, plugin: Plugin) -> None:
        self._check_open()
        plugin.register(self)
        self._plugins.append(plugin)
        logger.debug("plugin.registered", plugin=plugin.name)

    def build(self) -> ChatBot:
        self._check_open()
        self._built = True
        self._table.freeze()
        self._bus.freeze()
        self._auth.freeze()
        return ChatBot(
            table=self._table,
            bus=self._bus,
            auth=self._auth,
            store=self._store,
            ack_timeout=self._ack_timeout,
            plugins=tuple(self._plugins),
        )


class ChatBot:
    def __init__(
        self,
        *,
        table: CommandTable,
        bus: EventBus,
        auth: AuthRegistry,
        store: Store,
        ack_timeout: float = ACK_TIMEOUT_S,
        plugins: tuple[Plugin, ...] = (),
    ) -> None:
        self.table = table
        self.bus = bus
        self.plugins = plugins
        self.tasks = TaskSpawner()
        self.dispatcher = Dispatcher(table)
        self.names = NameDirectory()
        self._auth = auth
        self._store = store
        self._ack_timeout = ack_timeout
        self._platform: Platform | None = None
        self._correlator: SendCorrelator | None = None

    @property
    def store(self) -> Store:
        return self._store

    @property
    def correlator(self) -> SendCorrelator:
        if self._correlator is None:
            raise RuntimeError("bot is not attached to a platform")
        return self._correlator

    @property
    def platform(self) -> Platform:
        if self._platform is None:
            raise RuntimeError("bot is not attached to a platform")
        return self._platform

    def attach(self, platform: Platform) -> None:
        self._platform = platform
        self._correlator = SendCorrelator(platform, timeout=self._ack_timeout)

    def name_for_id(self, item_id: str) -> str | None:
        return self.names.name_for_id(item_id)

    def target_for(self, item_id: str) -> ChatTarget:
        return ChatTarget(id=item_id, name=self.name_for_id(item_id) or "")

    async def serve(self, platform: Platform) -> None:
        """Read platform events until the stream ends.

        Messages are dispatched on their own tasks; every other event is
        handled before the next one is read. Tasks still running when the
        stream ends are cancelled.
        """
        self.attach(platform)
        logger.info(
            "serve.start",
            patterns=list(self.table.patterns),
            plugins=[plugin.name for plugin in self.plugins],
        )
        rejected: InvalidCredentials | None = None
        async with anyio.create_task_group() as tg:
            self.tasks.bind(tg)
            try:
                async for event in platform.events():
                    await self.handle_event(event)
            except InvalidCredentials as exc:
                rejected = exc
            finally:
                self.tasks.bind(None)
                tg.cancel_scope.cancel()
        if rejected is not None:
            raise rejected
        logger.info("serve.stop")

    async def handle_event(self, event: PlatformEvent) -> None:
        match event:
            case Connected(users=users, channels=channels):
                self.names.reset(users, channels)
                logger.info("platform.connected", users=len(users), channels=len(channels))
                await self.emit(EVENT_CONNECTION, ConnectionEvent(connected=True))
            case Disconnected(reason=reason):
                logger.warning("platform.disconnected", reason=reason)
                await self.emit(EVENT_CONNECTION, ConnectionEvent(connected=False))
            case IncomingText():
                if event.subtype in IGNORED_SUBTYPES:
                    return
                self.tasks.detached(
                    self.dispatcher.dispatch,
                    self.build_message(event),
                    name="dispatch",
                )
            case PresenceChanged(user_id=user_id, presence=presence):
                await self.emit(
                    EVENT_PRESENCE,
                    PresenceEvent(status=presence, user=self.target_for(user_id)),
                )
            case LatencyReport(latency_s=latency_s):
                logger.info("platform.latency", latency_s=latency_s)
            case ProtocolError(message=message):
                logger.error("platform.error", error=message)
            case CredentialsRejected(message=message):
                logger.error("platform.invalid_credentials", error=message)
                raise InvalidCredentials(message)
            case ReactionAdded() | ReactionRemoved():
                await self.emit(
                    EVENT_REACTION,
                    ReactionEvent(
                        timestamp=event.timestamp,
                        user=self.target_for(event.user_id),
                        channel=self.target_for(event.channel_id),
                        reaction=event.reaction,
                        removed=isinstance(event, ReactionRemoved),
                    ),
                )
            case SendAcknowledged(local_id=local_id, timestamp=timestamp):
                await self.correlator.acknowledge(local_id, timestamp)
            case _:
                logger.debug("platform.ignored", event_type=type(event).__name__)

    async def emit(self, category: EventCategory, data: object) -> None:
        await self.bus.publish(category, ChatEvent(bot=self, category=category, data=data))

    def build_message(self, event: IncomingText) -> ChatMessage:
        user = ChatUser(id=event.user_id, name=self.name_for_id(event.user_id) or "")
        channel_name = self.name_for_id(event.channel_id) or ""
        if event.is_private:
            channel_name = user.name
        return ChatMessage(
            bot=self,
            text=event.text,
            channel=ChatTarget(id=event.channel_id, name=channel_name),
            user=user,
            timestamp=event.timestamp,
            thread_timestamp=event.thread_timestamp,
            is_private=event.is_private,
        )

    async def send(
        self, target: ChatTarget, thread_id: str | None, text: str
    ) -> SentMessage:
        return await self.correlator.send(target, thread_id, text)

    async def send_privately(
        self, user: ChatUser, text: str, thread_id: str | None = None
    ) -> SentMessage:
        channel_id = await self.platform.open_direct_channel(user.id)
        return await self.send(ChatTarget(id=channel_id, name=user.name), thread_id, text)

    async def react(self, channel: ChatTarget, timestamp: str, reaction: str) -> None:
        await self.platform.add_reaction(
            channel_id=channel.id, timestamp=timestamp, reaction=reaction
        )

    async def unreact(self, channel: ChatTarget, timestamp: str, reaction: str) -> None:
        await self.platform.remove_reaction(
            channel_id=channel.id, timestamp=timestamp, reaction=reaction
        )

    async def auth_user(self, user: ChatUser, site: str, role: str) -> ExternalIdentity:
        return await self._auth.authorize(user, site, role)
