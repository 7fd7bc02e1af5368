from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .args import ParsedArgs
from .logging import get_logger

if TYPE_CHECKING:
    from .bot import ChatBot
    from .correlator import SentMessage
    from .router import ActionFlags


@dataclass(frozen=True, slots=True)
class ChatTarget:
    id: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class ChatUser:
    id: str
    name: str = ""
    logger: Any = field(default=None, compare=False, hash=False, repr=False)

    def __post_init__(self) -> None:
        if self.logger is None:
            bound = get_logger("chatrelay.user", user_id=self.id, user=self.name)
            object.__setattr__(self, "logger", bound)


@dataclass(frozen=True, slots=True)
class ChatMessage:
    bot: ChatBot = field(repr=False)
    text: str
    channel: ChatTarget
    user: ChatUser
    timestamp: str
    thread_timestamp: str | None = None
    is_private: bool = False
    match: str | None = None
    raw_args: str = ""
    args: ParsedArgs = field(default_factory=ParsedArgs)
    flags: ActionFlags | None = None

    @property
    def logger(self) -> Any:
        return self.user.logger.bind(channel=self.channel.name or self.channel.id)

    async def reply(self, text: str) -> SentMessage:
        return await self.bot.send(self.channel, None, text)

    async def reply_in_thread(self, text: str) -> SentMessage:
        # stay on the parent thread when the message is already a reply
        thread = self.thread_timestamp or self.timestamp
        return await self.bot.send(self.channel, thread, text)

    async def reply_with_mention(self, text: str) -> SentMessage:
        return await self.bot.send(self.channel, None, f"<@{self.user.id}> {text}")

    async def reply_privately(self, text: str) -> SentMessage:
        return await self.bot.send_privately(self.user, text)

    async def add_reaction(self, reaction: str) -> None:
        await self.bot.react(self.channel, self.timestamp, reaction)

    async def remove_reaction(self, reaction: str) -> None:
        await self.bot.unreact(self.channel, self.timestamp, reaction)

    def spawn(
        self,
        func: Callable[..., Awaitable[object]],
        *args: Any,
        name: str | None = None,
    ) -> None:
        """Run ``func`` detached from the dispatch of this message."""
        self.bot.tasks.detached(func, *args, name=name)

    async def run(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Run ``func`` and wait for its result."""
        return await self.bot.tasks.awaited(func, *args)
