from __future__ import annotations

import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import anyio

from chatrelay.bot import ChatBot
from chatrelay.chat import ChatMessage
from chatrelay.events import ChatEvent
from chatrelay.platform import PlatformEvent, SendAcknowledged


class FakePlatform:
    def __init__(self, *, auto_ack: bool = True) -> None:
        self.auto_ack = auto_ack
        self.sent: list[dict[str, Any]] = []
        self.reactions: list[tuple[str, str, str]] = []
        self.removed_reactions: list[tuple[str, str, str]] = []
        self._send, self._receive = anyio.create_memory_object_stream[PlatformEvent](
            max_buffer_size=math.inf
        )

    def feed(self, *events: PlatformEvent) -> None:
        for event in events:
            self._send.send_nowait(event)

    def close(self) -> None:
        self._send.close()

    async def events(self) -> AsyncIterator[PlatformEvent]:
        async for event in self._receive:
            yield event

    async def send_text(
        self,
        *,
        local_id: int,
        channel_id: str,
        thread_id: str | None,
        text: str,
    ) -> None:
        self.sent.append(
            {
                "local_id": local_id,
                "channel_id": channel_id,
                "thread_id": thread_id,
                "text": text,
            }
        )
        if self.auto_ack:
            self.feed(SendAcknowledged(local_id=local_id, timestamp=f"ts-{local_id}"))

    async def open_direct_channel(self, user_id: str) -> str:
        return f"D{user_id}"

    async def add_reaction(self, *, channel_id: str, timestamp: str, reaction: str) -> None:
        self.reactions.append((channel_id, timestamp, reaction))

    async def remove_reaction(
        self, *, channel_id: str, timestamp: str, reaction: str
    ) -> None:
        self.removed_reactions.append((channel_id, timestamp, reaction))

    @property
    def texts(self) -> list[str]:
        return [call["text"] for call in self.sent]

    async def wait_for_sends(self, count: int, timeout: float = 2.0) -> None:
        with anyio.fail_after(timeout):
            while len(self.sent) < count:
                await anyio.sleep(0.01)


class RecordingHandler:
    def __init__(self, name: str = "recorder", error: Exception | None = None) -> None:
        self.name = name
        self.error = error
        self.messages: list[ChatMessage] = []
        self.called = anyio.Event()

    async def on_message(self, msg: ChatMessage) -> None:
        self.messages.append(msg)
        self.called.set()
        if self.error is not None:
            raise self.error


class RecordingEventHandler:
    def __init__(self, name: str = "events", error: Exception | None = None) -> None:
        self.name = name
        self.error = error
        self.events: list[ChatEvent] = []

    async def on_event(self, event: ChatEvent) -> None:
        self.events.append(event)
        if self.error is not None:
            raise self.error


@asynccontextmanager
async def serving(bot: ChatBot, platform: FakePlatform) -> AsyncIterator[None]:
    async with anyio.create_task_group() as tg:
        tg.start_soon(bot.serve, platform)
        try:
            yield
        finally:
            platform.close()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.01)
