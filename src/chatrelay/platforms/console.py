"""Line-oriented platform for running a bot from a terminal.

Every stdin line is a message from ``user`` in a private channel; sends are
printed to stdout and acknowledged immediately.
"""

from __future__ import annotations

import itertools
import math
import sys
import time
from collections.abc import AsyncIterator
from typing import Self, TextIO

import anyio
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from ..logging import get_logger
from ..platform import (
    Connected,
    IncomingText,
    PlatformEvent,
    SendAcknowledged,
)

logger = get_logger(__name__)

CONSOLE_CHANNEL = "D-console"


class ConsolePlatform:
    def __init__(
        self,
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        user: str = "console",
    ) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._user = user
        self._ts = itertools.count(1)
        send, receive = anyio.create_memory_object_stream[PlatformEvent](
            max_buffer_size=math.inf
        )
        self._send: MemoryObjectSendStream[PlatformEvent] = send
        self._receive: MemoryObjectReceiveStream[PlatformEvent] = receive
        self._tg: TaskGroup | None = None

    def _timestamp(self) -> str:
        return f"{time.time():.0f}.{next(self._ts):06d}"

    async def __aenter__(self) -> Self:
        self._tg = anyio.create_task_group()
        await self._tg.__aenter__()
        self._send.send_nowait(
            Connected(
                users={self._user: self._user},
                channels={CONSOLE_CHANNEL: self._user},
            )
        )
        self._tg.start_soon(self._read_lines)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._tg is None:
            return
        self._tg.cancel_scope.cancel()
        await self._tg.__aexit__(None, None, None)
        self._tg = None
        self._send.close()

    async def _read_lines(self) -> None:
        lines = anyio.wrap_file(self._stdin)
        async for line in lines:
            text = line.rstrip("\n")
            if not text.strip():
                continue
            self._send.send_nowait(
                IncomingText(
                    channel_id=CONSOLE_CHANNEL,
                    user_id=self._user,
                    text=text,
                    timestamp=self._timestamp(),
                    is_private=True,
                )
            )
        logger.info("console.eof")
        self._send.close()

    async def events(self) -> AsyncIterator[PlatformEvent]:
        async for event in self._receive:
            yield event

    def _write(self, line: str) -> None:
        self._stdout.write(f"{line}\n")
        self._stdout.flush()

    async def send_text(
        self,
        *,
        local_id: int,
        channel_id: str,
        thread_id: str | None,
        text: str,
    ) -> None:
        prefix = f"[{channel_id}]" if thread_id is None else f"[{channel_id}/{thread_id}]"
        self._write(f"{prefix} {text}")
        try:
            self._send.send_nowait(
                SendAcknowledged(local_id=local_id, timestamp=self._timestamp())
            )
        except anyio.ClosedResourceError:
            logger.debug("console.ack_after_close", local_id=local_id)

    async def open_direct_channel(self, user_id: str) -> str:
        _ = user_id
        return CONSOLE_CHANNEL

    async def add_reaction(self, *, channel_id: str, timestamp: str, reaction: str) -> None:
        self._write(f"[{channel_id}] :{reaction}: on {timestamp}")

    async def remove_reaction(
        self, *, channel_id: str, timestamp: str, reaction: str
    ) -> None:
        self._write(f"[{channel_id}] -:{reaction}: on {timestamp}")
