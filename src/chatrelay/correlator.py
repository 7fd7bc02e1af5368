from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Protocol

import anyio

from .chat import ChatTarget
from .errors import SendTimeout, TransportError
from .logging import get_logger

logger = get_logger(__name__)

ACK_TIMEOUT_S = 10.0


class TextSender(Protocol):
    async def send_text(
        self,
        *,
        local_id: int,
        channel_id: str,
        thread_id: str | None,
        text: str,
    ) -> None: ...


@dataclass(frozen=True, slots=True)
class SentMessage:
    text: str
    target: ChatTarget
    local_id: int
    timestamp: str


@dataclass(slots=True)
class PendingSend:
    local_id: int
    target: ChatTarget
    text: str
    done: anyio.Event = field(default_factory=anyio.Event)
    timestamp: str | None = None
    abandoned: bool = False

    def resolve(self, timestamp: str) -> None:
        if self.done.is_set():
            return
        self.timestamp = timestamp
        self.done.set()


class SendCorrelator:
    """Matches outbound sends with the platform's delivery acknowledgements.

    A send that is not acknowledged in time fails with ``SendTimeout`` but its
    entry stays registered, so a late acknowledgement is still consumed (and
    removed) when it shows up. Entries whose acknowledgement never arrives are
    never evicted.
    """

    def __init__(self, sender: TextSender, *, timeout: float = ACK_TIMEOUT_S) -> None:
        if timeout <= 0:
            raise ValueError("ack timeout must be positive")
        self._sender = sender
        self._timeout = timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingSend] = {}
        self._lock = anyio.Lock()

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def pending_ids(self) -> tuple[int, ...]:
        return tuple(self._pending)

    def _next_id_locked(self) -> int:
        while True:
            local_id = next(self._ids)
            if local_id not in self._pending:
                return local_id

    async def send(
        self, target: ChatTarget, thread_id: str | None, text: str
    ) -> SentMessage:
        async with self._lock:
            local_id = self._next_id_locked()
            pending = PendingSend(local_id=local_id, target=target, text=text)
            self._pending[local_id] = pending

        try:
            await self._sender.send_text(
                local_id=local_id,
                channel_id=target.id,
                thread_id=thread_id,
                text=text,
            )
        except Exception as exc:
            async with self._lock:
                self._pending.pop(local_id, None)
            logger.error(
                "send.failed",
                local_id=local_id,
                channel_id=target.id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            raise TransportError(f"failed to send message: {exc}") from exc

        with anyio.move_on_after(self._timeout):
            await pending.done.wait()

        if pending.timestamp is None:
            pending.abandoned = True
            logger.warning(
                "send.ack_timeout",
                local_id=local_id,
                channel_id=target.id,
                timeout_s=self._timeout,
            )
            raise SendTimeout(local_id, self._timeout)

        return SentMessage(
            text=text,
            target=target,
            local_id=local_id,
            timestamp=pending.timestamp,
        )

    async def acknowledge(self, local_id: int, timestamp: str) -> bool:
        async with self._lock:
            pending = self._pending.pop(local_id, None)
        if pending is None:
            logger.debug("send.ack_unknown", local_id=local_id)
            return False
        if pending.abandoned:
            logger.debug("send.ack_late", local_id=local_id, timestamp=timestamp)
        pending.resolve(timestamp)
        return True
