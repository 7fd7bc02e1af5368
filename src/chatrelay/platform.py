from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Connected:
    users: Mapping[str, str] = field(default_factory=dict)
    channels: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Disconnected:
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class IncomingText:
    channel_id: str
    user_id: str
    text: str
    timestamp: str
    thread_timestamp: str | None = None
    is_private: bool = False
    subtype: str | None = None


@dataclass(frozen=True, slots=True)
class PresenceChanged:
    user_id: str
    presence: str


@dataclass(frozen=True, slots=True)
class LatencyReport:
    latency_s: float


@dataclass(frozen=True, slots=True)
class ProtocolError:
    message: str


@dataclass(frozen=True, slots=True)
class CredentialsRejected:
    message: str = "invalid credentials"


@dataclass(frozen=True, slots=True)
class ReactionAdded:
    user_id: str
    channel_id: str
    timestamp: str
    reaction: str


@dataclass(frozen=True, slots=True)
class ReactionRemoved:
    user_id: str
    channel_id: str
    timestamp: str
    reaction: str


@dataclass(frozen=True, slots=True)
class SendAcknowledged:
    local_id: int
    timestamp: str


type PlatformEvent = (
    Connected
    | Disconnected
    | IncomingText
    | PresenceChanged
    | LatencyReport
    | ProtocolError
    | CredentialsRejected
    | ReactionAdded
    | ReactionRemoved
    | SendAcknowledged
)


class Platform(Protocol):
    """Connection to a messaging platform.

    ``events`` yields every inbound event in arrival order. ``send_text``
    transmits a message tagged with ``local_id``; the platform later echoes the
    id back in a ``SendAcknowledged`` event carrying the delivery timestamp.
    """

    def events(self) -> AsyncIterator[PlatformEvent]: ...

    async def send_text(
        self,
        *,
        local_id: int,
        channel_id: str,
        thread_id: str | None,
        text: str,
    ) -> None: ...

    async def open_direct_channel(self, user_id: str) -> str: ...

    async def add_reaction(
        self, *, channel_id: str, timestamp: str, reaction: str
    ) -> None: ...

    async def remove_reaction(
        self, *, channel_id: str, timestamp: str, reaction: str
    ) -> None: ...
