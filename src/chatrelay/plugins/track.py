from __future__ import annotations

from typing import TYPE_CHECKING

from ..chat import ChatMessage
from ..events import EVENT_REACTION, ChatEvent, ReactionEvent
from ..logging import get_logger

if TYPE_CHECKING:
    from ..bot import BotBuilder

logger = get_logger(__name__)

PROMPT = "tag this with reaction"
ACK_REACTION = "aw_yeah"


class TrackHandler:
    """Posts a message and counts the reactions it collects."""

    name = "track"

    def __init__(self) -> None:
        self.counts: dict[str, int] = {}

    async def on_message(self, msg: ChatMessage) -> None:
        sent = await msg.reply(PROMPT)
        self.counts[sent.timestamp] = 0
        await msg.add_reaction(ACK_REACTION)

    async def on_event(self, event: ChatEvent) -> None:
        data = event.data
        if not isinstance(data, ReactionEvent):
            logger.debug("track.unexpected_event", category=event.category)
            return
        current = self.counts.get(data.timestamp)
        if current is None:
            logger.debug("track.not_tracking", timestamp=data.timestamp)
            return
        if data.removed:
            current = max(current - 1, 0)
        else:
            current += 1
        self.counts[data.timestamp] = current
        # sending waits for an ack read by the same loop that is running us
        event.bot.tasks.detached(
            event.bot.send,
            data.channel,
            data.timestamp,
            f"thx for reaction .... counting {current}",
            name="track.reply",
        )


class TrackPlugin:
    name = "track"

    def register(self, builder: BotBuilder) -> None:
        handler = TrackHandler()
        builder.add_message_handler("track", handler)
        builder.add_event_handler(EVENT_REACTION, handler)
