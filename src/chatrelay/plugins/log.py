from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

import msgspec

from ..chat import ChatMessage
from ..store import ItemNotFound

if TYPE_CHECKING:
    from ..bot import BotBuilder

NAMESPACE = "logs"
SAVE_COMMAND = "log save"
SHOW_COMMAND = "log show"
POP_COMMAND = "log pop"
TIME_FORMAT = "%d %b %y %H:%M"


class LogEntry(msgspec.Struct):
    id: str
    user: str
    text: str
    time: str


def room_log_key(msg: ChatMessage) -> str:
    return f"room:{msg.channel.id}"


def format_entry(entry: LogEntry) -> str:
    return f"{entry.user}[{entry.time}]: {entry.text}"


class RoomLogHandler:
    """Keeps a per-channel log of notes."""

    name = "log"

    async def on_message(self, msg: ChatMessage) -> None:
        namespace = msg.bot.store.namespace(NAMESPACE)
        key = room_log_key(msg)
        if msg.match == SAVE_COMMAND:
            if not msg.raw_args:
                await msg.reply_privately(f"usage: `{SAVE_COMMAND} <text>`")
                return
            entry = LogEntry(
                id=uuid.uuid4().hex,
                user=msg.user.name or msg.user.id,
                text=msg.raw_args,
                time=datetime.now().strftime(TIME_FORMAT),
            )
            await namespace.push(key, entry)
            await msg.add_reaction("memo")
            return

        if msg.match == POP_COMMAND:
            try:
                entry = await namespace.pop(key, LogEntry)
            except ItemNotFound:
                await msg.reply_in_thread("nothing logged here yet")
                return
            await msg.reply_in_thread(f"removed {format_entry(entry)}")
            return

        entries = await namespace.all(key, LogEntry)
        if not entries:
            await msg.reply_in_thread("nothing logged here yet")
            return
        for entry in entries:
            await msg.reply_in_thread(format_entry(entry))


class RoomLogPlugin:
    name = "log"

    def register(self, builder: BotBuilder) -> None:
        handler = RoomLogHandler()
        builder.add_message_handler(SAVE_COMMAND, handler)
        builder.add_message_handler(SHOW_COMMAND, handler)
        builder.add_message_handler(POP_COMMAND, handler)
