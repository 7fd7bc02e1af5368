from __future__ import annotations

from dataclasses import replace

from .args import bind_args
from .chat import ChatMessage
from .errors import ChatError, ErrorKind, HandlerError, classify
from .logging import bind_run_context, clear_context, get_logger
from .router import Action, CommandTable, Match

logger = get_logger(__name__)

AUTH_PROMPT = (
    "You need to (re)authorize before using this command. "
    "Please link your account and try again."
)
FAILURE_NOTICE = "Sorry, something went wrong while handling your command."


def failure_replies(exc: BaseException, pattern: str | None) -> list[str]:
    """Private messages telling the user why an action failed."""
    match classify(exc):
        case ErrorKind.AUTH_REQUIRED:
            return [AUTH_PROMPT]
        case ErrorKind.PARSE | ErrorKind.BINDING:
            command = f"`{pattern}`" if pattern else "this message"
            return [f"Could not read the arguments for {command}: {exc}"]
        case ErrorKind.TRANSPORT | ErrorKind.HANDLER:
            return [FAILURE_NOTICE, f"error: {exc}"]
    return [FAILURE_NOTICE]


class Dispatcher:
    """Runs the actions matching one inbound message, in registration order."""

    def __init__(self, table: CommandTable) -> None:
        self._table = table

    async def dispatch(self, msg: ChatMessage) -> None:
        match = self._table.match(msg.text)
        if match is None:
            return
        bind_run_context(
            user_id=msg.user.id,
            channel_id=msg.channel.id,
            pattern=match.pattern,
            message_ts=msg.timestamp,
        )
        try:
            for action in match.actions:
                await self.run_action(action, msg, match)
        finally:
            clear_context()

    async def run_action(self, action: Action, msg: ChatMessage, match: Match) -> None:
        action_msg = replace(
            msg,
            match=match.pattern,
            raw_args=match.remainder,
            flags=action.flags,
        )
        try:
            # actions without declared arguments read the remainder as free text
            if action.args:
                action_msg = replace(
                    action_msg, args=bind_args(action.args, match.remainder)
                )
            await action.handler.on_message(action_msg)
        except ChatError as exc:
            await self.report_failure(action_msg, action, exc)
        except Exception as exc:  # noqa: BLE001
            error = HandlerError(action.name, exc)
            await self.report_failure(action_msg, action, error)

    async def report_failure(
        self, msg: ChatMessage, action: Action, exc: Exception
    ) -> None:
        kind = classify(exc)
        cause = exc.cause if isinstance(exc, HandlerError) else exc
        if kind is ErrorKind.HANDLER or kind is ErrorKind.TRANSPORT:
            logger.error(
                "dispatch.action_failed",
                handler=action.name,
                kind=str(kind),
                error=str(exc),
                error_type=cause.__class__.__name__,
                exc_info=exc,
            )
        else:
            logger.info(
                "dispatch.action_rejected",
                handler=action.name,
                kind=str(kind),
                error=str(exc),
            )
        for text in failure_replies(exc, msg.match):
            try:
                await msg.reply_privately(text)
            except Exception as send_exc:  # noqa: BLE001
                logger.warning(
                    "dispatch.report_failed",
                    handler=action.name,
                    error=str(send_exc),
                    error_type=send_exc.__class__.__name__,
                )
                return
