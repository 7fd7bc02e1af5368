from __future__ import annotations

import shlex
from collections.abc import Mapping
from typing import TYPE_CHECKING

from ..chat import ChatMessage
from ..logging import get_logger
from ..options import with_optional_arg
from ..utils.subprocess import run_command

if TYPE_CHECKING:
    from ..bot import BotBuilder

logger = get_logger(__name__)

ENV_PREFIX = "CHATRELAY_ARG_"
RUNNING_REACTION = "timer_clock"
SUCCESS_REACTION = "joy"
FAILURE_REACTION = "cry"
DEFAULT_COMMANDS: Mapping[str, str] = {"uptime": "uptime"}


def envify(key: str) -> str:
    return key.upper().replace("-", "_")


def command_env(msg: ChatMessage) -> dict[str, str]:
    return {f"{ENV_PREFIX}{envify(key)}": value for key, value in msg.args.items()}


class ShellHandler:
    """Runs a fixed command line and posts its output in the thread."""

    def __init__(self, name: str, command: str, *, timeout: float | None = 60.0) -> None:
        self.name = name
        self.command = command
        self.timeout = timeout

    async def on_message(self, msg: ChatMessage) -> None:
        await msg.add_reaction(RUNNING_REACTION)
        msg.spawn(self.execute, msg, name=f"shell:{self.name}")

    async def execute(self, msg: ChatMessage) -> None:
        try:
            await self._execute(msg)
        finally:
            await msg.remove_reaction(RUNNING_REACTION)

    async def _execute(self, msg: ChatMessage) -> None:
        try:
            argv = shlex.split(self.command)
        except ValueError as exc:
            await msg.add_reaction(FAILURE_REACTION)
            await msg.reply_privately(f"error parsing command: `{exc}`")
            return
        if not argv:
            await msg.add_reaction(FAILURE_REACTION)
            await msg.reply_privately("error parsing command: `empty command`")
            return

        env = command_env(msg)
        msg.logger.info("shell.run", command=argv[0], env=sorted(env))
        try:
            result = await run_command(argv, env=env, timeout=self.timeout)
        except (OSError, TimeoutError) as exc:
            await msg.add_reaction(FAILURE_REACTION)
            await msg.reply_privately(f"error running command: `{exc}`")
            return

        if not result.ok:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            await msg.add_reaction(FAILURE_REACTION)
            await msg.reply_privately(f"error running command: `{detail}`")
            return

        await msg.add_reaction(SUCCESS_REACTION)
        await msg.reply_in_thread(f"```\n{result.stdout}\n```")


class ShellPlugin:
    name = "shell"

    def __init__(self, commands: Mapping[str, str] | None = None) -> None:
        self.commands = dict(DEFAULT_COMMANDS if commands is None else commands)

    def register(self, builder: BotBuilder) -> None:
        for pattern, command in self.commands.items():
            builder.add_message_handler(
                pattern,
                ShellHandler(pattern, command),
                with_optional_arg("args", "", "extra text passed as CHATRELAY_ARG_ARGS"),
            )
