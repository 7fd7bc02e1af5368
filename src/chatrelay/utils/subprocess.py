from __future__ import annotations

import os
import signal
import subprocess
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import anyio
from anyio.abc import Process

from ..logging import get_logger

logger = get_logger(__name__)

TERMINATE_GRACE_S = 2.0


@dataclass(frozen=True, slots=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def wait_for_process(proc: Process, timeout: float) -> bool:
    with anyio.move_on_after(timeout) as scope:
        await proc.wait()
    return scope.cancel_called


def _signal_process(proc: Process, sig: signal.Signals) -> None:
    if proc.returncode is not None:
        return
    if os.name == "posix" and proc.pid is not None:
        try:
            os.killpg(proc.pid, sig)
            return
        except ProcessLookupError:
            return
        except OSError as e:
            logger.debug(
                "subprocess.signal.failed",
                signal=sig.name,
                error=str(e),
                pid=proc.pid,
            )
    try:
        if sig == signal.SIGTERM:
            proc.terminate()
        else:
            proc.kill()
    except ProcessLookupError:
        return


@asynccontextmanager
async def manage_subprocess(
    cmd: Sequence[str], **kwargs: Any
) -> AsyncIterator[Process]:
    """Open ``cmd``; on exit send SIGTERM, then SIGKILL if it lingers."""
    if os.name == "posix":
        kwargs.setdefault("start_new_session", True)
    proc = await anyio.open_process(cmd, **kwargs)
    try:
        yield proc
    finally:
        if proc.returncode is None:
            with anyio.CancelScope(shield=True):
                _signal_process(proc, signal.SIGTERM)
                timed_out = await wait_for_process(proc, timeout=TERMINATE_GRACE_S)
                if timed_out:
                    _signal_process(proc, signal.SIGKILL)
                    await proc.wait()


async def _read_all(stream: Any | None) -> bytes:
    if stream is None:
        return b""
    chunks: list[bytes] = []
    async for chunk in stream:
        chunks.append(chunk)
    return b"".join(chunks)


async def run_command(
    cmd: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``cmd`` to completion and capture its output."""
    merged_env = dict(os.environ)
    if env:
        merged_env.update(env)
    output: dict[str, bytes] = {}

    async def collect(key: str, stream: Any | None) -> None:
        output[key] = await _read_all(stream)

    async with manage_subprocess(
        cmd,
        env=merged_env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    ) as proc:
        with anyio.fail_after(timeout):
            async with anyio.create_task_group() as tg:
                tg.start_soon(collect, "stdout", proc.stdout)
                tg.start_soon(collect, "stderr", proc.stderr)
            returncode = await proc.wait()

    logger.debug("subprocess.finished", cmd=cmd[0], returncode=returncode)
    return CommandResult(
        returncode=returncode,
        stdout=output.get("stdout", b"").decode("utf-8", errors="replace"),
        stderr=output.get("stderr", b"").decode("utf-8", errors="replace"),
    )
