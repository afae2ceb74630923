"""Shell command execution: one child process per call, merged output, timeout."""

import asyncio
import contextlib
import logging
import shlex
from dataclasses import dataclass

from autohy2.errors import CommandNotFound, CommandTimeout, NonZeroExit

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
READ_CHUNK = 64 * 1024


@dataclass(frozen=True)
class CommandSpec:
    """Command-line tokens plus an optional working directory."""

    argv: tuple[str, ...]
    cwd: str | None = None

    def __post_init__(self):
        if not self.argv:
            raise ValueError("CommandSpec requires at least one token")
        # Accept any sequence but store an immutable tuple of strings
        object.__setattr__(self, "argv", tuple(str(a) for a in self.argv))

    def __str__(self):
        return shlex.join(self.argv)


async def run_command(spec: CommandSpec, timeout=DEFAULT_TIMEOUT, dry_run=False):
    """Run a command to completion, streaming its combined output to the log.

    Args:
        spec: command tokens and working directory
        timeout: wall-clock seconds measured from process start
        dry_run: if True, log the command instead of executing it

    Raises:
        CommandTimeout: the command ran past ``timeout``; the child is killed
        NonZeroExit: the command exited with a non-zero status
        CommandNotFound: the executable does not exist
    """
    if dry_run:
        logger.info(f"[dry-run] {spec}")
        return

    logger.info(f"$ {spec}")
    try:
        proc = await asyncio.create_subprocess_exec(
            *spec.argv,
            cwd=spec.cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError:
        raise CommandNotFound(spec.argv) from None

    try:
        await asyncio.wait_for(asyncio.gather(_drain(proc.stdout), proc.wait()), timeout=timeout)
    except TimeoutError:
        logger.error(f"Command timed out after {timeout}s: {spec}")
        await _kill(proc)
        raise CommandTimeout(spec.argv, timeout) from None
    except BaseException:
        await _kill(proc)
        raise

    if proc.returncode != 0:
        raise NonZeroExit(spec.argv, proc.returncode)


def _log_line(raw: bytes):
    logger.info(f"  {raw.decode(errors='replace').rstrip()}")


async def _drain(pipe):
    # Chunked reads: output lines have no length limit
    pending = b""
    while chunk := await pipe.read(READ_CHUNK):
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for line in lines:
            _log_line(line)
        if len(pending) > READ_CHUNK:
            _log_line(pending)
            pending = b""
    if pending:
        _log_line(pending)


async def _kill(proc):
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()
