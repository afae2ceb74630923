"""Local transport: run commands and write files on this host."""

import asyncio
import contextlib
import logging
import os
import tempfile

from autohy2.errors import FilesystemError
from autohy2.provisioning.shell import DEFAULT_TIMEOUT, CommandSpec, run_command

logger = logging.getLogger(__name__)


def make_run_cmd(dry_run=False):
    """Create a run_cmd callable for local execution.

    The callable accepts either a CommandSpec or a list of tokens.
    """

    async def run_cmd(command, cwd=None, timeout=DEFAULT_TIMEOUT):
        spec = command if isinstance(command, CommandSpec) else CommandSpec(tuple(command), cwd=cwd)
        await run_command(spec, timeout=timeout, dry_run=dry_run)

    return run_cmd


def make_write_file(install_dir, dry_run=False):
    """Create a write_file callable for atomic writes inside install_dir."""

    async def write_file(path, content, mode=None):
        full_path = os.path.join(install_dir, path)
        if dry_run:
            logger.info(f"[dry-run] write {full_path}")
            return full_path
        try:
            _atomic_write(full_path, content, mode)
        except OSError as e:
            raise FilesystemError(f"Cannot write {full_path}: {e}") from e
        logger.info(f"Wrote {full_path}")
        return full_path

    return write_file


def make_dirs(path, dry_run=False):
    """Create path and its parents; an existing directory is reused."""
    if dry_run:
        logger.info(f"[dry-run] mkdir -p {path}")
        return
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Cannot create directory {path}: {e}") from e


def _atomic_write(full_path, content, mode):
    directory = os.path.dirname(full_path) or "."
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{os.path.basename(full_path)}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, full_path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise



def make_fetch(fetcher, dry_run=False):
    """Create an async fetch callable that runs the blocking download in a worker thread."""

    async def fetch(url, name, dest_dir):
        dest = os.path.join(dest_dir, name)
        if dry_run:
            logger.info(f"[dry-run] GET {url} -> extract '{name}' to {dest}")
            return dest
        return await asyncio.to_thread(fetcher.fetch, url, name, dest_dir)

    return fetch
