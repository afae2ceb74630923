"""Tests for provisioning/local: file writes, directory creation, run_cmd and fetch wrappers."""

import os
import stat

import pytest

from autohy2.errors import FilesystemError, NonZeroExit
from autohy2.provisioning.local import make_dirs, make_fetch, make_run_cmd, make_write_file

# ── make_write_file ──────────────────────────────────────────────


async def test_write_file_writes_content_and_mode(tmp_path):
    write_file = make_write_file(str(tmp_path))
    path = await write_file("start.sh", "#!/bin/sh\n", mode=0o755)

    assert path == str(tmp_path / "start.sh")
    assert (tmp_path / "start.sh").read_text() == "#!/bin/sh\n"
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o755
    assert os.listdir(tmp_path) == ["start.sh"]


async def test_write_file_overwrites(tmp_path):
    (tmp_path / "config.yaml").write_text("old")
    write_file = make_write_file(str(tmp_path))
    await write_file("config.yaml", "new")
    assert (tmp_path / "config.yaml").read_text() == "new"


async def test_write_file_missing_dir_raises(tmp_path):
    write_file = make_write_file(str(tmp_path / "missing"))
    with pytest.raises(FilesystemError):
        await write_file("config.yaml", "x")


async def test_write_file_dry_run(tmp_path, caplog):
    write_file = make_write_file(str(tmp_path), dry_run=True)
    with caplog.at_level("INFO"):
        await write_file("config.yaml", "x")
    assert os.listdir(tmp_path) == []
    assert "[dry-run] write" in caplog.text


# ── make_dirs ────────────────────────────────────────────────────


def test_make_dirs_is_idempotent(tmp_path):
    target = tmp_path / "a" / "b"
    make_dirs(str(target))
    make_dirs(str(target))
    assert target.is_dir()


def test_make_dirs_over_file_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    with pytest.raises(FilesystemError):
        make_dirs(str(blocker / "child"))


# ── make_run_cmd ─────────────────────────────────────────────────


async def test_run_cmd_accepts_token_list():
    run_cmd = make_run_cmd()
    await run_cmd(["true"])
    with pytest.raises(NonZeroExit):
        await run_cmd(["false"])


# ── make_fetch ───────────────────────────────────────────────────


class _RecordingFetcher:
    def __init__(self):
        self.calls = []

    def fetch(self, url, name, dest_dir):
        self.calls.append((url, name, dest_dir))
        return os.path.join(dest_dir, name)


async def test_fetch_runs_fetcher(tmp_path):
    fetcher = _RecordingFetcher()
    fetch = make_fetch(fetcher)
    result = await fetch("https://x/a.tar.gz", "hysteria", str(tmp_path))
    assert fetcher.calls == [("https://x/a.tar.gz", "hysteria", str(tmp_path))]
    assert result == str(tmp_path / "hysteria")


async def test_fetch_dry_run_skips_fetcher(tmp_path, caplog):
    fetcher = _RecordingFetcher()
    fetch = make_fetch(fetcher, dry_run=True)
    with caplog.at_level("INFO"):
        await fetch("https://x/a.tar.gz", "hysteria", str(tmp_path))
    assert fetcher.calls == []
    assert "[dry-run] GET https://x/a.tar.gz" in caplog.text
