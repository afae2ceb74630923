"""Artifact download: stream a .tar.gz over HTTP and extract one named file.

The response body is never held in memory as a whole. Bytes flow from the
socket through gzip decompression into tar member parsing in fixed-size
chunks, and the scan stops at the first matching member.
"""

import contextlib
import io
import logging
import os
import shutil
import tarfile
import tempfile
import zlib
from pathlib import Path, PurePosixPath

import httpx

from autohy2.errors import ArtifactNotFound, CorruptArchive, FetchFailed, FilesystemError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
CHUNK_SIZE = 64 * 1024


def make_http_client(timeout=DEFAULT_TIMEOUT) -> httpx.Client:
    """Build the HTTP client shared by every download in a run.

    Release hosts answer with redirects to a CDN, so redirects are followed.
    """
    return httpx.Client(timeout=httpx.Timeout(timeout), follow_redirects=True)


class _ChunkStream(io.RawIOBase):
    """Read-only file object over an iterator of byte chunks."""

    def __init__(self, chunks):
        self._chunks = iter(chunks)
        self._pending = b""

    def readable(self):
        return True

    def readinto(self, buffer):
        while not self._pending:
            chunk = next(self._chunks, None)
            if chunk is None:
                return 0
            self._pending = chunk
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n


def iter_tar_members(fileobj):
    """Yield (member, tar) pairs from a gzip tar stream, in archive order.

    The archive is opened in stream mode, so each member's data can only be
    read before advancing to the next member.
    """
    with tarfile.open(fileobj=fileobj, mode="r|gz") as tar:
        for member in tar:
            yield member, tar


def matches(member: tarfile.TarInfo, name: str) -> bool:
    """True if member is a regular file whose last path component is name."""
    return member.isfile() and PurePosixPath(member.name).name == name


def find_member(members, name):
    """Return the first (member, tar) pair matching name, or None."""
    for member, tar in members:
        if matches(member, name):
            return member, tar
    return None


class ArtifactFetcher:
    """Downloads release archives and extracts a single executable from them."""

    def __init__(self, client: httpx.Client, chunk_size=CHUNK_SIZE):
        self.client = client
        self.chunk_size = chunk_size

    def fetch(self, url, name, dest_dir) -> Path:
        """Extract the first archive entry named ``name`` to ``dest_dir/name``.

        An existing file at the destination is replaced only after the new
        content has been fully written.

        Raises:
            FetchFailed: non-200 status, empty body, or a transport error
            CorruptArchive: the body is not a valid gzip tar stream
            ArtifactNotFound: no entry matched ``name``
            FilesystemError: the destination could not be written
        """
        dest = Path(dest_dir) / name
        logger.info(f"Downloading {name} from {url}")
        try:
            with self.client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise FetchFailed(url, f"HTTP {response.status_code} {response.reason_phrase}", response.status_code)
                chunks = _non_empty(response.iter_bytes(self.chunk_size))
                first = next(chunks, None)
                if first is None:
                    raise FetchFailed(url, "empty response body", response.status_code)
                stream = io.BufferedReader(_ChunkStream(_prepend(first, chunks)), buffer_size=self.chunk_size)
                members = iter_tar_members(stream)
                with contextlib.closing(members):
                    found = find_member(members, name)
                    if found is None:
                        raise ArtifactNotFound(url, name)
                    member, tar = found
                    _extract_atomic(tar, member, dest)
        except httpx.HTTPError as e:
            raise FetchFailed(url, str(e) or type(e).__name__) from e
        except (tarfile.TarError, zlib.error, EOFError) as e:
            raise CorruptArchive(f"Malformed archive from {url}: {e}") from e

        logger.info(f"[extract] {member.name} -> {dest}")
        return dest


def _non_empty(chunks):
    return (chunk for chunk in chunks if chunk)


def _prepend(first, rest):
    yield first
    yield from rest


def _extract_atomic(tar, member, dest: Path):
    source = tar.extractfile(member)
    try:
        fd, tmp_path = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.")
    except OSError as e:
        raise FilesystemError(f"Cannot write {dest}: {e}") from e
    try:
        with os.fdopen(fd, "wb") as out:
            shutil.copyfileobj(source, out)
        os.replace(tmp_path, dest)
    except BaseException as e:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        if isinstance(e, OSError):
            raise FilesystemError(f"Cannot write {dest}: {e}") from e
        raise
