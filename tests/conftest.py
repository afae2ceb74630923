"""Shared pytest fixtures for all test modules."""

import io
import os
import subprocess
import sys
import tarfile

import httpx
import pytest

from autohy2.deploy.params import DeploymentParameters

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the autohy2 CLI as a subprocess."""

    def _run(*args, env=None):
        full_env = {k: v for k, v in os.environ.items() if k != "HY2_PASSWORD"}
        full_env.update(env or {})
        result = subprocess.run(
            [sys.executable, "-m", "autohy2.autohy2", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=full_env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Unit-test fixtures ──────────────────────────────────────────────


@pytest.fixture
def sample_params():
    """Parameters used across deploy tests."""
    return DeploymentParameters(
        port=443,
        password="abc123",
        fake_domain="news.example.com",
        bandwidth_up="100 mbps",
        bandwidth_down="200 mbps",
    )


@pytest.fixture
def make_targz():
    """Return a factory that builds an in-memory .tar.gz.

    entries: list of (name, bytes) for files, or (name, None) for directories.
    """

    def _make(entries):
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            for name, data in entries:
                info = tarfile.TarInfo(name=name)
                if data is None:
                    info.type = tarfile.DIRTYPE
                    info.mode = 0o755
                    tar.addfile(info)
                else:
                    info.size = len(data)
                    info.mode = 0o755
                    tar.addfile(info, io.BytesIO(data))
        return buf.getvalue()

    return _make


@pytest.fixture
def mock_client():
    """Return a factory for an httpx.Client served by a handler function.

    The returned client records requested URLs in ``client.requested``.
    """
    clients = []

    def _make(handler):
        requested = []

        def _handler(request):
            requested.append(str(request.url))
            return handler(request)

        client = httpx.Client(transport=httpx.MockTransport(_handler), follow_redirects=True)
        client.requested = requested
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()
