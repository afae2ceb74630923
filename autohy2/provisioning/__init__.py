"""Host-side primitives: subprocess execution, local file writes, artifact download."""

from autohy2.provisioning.fetch import ArtifactFetcher, make_http_client
from autohy2.provisioning.local import make_dirs, make_fetch, make_run_cmd, make_write_file
from autohy2.provisioning.platform import artifact_url, resolve_arch, resolve_os
from autohy2.provisioning.shell import CommandSpec, run_command

__all__ = [
    "ArtifactFetcher",
    "make_http_client",
    "make_dirs",
    "make_fetch",
    "make_run_cmd",
    "make_write_file",
    "artifact_url",
    "resolve_arch",
    "resolve_os",
    "CommandSpec",
    "run_command",
]
