"""Deploy orchestration: the ordered step pipeline, failure policy and summary."""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from autohy2.deploy.manifest import (
    BINARY_NAME,
    CERT_FILE,
    CONFIG_FILE,
    KEY_FILE,
    LOG_FILE,
    PID_FILE,
    SCRIPT_FILE,
    dump_config,
    render_config,
    render_startup_script,
)
from autohy2.deploy.params import DeploymentParameters
from autohy2.errors import DeployError, FilesystemError, StepFailed
from autohy2.provisioning.fetch import ArtifactFetcher, make_http_client
from autohy2.provisioning.local import make_dirs, make_fetch, make_run_cmd, make_write_file
from autohy2.provisioning.platform import DEFAULT_RELEASE_BASE_URL, DEFAULT_VERSION, artifact_url, resolve_arch, resolve_os

logger = logging.getLogger(__name__)

SYSCTL_CONF = "/etc/sysctl.d/99-autohy2-bbr.conf"
SYSCTL_SETTINGS = ("net.core.default_qdisc=fq", "net.ipv4.tcp_congestion_control=bbr")
PROCESS_PATTERN = "hysteria server"
CERT_DAYS = 3650


class Criticality(Enum):
    FATAL = "fatal"  # abort the pipeline
    ADVISORY = "advisory"  # warn and continue


class DeployState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class PipelineStep:
    name: str
    criticality: Criticality
    action: Callable[[], Awaitable[None]]


@dataclass
class DeployOutcome:
    """Result of one pipeline run."""

    state: DeployState
    failed_step: str | None = None
    error: StepFailed | None = None
    warnings: list[str] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == DeployState.COMPLETED


class Deployment:
    """One run of the install pipeline against a single installation directory.

    Collaborators are injected as async callables so the pipeline never
    touches subprocess or HTTP APIs itself:

        run_cmd(argv, cwd=None, timeout=60) -> None, raises on failure
        write_file(name, content, mode=None) -> path, relative to install_dir
        fetch(url, name, dest_dir) -> path of the extracted file

    Concurrent runs against the same install_dir are not supported.
    """

    def __init__(
        self,
        params: DeploymentParameters,
        install_dir,
        run_cmd,
        write_file,
        fetch,
        version=DEFAULT_VERSION,
        release_base_url=DEFAULT_RELEASE_BASE_URL,
        dry_run=False,
        as_root=None,
        restart_delay=1.0,
        emit=print,
    ):
        self.params = params
        self.install_dir = os.path.abspath(os.path.expanduser(str(install_dir)))
        self.run_cmd = run_cmd
        self.write_file = write_file
        self.fetch = fetch
        self.version = version
        self.release_base_url = release_base_url
        self.dry_run = dry_run
        self.as_root = (os.geteuid() == 0) if as_root is None else as_root
        self.restart_delay = restart_delay
        self.emit = emit
        self.state = DeployState.NOT_STARTED
        self.step_index = 0

    def _path(self, name):
        return os.path.join(self.install_dir, name)

    def _privileged(self, *argv):
        return list(argv) if self.as_root else ["sudo", "-n", *argv]

    def steps(self) -> list[PipelineStep]:
        fatal, advisory = Criticality.FATAL, Criticality.ADVISORY
        return [
            PipelineStep("Create installation directory", fatal, self.create_install_dir),
            PipelineStep("Enable BBR congestion control", advisory, self.tune_kernel),
            PipelineStep("Download hysteria binary", fatal, self.install_binary),
            PipelineStep("Generate self-signed TLS certificate", fatal, self.generate_certificate),
            PipelineStep("Write server config", fatal, self.write_config),
            PipelineStep("Start hysteria service", fatal, self.start_service),
            PipelineStep("Open firewall port", advisory, self.open_firewall),
        ]

    async def run(self) -> DeployOutcome:
        """Execute every step in order. Stops at the first FATAL failure."""
        steps = self.steps()
        outcome = DeployOutcome(state=DeployState.RUNNING)
        self.state = DeployState.RUNNING
        log_banner(self.params, self.install_dir)

        for index, step in enumerate(steps, start=1):
            self.step_index = index
            logger.info(f"[{index}/{len(steps)}] {step.name}...")
            try:
                await step.action()
            except Exception as e:
                error = _as_deploy_error(e)
                if step.criticality == Criticality.ADVISORY:
                    logger.warning(f"  WARNING: {step.name} failed (continuing): {error}")
                    outcome.warnings.append(f"{step.name}: {error}")
                    continue
                logger.error(f"  FAILED: {step.name}: {error}")
                self.state = DeployState.ABORTED
                outcome.state = DeployState.ABORTED
                outcome.failed_step = step.name
                outcome.error = StepFailed(step.name, error)
                return outcome
            logger.info(f"  OK: {step.name}")
            outcome.completed_steps.append(step.name)

        self.state = DeployState.COMPLETED
        outcome.state = DeployState.COMPLETED
        logger.info("\nDeployment complete.")
        logger.info(f"Follow the server log with: tail -f {self._path(LOG_FILE)}")
        self.emit(format_summary(self.params))
        return outcome

    # ── Steps ───────────────────────────────────────────────────────

    async def create_install_dir(self):
        make_dirs(self.install_dir, dry_run=self.dry_run)

    async def tune_kernel(self):
        lines = " ".join(f"'{s}'" for s in SYSCTL_SETTINGS)
        await self.run_cmd(self._privileged("sh", "-c", f"printf '%s\\n' {lines} > {SYSCTL_CONF}"))
        await self.run_cmd(self._privileged("sysctl", "--system"))

    async def install_binary(self):
        url = artifact_url(self.version, resolve_os(), resolve_arch(), base_url=self.release_base_url)
        await self.fetch(url, BINARY_NAME, self.install_dir)
        await self.run_cmd(["chmod", "+x", self._path(BINARY_NAME)])

    async def generate_certificate(self):
        await self.run_cmd(
            [
                "openssl", "req", "-x509", "-nodes",
                "-newkey", "ec", "-pkeyopt", "ec_paramgen_curve:prime256v1",
                "-keyout", self._path(KEY_FILE),
                "-out", self._path(CERT_FILE),
                "-subj", f"/CN={self.params.fake_domain}",
                "-days", str(CERT_DAYS),
            ],
            cwd=self.install_dir,
        )

    async def write_config(self):
        document = render_config(self.params, self.install_dir)
        # Contains the auth password
        await self.write_file(CONFIG_FILE, dump_config(document), mode=0o600)

    async def start_service(self):
        await self._best_effort("Stop previous instance", self.stop_previous)
        if not self.dry_run and self.restart_delay:
            # Let the OS release the UDP port
            await asyncio.sleep(self.restart_delay)
        await self.write_file(SCRIPT_FILE, render_startup_script(self.install_dir), mode=0o755)
        script = self._path(SCRIPT_FILE)
        await self.run_cmd(["chmod", "+x", script])
        await self.run_cmd([script], cwd=self.install_dir)

    async def stop_previous(self):
        await self.run_cmd(["pkill", "-f", PROCESS_PATTERN])

    async def open_firewall(self):
        await self.run_cmd(self._privileged("ufw", "status"))
        await self.run_cmd(self._privileged("ufw", "allow", f"{self.params.port}/udp"))
        logger.info(f"  Firewall allows {self.params.port}/udp")

    async def _best_effort(self, name, action):
        try:
            await action()
        except Exception as e:
            logger.info(f"  {name}: {_as_deploy_error(e)} (ignored, probably no previous instance)")


def _as_deploy_error(e):
    if isinstance(e, OSError):
        return FilesystemError(str(e))
    return e


def log_banner(params: DeploymentParameters, install_dir):
    logger.info("--- Deployment settings ---")
    logger.info(f"  Port:           {params.port}")
    logger.info(f"  Password:       {params.masked_password()}")
    logger.info(f"  Fake domain:    {params.fake_domain}")
    logger.info(f"  Install dir:    {install_dir}")
    logger.info("---------------------------")


def format_summary(params: DeploymentParameters) -> str:
    """Client connection parameters, ready to copy into a client config."""
    rule = "=" * 72
    return "\n".join(
        [
            "",
            rule,
            "Hysteria 2 node settings (copy into your client)",
            "-" * 72,
            "  Address:        <server public IP>",
            f"  Port:           {params.port}",
            f"  Auth:           {params.password}",
            f"  SNI:            {params.fake_domain}",
            "  Insecure:       true",
            f"  Upload:         {params.bandwidth_up}",
            f"  Download:       {params.bandwidth_down}",
            "-" * 72,
            "The certificate is self-signed: enable 'allow insecure' / skip",
            "certificate verification in the client.",
            rule,
        ]
    )


async def deploy(params: DeploymentParameters, install_dir, version=DEFAULT_VERSION,
                 release_base_url=DEFAULT_RELEASE_BASE_URL, dry_run=False, client=None) -> DeployOutcome:
    """Deploy on this host. Single entry point."""
    install_dir = os.path.abspath(os.path.expanduser(str(install_dir)))
    own_client = client is None
    client = client or make_http_client()
    try:
        deployment = Deployment(
            params,
            install_dir,
            run_cmd=make_run_cmd(dry_run=dry_run),
            write_file=make_write_file(install_dir, dry_run=dry_run),
            fetch=make_fetch(ArtifactFetcher(client), dry_run=dry_run),
            version=version,
            release_base_url=release_base_url,
            dry_run=dry_run,
        )
        return await deployment.run()
    finally:
        if own_client:
            client.close()


async def run_stop(run_cmd, install_dir, dry_run=False) -> bool:
    """Stop the server recorded in the pid file and remove the pid file."""
    pid_path = os.path.join(os.path.abspath(os.path.expanduser(str(install_dir))), PID_FILE)
    if not os.path.isfile(pid_path):
        logger.error(f"No pid file at {pid_path}; is the server deployed here?")
        return False

    try:
        pid = _read_pid(pid_path)
        logger.info(f"Stopping hysteria (pid {pid})...")
        await run_cmd(["kill", pid])
        if not dry_run:
            _remove_pid_file(pid_path)
    except DeployError as e:
        logger.error(f"Stop failed: {e}")
        return False
    logger.info("Stopped.")
    return True


def _read_pid(pid_path) -> str:
    try:
        with open(pid_path) as f:
            raw = f.read().strip()
    except OSError as e:
        raise FilesystemError(f"Cannot read {pid_path}: {e}") from e
    if not raw.isdigit():
        raise FilesystemError(f"Pid file {pid_path} does not contain a process id: {raw!r}")
    return raw


def _remove_pid_file(pid_path):
    try:
        os.remove(pid_path)
    except OSError as e:
        raise FilesystemError(f"Cannot remove {pid_path}: {e}") from e
