"""Server config document and startup script generation.

Everything here is pure: parameters in, document or text out. Writing the
results to disk is the orchestrator's job.
"""

import shlex
from dataclasses import dataclass, field
from pathlib import PurePath

import yaml

from autohy2.deploy.params import DeploymentParameters
from autohy2.errors import RenderError

BINARY_NAME = "hysteria"
CERT_FILE = "server.crt"
KEY_FILE = "server.key"
CONFIG_FILE = "config.yaml"
SCRIPT_FILE = "start.sh"
LOG_FILE = "hy2.log"
PID_FILE = "hy2pid.log"

CONGESTION_CONTROL = "bbr"
MASQUERADE_URL = "https://bing.com"


@dataclass
class TLSConfig:
    cert: str
    key: str


@dataclass
class AuthConfig:
    password: str
    type: str = "password"


@dataclass
class CongestionControlConfig:
    type: str = CONGESTION_CONTROL


@dataclass
class BandwidthConfig:
    up: str
    down: str


@dataclass
class MasqueradeConfig:
    """Reverse-proxy unauthenticated traffic to a real site."""

    type: str = "proxy"
    url: str = MASQUERADE_URL
    rewrite_host: bool = True


@dataclass
class ConfigDocument:
    """Server config. Key names and nesting follow the server's config.yaml."""

    listen: str
    tls: TLSConfig
    auth: AuthConfig
    bandwidth: BandwidthConfig
    congestion_control: CongestionControlConfig = field(default_factory=CongestionControlConfig)
    masquerade: MasqueradeConfig = field(default_factory=MasqueradeConfig)

    def to_dict(self) -> dict:
        return {
            "listen": self.listen,
            "tls": {"cert": self.tls.cert, "key": self.tls.key},
            "auth": {"type": self.auth.type, "password": self.auth.password},
            "congestion_control": {"type": self.congestion_control.type},
            "bandwidth": {"up": self.bandwidth.up, "down": self.bandwidth.down},
            "masquerade": {
                "type": self.masquerade.type,
                "proxy": {"url": self.masquerade.url, "rewriteHost": self.masquerade.rewrite_host},
            },
        }


def _require_absolute(install_dir) -> PurePath:
    path = PurePath(install_dir)
    if not path.is_absolute():
        raise RenderError(f"Installation directory must be absolute, got '{install_dir}'")
    return path


def render_config(params: DeploymentParameters, install_dir) -> ConfigDocument:
    """Map parameters onto a ConfigDocument with absolute cert and key paths."""
    base = _require_absolute(install_dir)
    return ConfigDocument(
        listen=f":{params.port}",
        tls=TLSConfig(cert=str(base / CERT_FILE), key=str(base / KEY_FILE)),
        auth=AuthConfig(password=params.password),
        bandwidth=BandwidthConfig(up=params.bandwidth_up, down=params.bandwidth_down),
    )


def dump_config(document: ConfigDocument) -> str:
    """Serialize a ConfigDocument to YAML text, keeping key order."""
    return yaml.safe_dump(document.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True)


def render_startup_script(install_dir) -> str:
    """Build start.sh: run the server detached, log to hy2.log, record its pid.

    The output depends on install_dir only, so re-rendering is byte-stable.
    """
    base = _require_absolute(install_dir)
    return f"""#!/bin/sh

cd {shlex.quote(str(base))} || exit 1

# Detach from the controlling session so the server outlives this shell
setsid nohup ./{BINARY_NAME} server -c {CONFIG_FILE} > {LOG_FILE} 2>&1 < /dev/null &

echo $! > {PID_FILE}
"""
