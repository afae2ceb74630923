"""Deploy command: install and start hysteria on this host."""

import asyncio
import logging
import sys

import httpx

from autohy2.deploy import deploy, fetch_remote_settings, load_settings_file, params_from_properties
from autohy2.deploy.settings import DEFAULT_APPLICATION, DEFAULT_PROFILE
from autohy2.provisioning.platform import DEFAULT_RELEASE_BASE_URL, DEFAULT_VERSION
from autohy2.redact import register_secret

logger = logging.getLogger(__name__)

DEFAULT_INSTALL_DIR = "~/.autohy2"


async def resolve_params(args):
    """Layer settings file, remote settings and CLI flags into DeploymentParameters."""
    properties = {}
    if args.config:
        properties.update(load_settings_file(args.config))
    if args.settings_url:
        properties.update(await fetch_remote_settings(args.settings_url, args.application, args.profile))

    overrides = {
        "port": args.port,
        "password": args.password,
        "fake_domain": args.fake_domain,
        "bandwidth_up": args.bandwidth_up,
        "bandwidth_down": args.bandwidth_down,
    }
    return params_from_properties(properties, overrides)


def handle_deploy(args):
    """Handle the deploy command."""
    asyncio.run(_handle_deploy(args))


async def _handle_deploy(args):
    try:
        params = await resolve_params(args)
    except (ValueError, FileNotFoundError, httpx.HTTPError) as e:
        logger.error(f"Cannot load deployment settings: {e}")
        sys.exit(1)
    register_secret(params.password)

    outcome = await deploy(
        params,
        args.install_dir,
        version=args.version,
        release_base_url=args.release_base_url,
        dry_run=args.dry_run,
    )
    if not outcome.ok:
        logger.error(f"Deployment aborted at step '{outcome.failed_step}'. Fix the cause and re-run.")
        sys.exit(1)


def register_deploy_command(subparsers):
    """Register the deploy command."""
    parser = subparsers.add_parser("deploy", help="Install and start a hysteria server on this host")
    parser.add_argument("--config", default=None, help="YAML settings file (hysteria.deployment.* keys)")
    parser.add_argument("--settings-url", default=None, help="Config server base URL to fetch settings from")
    parser.add_argument("--application", default=DEFAULT_APPLICATION, help="Config server application name")
    parser.add_argument("--profile", default=DEFAULT_PROFILE, help="Config server profile")
    parser.add_argument("--port", type=int, default=None, help="Listen port (UDP)")
    parser.add_argument("--password", default=None, help="Auth password (default: $HY2_PASSWORD)")
    parser.add_argument("--fake-domain", default=None, help="TLS subject / SNI and masquerade host")
    parser.add_argument("--bandwidth-up", default=None, help="Upload bandwidth, e.g. '100 mbps'")
    parser.add_argument("--bandwidth-down", default=None, help="Download bandwidth, e.g. '200 mbps'")
    parser.add_argument("--install-dir", default=DEFAULT_INSTALL_DIR, help="Installation directory")
    parser.add_argument("--version", default=DEFAULT_VERSION, help="hysteria release version")
    parser.add_argument("--release-base-url", default=DEFAULT_RELEASE_BASE_URL, help="Release download base URL")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing")
    parser.set_defaults(func=handle_deploy)
