"""Stop command: terminate the server started by a previous deploy."""

import asyncio
import sys

from autohy2.commands.deploy import DEFAULT_INSTALL_DIR
from autohy2.deploy import run_stop
from autohy2.provisioning.local import make_run_cmd


def handle_stop(args):
    """Handle the stop command."""
    run_cmd = make_run_cmd(dry_run=args.dry_run)
    if not asyncio.run(run_stop(run_cmd, args.install_dir, dry_run=args.dry_run)):
        sys.exit(1)


def register_stop_command(subparsers):
    """Register the stop command."""
    parser = subparsers.add_parser("stop", help="Stop the server recorded in the pid file")
    parser.add_argument("--install-dir", default=DEFAULT_INSTALL_DIR, help="Installation directory")
    parser.add_argument("--dry-run", action="store_true", help="Print commands without executing")
    parser.set_defaults(func=handle_stop)
