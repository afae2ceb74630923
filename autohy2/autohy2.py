#!/usr/bin/env python3
"""Hysteria 2 server installer — CLI entrypoint."""

import argparse

from autohy2.commands.deploy import register_deploy_command
from autohy2.commands.stop import register_stop_command
from autohy2.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Unattended Hysteria 2 server installer")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_deploy_command(subparsers)
    register_stop_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging()
    args.func(args)


if __name__ == "__main__":
    main()
