"""CLI logging setup: simple %(message)s format for standalone commands."""

import logging
import sys

from autohy2.redact import SecretRedactingFilter


def setup_cli_logging(level=logging.INFO):
    """Configure root logger with plain message format for CLI commands.

    Produces output identical to print(), with secrets redacted.
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
