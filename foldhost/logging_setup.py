"""CLI logging setup: plain %(message)s format on stdout."""

import logging
import sys

from foldhost.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure the root logger so log output reads like print().

    The redaction filter sits on the handler, so records from every logger
    pass through it before being written.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
