"""Arguments shared by the deploy, setup and plan commands."""

import logging
import os
import sys

from foldhost.config import resolve_params
from foldhost.errors import ConfigError

logger = logging.getLogger(__name__)


def add_target_arguments(parser, remote=True):
    """Register --domain/--root and, for remote commands, the SSH options."""
    parser.add_argument("--domain", default=None, help="Root domain, e.g. example.com (default: $FOLDHOST_DOMAIN)")
    parser.add_argument("--root", default=".", help="Repository root to deploy (default: current directory)")
    if not remote:
        return
    parser.add_argument("--server", default=None, help="SSH host (default: $FOLDHOST_SERVER or the domain)")
    parser.add_argument("--email", default=None, help="Let's Encrypt notification email (default: $LETSENCRYPT_EMAIL)")
    parser.add_argument("--ssh-user", default=None, help="SSH user (default: root)")
    parser.add_argument("--ssh-key", default=None, help="SSH private key path (default: $FOLDHOST_SSH_KEY)")
    parser.add_argument("--ssh-port", type=int, default=None, help="SSH port (default: 22)")
    parser.add_argument("--dry-run", action="store_true", help="Print remote commands without executing")


def params_from_args(args):
    """Resolve DeployParams from config file, env and CLI flags, then validate."""
    overrides = {"domain": args.domain}
    for name in ("server", "email", "ssh_user", "ssh_key", "ssh_port"):
        overrides[name] = getattr(args, name, None)
    if getattr(args, "dry_run", False):
        overrides["dry_run"] = True
    for name in ("concurrency", "remote_timeout"):
        overrides[name] = getattr(args, name, None)

    params = resolve_params(os.path.abspath(args.root), overrides=overrides)
    params.validate()
    return params


def exit_config_error(parser, error: ConfigError):
    """Usage message and exit code 2; nothing has touched the target yet."""
    logger.error(f"Error: {error}\n")
    parser.print_usage(sys.stderr)
    sys.exit(2)
