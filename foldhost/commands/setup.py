"""Setup command: prepare a fresh server (nginx, Docker, certbot)."""

import asyncio
import sys

from foldhost.commands.args import add_target_arguments, exit_config_error, params_from_args
from foldhost.errors import ConfigError
from foldhost.reconcile.orchestrate import setup


def handle_setup(args):
    """Handle the setup command."""
    try:
        params = params_from_args(args)
        ok = asyncio.run(setup(params))
    except ConfigError as e:
        exit_config_error(args.parser, e)

    if not ok:
        sys.exit(1)


def register_setup_command(subparsers):
    """Register the setup subcommand."""
    parser = subparsers.add_parser("setup", help="Set up a new server (install nginx, Docker, certbot)")
    add_target_arguments(parser)
    parser.set_defaults(func=handle_setup, parser=parser)
