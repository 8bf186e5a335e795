"""Deploy command: sync the repository and converge the target toward it."""

import asyncio
import sys

from foldhost.commands.args import add_target_arguments, exit_config_error, params_from_args
from foldhost.errors import ConfigError
from foldhost.reconcile.orchestrate import deploy


def handle_deploy(args):
    """Handle the deploy command."""
    try:
        params = params_from_args(args)
    except ConfigError as e:
        exit_config_error(args.parser, e)

    result = asyncio.run(deploy(params))
    if not result.ok:
        sys.exit(1)


def register_deploy_command(subparsers):
    """Register the deploy subcommand."""
    parser = subparsers.add_parser("deploy", help="Deploy every folder as <folder>.<domain>")
    add_target_arguments(parser)
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Per-app remote operations to run at once (default: 1, sequential)",
    )
    parser.add_argument(
        "--remote-timeout",
        type=int,
        default=None,
        help="Timeout in seconds for each remote operation (default: 900)",
    )
    parser.set_defaults(func=handle_deploy, parser=parser)
