"""Plan command: show what a deploy would do, without contacting the server."""

import logging
import sys

from foldhost.commands.args import add_target_arguments, exit_config_error, params_from_args
from foldhost.errors import ConfigError
from foldhost.reconcile.proxy import generate_proxy_config
from foldhost.topology.classifier import build_topology
from foldhost.topology.ports import allocate_ports
from foldhost.topology.types import PortMap

logger = logging.getLogger(__name__)


def handle_plan(args):
    """Handle the plan command."""
    try:
        params = params_from_args(args)
        topology = build_topology(params.local_root, params.domain)
    except ConfigError as e:
        exit_config_error(args.parser, e)

    ports = PortMap.from_assignments(allocate_ports(list(topology.apps)))

    if args.render:
        sys.stdout.write(generate_proxy_config(topology, ports, params.layout))
        return

    logger.info(f"\nhttps://{params.domain}  (root content)")
    for app in topology.apps:
        port = ports.port_for(app.name)
        target = f"127.0.0.1:{port}" if port is not None else params.layout.app_dir(app.name)
        logger.info(f"https://{app.subject(params.domain)}  {app.kind.value} -> {target}")
    logger.info(f"\nCertificates: {len(topology.subjects)} subject(s)")


def register_plan_command(subparsers):
    """Register the plan subcommand."""
    parser = subparsers.add_parser("plan", help="Show detected apps, ports and routing without deploying")
    add_target_arguments(parser, remote=False)
    parser.add_argument("--render", action="store_true", help="Print the generated nginx config")
    parser.set_defaults(func=handle_plan, parser=parser)
