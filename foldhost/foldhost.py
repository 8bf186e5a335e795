#!/usr/bin/env python3
"""Folder-per-subdomain deploy tool: CLI entrypoint."""

import argparse

from foldhost.commands.deploy import register_deploy_command
from foldhost.commands.plan import register_plan_command
from foldhost.commands.setup import register_setup_command
from foldhost.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Deploy every folder of a repository as <folder>.<domain>")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_setup_command(subparsers)
    register_deploy_command(subparsers)
    register_plan_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
