"""Docker Compose-backed ContainerRuntimeClient.

Each containerized app runs as one compose project whose name is the app's
identity, so "running identities" are the compose project labels on live
containers.
"""

import logging
import re
import shlex

from foldhost.provisioning.types import ContainerRuntimeClient

logger = logging.getLogger(__name__)

PROJECT_LABEL = "com.docker.compose.project"

_INVALID_PROJECT_CHARS = re.compile(r"[^a-z0-9_-]")


def compose_project_name(app_name):
    """Normalize a folder name the way compose normalizes project names."""
    name = _INVALID_PROJECT_CHARS.sub("", app_name.lower())
    return name.lstrip("_-")


def up_command(app_dir, port, identity):
    return (
        f"cd {shlex.quote(app_dir)}"
        f" && PORT={port} docker compose -p {shlex.quote(identity)} up -d --build --remove-orphans"
    )


def down_command(identity):
    return f"docker compose -p {shlex.quote(identity)} down --remove-orphans"


def list_projects_command():
    return f"docker ps --format '{{{{.Label \"{PROJECT_LABEL}\"}}}}'"


class ComposeRuntime(ContainerRuntimeClient):
    """Drives `docker compose` on the target over the transport."""

    def __init__(self, transport, timeout=900):
        self.transport = transport
        self.timeout = timeout

    async def ensure_running(self, app_dir, port, identity):
        logger.debug(f"compose project {identity}: {app_dir} on port {port}")
        await self.transport.check(up_command(app_dir, port, identity), timeout=self.timeout)

    async def list_running(self):
        stdout = await self.transport.check(list_projects_command(), timeout=60)
        return {line.strip() for line in stdout.splitlines() if line.strip()}

    async def tear_down(self, identity):
        logger.debug(f"compose project {identity}: down")
        await self.transport.check(down_command(identity), timeout=300)
