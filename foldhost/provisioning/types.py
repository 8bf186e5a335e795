"""Capability interfaces for everything the pipeline does on the target.

Reconciliation code only talks to these, so it can be exercised with
in-memory fakes instead of a live host.
"""

import shlex
from abc import ABC, abstractmethod
from enum import Enum

from foldhost.errors import TransportError


class CertStatus(str, Enum):
    """Result of a successful ensure_certificate call."""

    ISSUED = "issued"
    ALREADY_VALID = "already_valid"


class TransportClient(ABC):
    """Remote shell, file writes and repository sync for one target."""

    @abstractmethod
    async def run(self, command: str, timeout: int | None = None) -> tuple[int, str, str]:
        """Run a shell command on the target and return (returncode, stdout, stderr)."""
        ...

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        """Write content to an absolute path on the target. Raises TransportError."""
        ...

    @abstractmethod
    async def sync_files(self, local_root: str, remote_root: str) -> None:
        """Mirror local_root into remote_root. Raises TransportError."""
        ...

    async def check(self, command: str, timeout: int | None = None) -> str:
        """Run a command, raising TransportError on non-zero exit. Returns stdout."""
        rc, stdout, stderr = await self.run(command, timeout=timeout)
        if rc != 0:
            raise TransportError(command, rc, stderr)
        return stdout

    async def exists(self, path: str) -> bool:
        """True if path exists. Raises TransportError when the answer is unknown.

        `test -e` exits 1 for a missing path; any other non-zero code (ssh's
        255, a timeout) means the command never got an answer.
        """
        command = f"test -e {shlex.quote(path)}"
        rc, _, stderr = await self.run(command)
        if rc == 0:
            return True
        if rc == 1:
            return False
        raise TransportError(command, rc, stderr)

    async def copy(self, src: str, dst: str) -> None:
        """Copy preserving mode and timestamps."""
        await self.check(f"cp -p {shlex.quote(src)} {shlex.quote(dst)}")

    async def move(self, src: str, dst: str) -> None:
        await self.check(f"mv -f {shlex.quote(src)} {shlex.quote(dst)}")

    async def symlink(self, target: str, link: str) -> None:
        await self.check(f"ln -sfn {shlex.quote(target)} {shlex.quote(link)}")

    async def remove(self, path: str) -> None:
        await self.check(f"rm -f {shlex.quote(path)}")


class CertificateAuthorityClient(ABC):
    """Per-subject TLS issuance. Must tolerate repeat calls for a valid subject."""

    @abstractmethod
    async def ensure_certificate(self, subject: str, root_domain: str, email: str = "") -> CertStatus:
        """Make sure subject has a currently-valid certificate. Raises on failure."""
        ...


class ContainerRuntimeClient(ABC):
    """Container lifecycle for containerized apps, keyed by identity."""

    @abstractmethod
    async def ensure_running(self, app_dir: str, port: int, identity: str) -> None:
        """Idempotently build and start the app in app_dir on host port. Raises on failure."""
        ...

    @abstractmethod
    async def list_running(self) -> set[str]:
        """Identities of services currently running on the target."""
        ...

    @abstractmethod
    async def tear_down(self, identity: str) -> None:
        """Stop and remove everything belonging to identity. Raises on failure."""
        ...
