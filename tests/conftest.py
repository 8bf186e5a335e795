"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys

import pytest

from foldhost.config import DeployParams
from foldhost.errors import TransportError
from foldhost.provisioning.types import (
    CertificateAuthorityClient,
    CertStatus,
    ContainerRuntimeClient,
    TransportClient,
)

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))

COMPOSE_YAML = "services:\n  web:\n    build: .\n    ports:\n      - \"${PORT}:3000\"\n"


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the foldhost CLI as a subprocess."""

    def _run(*args, env=None):
        full_env = {**os.environ, **(env or {})}
        for var in ("FOLDHOST_DOMAIN", "FOLDHOST_SERVER", "FOLDHOST_SSH_KEY", "LETSENCRYPT_EMAIL"):
            if env is None or var not in env:
                full_env.pop(var, None)
        result = subprocess.run(
            [sys.executable, "-m", "foldhost.foldhost", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=full_env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


@pytest.fixture
def make_repo(tmp_path):
    """Return a factory that lays out a repository of app folders.

    ``static`` and ``containerized`` are folder names; extra entries in
    ``files`` map relative paths to contents.
    """

    def _make(static=(), containerized=(), files=None):
        root = tmp_path / "repo"
        root.mkdir(exist_ok=True)
        for name in static:
            (root / name).mkdir()
            (root / name / "index.html").write_text(f"<h1>{name}</h1>\n")
        for name in containerized:
            (root / name).mkdir()
            (root / name / "docker-compose.yml").write_text(COMPOSE_YAML)
        for rel, content in (files or {}).items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return str(root)

    return _make


@pytest.fixture
def make_params():
    """Return a factory for validated-looking DeployParams pointing at a local root."""

    def _make(local_root, **kwargs):
        kwargs.setdefault("domain", "example.com")
        kwargs.setdefault("server", "203.0.113.10")
        return DeployParams(local_root=local_root, **kwargs)

    return _make


# ── In-memory clients ───────────────────────────────────────────────


class FakeTransport(TransportClient):
    """Target host held in memory: a file dict, a symlink dict and a command log.

    ``failures`` maps a command substring to (rc, stderr); the first match wins.
    ``nginx_test_rc`` is what the staged-config test (`nginx -t -c ...`) returns,
    ``live_test_rc`` what a plain `nginx -t` after the swap returns.
    """

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.links = {}
        self.commands = []
        self.failures = {}
        self.nginx_test_rc = 0
        self.live_test_rc = 0
        self.synced = []
        self.sync_error = None

    def _scripted(self, command):
        for pattern, (rc, stderr) in self.failures.items():
            if pattern in command:
                return rc, "", stderr
        return None

    async def run(self, command, timeout=None):
        self.commands.append(command)
        scripted = self._scripted(command)
        if scripted is not None:
            return scripted
        if "nginx -t -c" in command:
            return self._nginx_test(self.nginx_test_rc)
        if command == "nginx -t":
            return self._nginx_test(self.live_test_rc)
        return 0, "", ""

    def _nginx_test(self, rc):
        return rc, "", "" if rc == 0 else "nginx: [emerg] invalid directive"

    async def write_file(self, path, content):
        self.commands.append(f"write {path}")
        scripted = self._scripted(f"write {path}")
        if scripted is not None:
            raise TransportError(f"write {path}", scripted[0], scripted[2])
        self.files[path] = content

    async def sync_files(self, local_root, remote_root):
        self.commands.append(f"sync {local_root} -> {remote_root}")
        if self.sync_error is not None:
            raise self.sync_error
        self.synced.append((local_root, remote_root))

    async def exists(self, path):
        self.commands.append(f"test -e {path}")
        return path in self.files

    async def copy(self, src, dst):
        await self.check(f"cp -p {src} {dst}")
        self.files[dst] = self.files[src]

    async def move(self, src, dst):
        await self.check(f"mv -f {src} {dst}")
        self.files[dst] = self.files.pop(src)

    async def symlink(self, target, link):
        await self.check(f"ln -sfn {target} {link}")
        self.links[link] = target

    async def remove(self, path):
        await self.check(f"rm -f {path}")
        self.files.pop(path, None)
        self.links.pop(path, None)

    def ran(self, fragment):
        return any(fragment in c for c in self.commands)


class FakeAuthority(CertificateAuthorityClient):
    """Issues on first request, reports ALREADY_VALID afterwards.

    Issued chains are written into ``files`` (a FakeTransport's file dict)
    under the default live directory.
    """

    def __init__(self, failing=(), files=None):
        self.failing = set(failing)
        self.files = files if files is not None else {}
        self.valid = set()
        self.requests = []

    async def ensure_certificate(self, subject, root_domain, email=""):
        self.requests.append(subject)
        if subject in self.failing:
            raise TransportError(f"certbot -d {subject}", 1, "rate limited")
        if subject in self.valid:
            return CertStatus.ALREADY_VALID
        self.valid.add(subject)
        self.files[f"/etc/letsencrypt/live/{subject}/fullchain.pem"] = "chain"
        return CertStatus.ISSUED


class FakeRuntime(ContainerRuntimeClient):
    """Tracks running identities; ``failing`` identities raise on start."""

    def __init__(self, running=(), failing=()):
        self.running = set(running)
        self.failing = set(failing)
        self.started = []
        self.stopped = []
        self.list_error = None

    async def ensure_running(self, app_dir, port, identity):
        if identity in self.failing:
            raise TransportError(f"docker compose -p {identity} up", 1, "build failed")
        self.started.append((app_dir, port, identity))
        self.running.add(identity)

    async def list_running(self):
        if self.list_error is not None:
            raise self.list_error
        return set(self.running)

    async def tear_down(self, identity):
        self.stopped.append(identity)
        self.running.discard(identity)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def authority(transport):
    return FakeAuthority(files=transport.files)


@pytest.fixture
def runtime():
    return FakeRuntime()
