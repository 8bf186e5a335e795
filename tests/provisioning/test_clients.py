"""Unit tests for the compose runtime, certbot authority and server setup."""

import pytest

from foldhost.config import RemoteLayout
from foldhost.errors import TransportError
from foldhost.provisioning import CertStatus
from foldhost.provisioning.certbot import CertbotAuthority, certbot_command
from foldhost.provisioning.compose import (
    ComposeRuntime,
    compose_project_name,
    down_command,
    list_projects_command,
    up_command,
)
from foldhost.provisioning.remote import BOOTSTRAP_SITE, acme_bootstrap_conf, provision_remote
from foldhost.provisioning.types import TransportClient
from foldhost.topology.classifier import is_valid_label

# ── compose ─────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "name, expected",
    [
        ("api", "api"),
        ("MyAPI", "myapi"),
        ("shop.v2", "shopv2"),
        ("_internal", "internal"),
        ("a-b_c", "a-b_c"),
    ],
)
def test_compose_project_name(name, expected):
    assert compose_project_name(name) == expected


@pytest.mark.parametrize("name", ["api", "shop-v2", "0day", "a"])
def test_project_name_of_app_folder_is_the_folder(name):
    assert is_valid_label(name)
    assert compose_project_name(name) == name


def test_up_command():
    command = up_command("/var/www/apps/api", 3000, "api")
    assert command == (
        "cd /var/www/apps/api && PORT=3000 docker compose -p api up -d --build --remove-orphans"
    )


def test_down_and_list_commands():
    assert down_command("old") == "docker compose -p old down --remove-orphans"
    assert list_projects_command() == "docker ps --format '{{.Label \"com.docker.compose.project\"}}'"


async def test_compose_runtime_lists_unique_projects(transport):
    async def _run(command, timeout=None):
        transport.commands.append(command)
        return 0, "api\napi\n\nshop\n", ""

    transport.run = _run
    runtime = ComposeRuntime(transport)
    assert await runtime.list_running() == {"api", "shop"}


async def test_compose_runtime_start_failure_raises(transport):
    transport.failures["docker compose -p api up"] = (1, "build failed")
    runtime = ComposeRuntime(transport)
    with pytest.raises(TransportError, match="build failed"):
        await runtime.ensure_running("/var/www/apps/api", 3000, "api")


async def test_compose_runtime_tear_down(transport):
    await ComposeRuntime(transport).tear_down("old")
    assert transport.commands == ["docker compose -p old down --remove-orphans"]


# ── certbot ─────────────────────────────────────────────────────────


def test_certbot_command():
    command = certbot_command("api.example.com", "/var/www/acme-challenge", "ops@example.com")
    assert command.startswith("certbot certonly --webroot")
    assert "-w /var/www/acme-challenge" in command
    assert "-d api.example.com" in command
    assert "--cert-name api.example.com" in command
    assert "--keep-until-expiring" in command
    assert "--email ops@example.com" in command


def test_certbot_command_without_email():
    assert "--register-unsafely-without-email" in certbot_command("example.com", "/acme")


async def test_certbot_issued(transport):
    authority = CertbotAuthority(transport)
    assert await authority.ensure_certificate("example.com", "example.com") is CertStatus.ISSUED


async def test_certbot_already_valid(transport):
    async def _run(command, timeout=None):
        return 0, "Certificate not yet due for renewal; no action taken.", ""

    transport.run = _run
    authority = CertbotAuthority(transport)
    assert await authority.ensure_certificate("example.com", "example.com") is CertStatus.ALREADY_VALID


async def test_certbot_failure_raises(transport):
    transport.failures["certbot"] = (1, "Challenge failed for domain api.example.com")
    authority = CertbotAuthority(transport)
    with pytest.raises(TransportError, match="Challenge failed"):
        await authority.ensure_certificate("api.example.com", "example.com")


# ── server setup ────────────────────────────────────────────────────


def test_acme_bootstrap_conf():
    conf = acme_bootstrap_conf("/var/www/acme-challenge")
    assert "listen 80 default_server;" in conf
    assert "root /var/www/acme-challenge;" in conf


async def test_provision_remote(transport):
    ok = await provision_remote(transport, RemoteLayout())

    assert ok
    assert transport.commands[0] == "mkdir -p /var/www/apps /var/www/apps/_root /var/www/acme-challenge"
    assert BOOTSTRAP_SITE in transport.files
    assert transport.ran("systemctl enable --now docker nginx")
    # `command -v` succeeds on the fake, so nothing is installed.
    assert not transport.ran("apt-get")


async def test_provision_remote_installs_missing(transport):
    transport.failures["command -v certbot"] = (1, "")
    ok = await provision_remote(transport, RemoteLayout())
    assert ok
    assert transport.ran("apt-get install -y certbot")
    assert not transport.ran("get.docker.com")


async def test_provision_remote_reports_failure(transport):
    transport.failures["systemctl enable"] = (1, "Unit docker.service not found")
    assert not await provision_remote(transport, RemoteLayout())


# ── transport helpers ───────────────────────────────────────────────


@pytest.mark.parametrize("rc, expected", [(0, True), (1, False)])
async def test_exists_reads_test_exit_code(transport, rc, expected):
    transport.failures["test -e"] = (rc, "")
    assert await TransportClient.exists(transport, "/etc/nginx/sites-available/apps") is expected


@pytest.mark.parametrize("rc", [124, 255])
async def test_exists_raises_when_unanswered(transport, rc):
    transport.failures["test -e"] = (rc, "ssh: Connection reset by peer")
    with pytest.raises(TransportError, match=f"rc={rc}"):
        await TransportClient.exists(transport, "/etc/nginx/sites-available/apps")
