"""Deploy parameters: dataclasses, YAML/env loading and validation."""

import logging
import os
import re
from dataclasses import dataclass, field, fields, replace

import yaml

from foldhost.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".foldhost.yaml"

# Env vars consulted when a value is not given on the command line.
ENV_VARS = {
    "domain": "FOLDHOST_DOMAIN",
    "server": "FOLDHOST_SERVER",
    "ssh_key": "FOLDHOST_SSH_KEY",
    "email": "LETSENCRYPT_EMAIL",
}

_DOMAIN_RE = re.compile(r"^(?=.{1,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


@dataclass(frozen=True)
class RemoteLayout:
    """Paths on the target host."""

    apps_root: str = "/var/www/apps"
    root_content_dir: str = "_root"
    acme_root: str = "/var/www/acme-challenge"
    certs_live: str = "/etc/letsencrypt/live"
    certs_archive: str = "/etc/letsencrypt/archive"
    staged_config: str = "/etc/nginx/sites-available/apps.staged"
    active_config: str = "/etc/nginx/sites-available/apps"
    enabled_link: str = "/etc/nginx/sites-enabled/apps"
    nginx_main_conf: str = "/etc/nginx/nginx.conf"
    # Scratch copy of the main config used to test the staged file before the swap.
    check_conf: str = "/etc/nginx/foldhost-check.conf"
    check_sites_dir: str = "/etc/nginx/foldhost-check.d"

    @property
    def sites_enabled_dir(self) -> str:
        return self.enabled_link.rsplit("/", 1)[0]

    def app_dir(self, app_name: str) -> str:
        return f"{self.apps_root}/{app_name}"

    @property
    def root_content(self) -> str:
        return f"{self.apps_root}/{self.root_content_dir}"

    @property
    def landing_page(self) -> str:
        return f"{self.root_content}/index.html"


@dataclass
class DeployParams:
    """All parameters needed for a single deployment."""

    domain: str = ""
    server: str = ""  # SSH host; defaults to domain
    ssh_user: str = "root"
    ssh_key: str = ""  # empty: let ssh pick its default identity
    ssh_port: int = 22
    email: str = ""  # Let's Encrypt notification address
    local_root: str = "."
    dry_run: bool = False
    concurrency: int = 1
    remote_timeout: int = 900
    layout: RemoteLayout = field(default_factory=RemoteLayout)

    @property
    def host(self) -> str:
        return self.server or self.domain

    @property
    def address(self) -> str:
        """SSH address string (user@host)."""
        return f"{self.ssh_user}@{self.host}" if self.ssh_user else self.host

    def validate(self) -> None:
        """Raise ConfigError for anything that would fail later on the target."""
        if not self.domain:
            raise ConfigError("--domain is required")
        if not _DOMAIN_RE.match(self.domain):
            raise ConfigError(f"Invalid domain: {self.domain!r}")
        if not os.path.isdir(self.local_root):
            raise ConfigError(f"Repository root not found: {self.local_root}")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.remote_timeout <= 0:
            raise ConfigError(f"remote_timeout must be positive, got {self.remote_timeout}")
        if not 0 < self.ssh_port < 65536:
            raise ConfigError(f"Invalid SSH port: {self.ssh_port}")


def load_config_file(path) -> dict:
    """Load an optional YAML config file. A missing file yields {}."""
    if not os.path.isfile(path):
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(DeployParams)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in {path}: {', '.join(unknown)}")
    if "layout" in data:
        layout = data["layout"] or {}
        layout_known = {f.name for f in fields(RemoteLayout)}
        bad = sorted(set(layout) - layout_known)
        if bad:
            raise ConfigError(f"Unknown layout keys in {path}: {', '.join(bad)}")
        data["layout"] = RemoteLayout(**layout)
    return data


def resolve_params(local_root=".", overrides=None, environ=None) -> DeployParams:
    """Merge config file, environment and CLI overrides (highest wins).

    ``overrides`` values of None are treated as "not given".
    """
    environ = os.environ if environ is None else environ
    local_root = os.path.abspath(os.path.expanduser(local_root))

    merged = load_config_file(os.path.join(local_root, CONFIG_FILENAME))
    for key, var in ENV_VARS.items():
        if environ.get(var):
            merged[key] = environ[var]
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    merged["local_root"] = local_root
    if "domain" in merged:
        merged["domain"] = str(merged["domain"]).strip().lower()
    if merged.get("ssh_key"):
        merged["ssh_key"] = os.path.expanduser(merged["ssh_key"])

    try:
        params = DeployParams(**merged)
    except TypeError as e:
        raise ConfigError(str(e)) from e
    logger.debug(f"Resolved deploy params: {replace(params, ssh_key='***' if params.ssh_key else '')}")
    return params
