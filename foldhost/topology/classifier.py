"""Directory classifier: repository folders -> typed app records."""

import logging
import os
import re

from foldhost.errors import ConfigError
from foldhost.topology.types import AppKind, AppRecord, DesiredTopology

logger = logging.getLogger(__name__)

ROOT_CONTENT_DIR = "_root"

# Folders that are never apps (dot-directories are excluded separately).
RESERVED_NAMES = frozenset({"node_modules", "server-setup", ROOT_CONTENT_DIR})

# Any of these directly inside a folder makes it a containerized app.
COMPOSE_FILENAMES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)

# Lowercase DNS label: the folder name becomes both a hostname and a path in the nginx config.
_LABEL_RE = re.compile(r"[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?")


def is_reserved(name, reserved=RESERVED_NAMES):
    """True for dot-directories and tooling/root-content names."""
    return name.startswith(".") or name in reserved


def is_valid_label(name):
    return _LABEL_RE.fullmatch(name) is not None


def has_compose_file(app_dir):
    """True if app_dir directly contains a recognized compose descriptor."""
    return any(os.path.isfile(os.path.join(app_dir, name)) for name in COMPOSE_FILENAMES)


def classify_apps(root, reserved=RESERVED_NAMES, rejected=None) -> list[AppRecord]:
    """Scan the top level of root and return one AppRecord per app folder.

    Non-directory entries are ignored. Folders whose name is not a lowercase
    DNS label are skipped with a warning and, if given, appended to the
    ``rejected`` list. Output is sorted by byte-wise name order so that port
    allocation is reproducible across machines.
    """
    if not os.path.isdir(root):
        raise ConfigError(f"Repository root not found: {root}")

    apps = []
    for entry in os.scandir(root):
        if not entry.is_dir() or is_reserved(entry.name, reserved):
            continue
        if not is_valid_label(entry.name):
            logger.warning(f"Skipping '{entry.name}': not a valid subdomain label (a-z, 0-9, '-')")
            if rejected is not None:
                rejected.append(entry.name)
            continue
        kind = AppKind.CONTAINERIZED if has_compose_file(entry.path) else AppKind.STATIC
        apps.append(AppRecord(name=entry.name, kind=kind))

    apps.sort(key=lambda app: app.name)
    return apps


def build_topology(root, root_domain, reserved=RESERVED_NAMES) -> DesiredTopology:
    """Build the immutable desired topology for this run."""
    rejected = []
    apps = classify_apps(root, reserved=reserved, rejected=rejected)
    topology = DesiredTopology(root_domain=root_domain, apps=tuple(apps), rejected=tuple(sorted(rejected)))
    logger.info(
        f"Found {len(apps)} apps: {len(topology.static_apps)} static, "
        f"{len(topology.containerized_apps)} containerized"
    )
    return topology
