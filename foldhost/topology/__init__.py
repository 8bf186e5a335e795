"""Desired topology: folder classification and port allocation."""

from foldhost.topology.classifier import (
    COMPOSE_FILENAMES,
    RESERVED_NAMES,
    ROOT_CONTENT_DIR,
    build_topology,
    classify_apps,
)
from foldhost.topology.ports import BASE_PORT, allocate_ports
from foldhost.topology.types import (
    AppKind,
    AppRecord,
    DesiredTopology,
    ObservedState,
    PortAssignment,
    PortMap,
)

__all__ = [
    "AppKind",
    "AppRecord",
    "BASE_PORT",
    "COMPOSE_FILENAMES",
    "DesiredTopology",
    "ObservedState",
    "PortAssignment",
    "PortMap",
    "RESERVED_NAMES",
    "ROOT_CONTENT_DIR",
    "allocate_ports",
    "build_topology",
    "classify_apps",
]
