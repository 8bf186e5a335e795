"""Desired-state dataclass types."""

from dataclasses import dataclass, field
from enum import Enum


class AppKind(str, Enum):
    """How a top-level folder is served."""

    STATIC = "static"
    CONTAINERIZED = "containerized"


@dataclass(frozen=True)
class AppRecord:
    """One top-level folder. Identity is the folder name."""

    name: str
    kind: AppKind

    @property
    def is_containerized(self) -> bool:
        return self.kind is AppKind.CONTAINERIZED

    def subject(self, root_domain: str) -> str:
        """DNS name the app is served at (e.g. 'blog.example.com')."""
        return f"{self.name}.{root_domain}"


@dataclass(frozen=True)
class DesiredTopology:
    """Full desired state for one run, built once from the folder layout.

    ``apps`` is sorted by byte-wise name order; port assignment depends on it.
    """

    root_domain: str
    apps: tuple[AppRecord, ...] = ()
    # Folders left out because their name cannot be a subdomain.
    rejected: tuple[str, ...] = ()

    @property
    def names(self) -> list[str]:
        return [app.name for app in self.apps]

    @property
    def static_apps(self) -> list[AppRecord]:
        return [app for app in self.apps if not app.is_containerized]

    @property
    def containerized_apps(self) -> list[AppRecord]:
        return [app for app in self.apps if app.is_containerized]

    @property
    def subjects(self) -> list[str]:
        """Certificate subjects: the root domain first, then every app in order."""
        return [self.root_domain] + [app.subject(self.root_domain) for app in self.apps]


@dataclass(frozen=True)
class PortAssignment:
    """Host port a containerized app is published on."""

    app: str
    port: int


@dataclass(frozen=True)
class PortMap:
    """Lookup view over a list of PortAssignment."""

    assignments: tuple[PortAssignment, ...] = ()

    @classmethod
    def from_assignments(cls, assignments) -> "PortMap":
        return cls(assignments=tuple(assignments))

    def port_for(self, app_name: str) -> int | None:
        """Assigned port, or None for static (or unknown) apps."""
        for assignment in self.assignments:
            if assignment.app == app_name:
                return assignment.port
        return None

    def as_dict(self) -> dict[str, int]:
        return {a.app: a.port for a in self.assignments}


@dataclass(frozen=True)
class ObservedState:
    """Snapshot of what is actually running on the target, queried once per run."""

    running: frozenset[str] = field(default_factory=frozenset)
