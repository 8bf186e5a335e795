"""Pipeline states and the in-memory run summary."""

from dataclasses import dataclass, field
from enum import Enum

from foldhost.topology.types import DesiredTopology, PortMap


class Step(str, Enum):
    """Deploy pipeline states, in execution order."""

    SYNC_FILES = "SYNC_FILES"
    DETECT_APPS = "DETECT_APPS"
    START_CONTAINERS = "START_CONTAINERS"
    STOP_ORPHANS = "STOP_ORPHANS"
    ISSUE_CERTS = "ISSUE_CERTS"
    FIX_PERMISSIONS = "FIX_PERMISSIONS"
    RENDER_CONFIG = "RENDER_CONFIG"
    VALIDATE_AND_RELOAD = "VALIDATE_AND_RELOAD"
    DONE = "DONE"
    FAILED = "FAILED"


PIPELINE = [
    Step.SYNC_FILES,
    Step.DETECT_APPS,
    Step.START_CONTAINERS,
    Step.STOP_ORPHANS,
    Step.ISSUE_CERTS,
    Step.FIX_PERMISSIONS,
    Step.RENDER_CONFIG,
    Step.VALIDATE_AND_RELOAD,
]


@dataclass(frozen=True)
class StepFailure:
    """One recoverable failure: which step, which app/subject, why."""

    step: Step
    target: str
    message: str


@dataclass(frozen=True)
class CertOutcome:
    """Issuance result for one subject. status is a CertStatus value or 'failed'."""

    subject: str
    status: str
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "failed"


@dataclass
class DeployResult:
    """Everything a single run learned and did. Never persisted."""

    state: Step = Step.SYNC_FILES
    topology: DesiredTopology | None = None
    ports: PortMap = field(default_factory=PortMap)
    orphans: list[str] = field(default_factory=list)
    cert_outcomes: list[CertOutcome] = field(default_factory=list)
    failures: list[StepFailure] = field(default_factory=list)
    completed: list[Step] = field(default_factory=list)
    fatal_error: str | None = None
    config_staged: bool = False

    @property
    def ok(self) -> bool:
        return self.state is Step.DONE

    def failures_for(self, step: Step) -> list[StepFailure]:
        return [f for f in self.failures if f.step is step]
