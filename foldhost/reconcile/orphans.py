"""Orphan detection: running services that no longer have a folder."""

import logging

from foldhost.provisioning.compose import compose_project_name
from foldhost.reconcile.fanout import for_each
from foldhost.reconcile.state import Step
from foldhost.topology.types import ObservedState

logger = logging.getLogger(__name__)


async def observe_target(runtime) -> ObservedState:
    """Query the runtime once and freeze the answer for the rest of the run."""
    running = await runtime.list_running()
    return ObservedState(running=frozenset(running))


def desired_identities(desired_names) -> set[str]:
    """Runtime identities the desired containerized apps run under."""
    return {compose_project_name(name) for name in desired_names}


def find_orphans(observed: ObservedState, desired_names) -> list[str]:
    """Running identities with no desired app, sorted.

    Desired names that are not running are simply absent from the result.
    """
    keep = desired_identities(desired_names)
    return sorted(identity for identity in observed.running if identity not in keep)


async def tear_down_orphans(runtime, orphans, concurrency=1, timeout=300):
    """Tear down each orphan; returns the StepFailures of those that failed."""
    if not orphans:
        logger.info("  No orphaned services.")
        return []

    async def _down(identity):
        logger.info(f"  Stopping orphaned: {identity}")
        await runtime.tear_down(identity)

    results = await for_each(Step.STOP_ORPHANS, orphans, _down, concurrency=concurrency, timeout=timeout)
    return [failure for _, _, failure in results if failure is not None]
