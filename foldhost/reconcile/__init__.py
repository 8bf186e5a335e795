"""Reconciliation: orphans, certificates, proxy config, landing page, deploy pipeline."""

from foldhost.reconcile.certs import observe_certificates, reconcile_certificates
from foldhost.reconcile.landing import (
    DEFAULT_TEMPLATE,
    build_tokens,
    load_landing_template,
    render_landing,
)
from foldhost.reconcile.orchestrate import activate_config, activate_exclusive, deploy, run_pipeline, setup
from foldhost.reconcile.orphans import find_orphans, observe_target, tear_down_orphans
from foldhost.reconcile.proxy import generate_proxy_config
from foldhost.reconcile.state import (
    PIPELINE,
    CertOutcome,
    DeployResult,
    Step,
    StepFailure,
)

__all__ = [
    "CertOutcome",
    "DEFAULT_TEMPLATE",
    "DeployResult",
    "PIPELINE",
    "Step",
    "StepFailure",
    "activate_config",
    "activate_exclusive",
    "build_tokens",
    "deploy",
    "find_orphans",
    "generate_proxy_config",
    "load_landing_template",
    "observe_certificates",
    "observe_target",
    "reconcile_certificates",
    "render_landing",
    "run_pipeline",
    "setup",
    "tear_down_orphans",
]
