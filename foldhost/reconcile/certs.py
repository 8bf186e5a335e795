"""Certificate reconciliation: one idempotent issuance call per subject.

Whether a subject already has a valid certificate is the issuer's concern;
this module only calls it for every subject and keeps going past failures.
Certificates of removed apps are left alone.
"""

import logging

from foldhost.reconcile.fanout import for_each
from foldhost.reconcile.state import CertOutcome, Step

logger = logging.getLogger(__name__)

FAILED = "failed"


async def reconcile_certificates(ca, subjects, root_domain, email="", concurrency=1, timeout=300):
    """Ensure a certificate for every subject.

    Returns:
        (outcomes, failures): one CertOutcome per subject in input order, and
        the StepFailures for subjects whose issuance failed.
    """

    async def _issue(subject):
        logger.info(f"  Certificate for {subject}...")
        return await ca.ensure_certificate(subject, root_domain, email)

    results = await for_each(Step.ISSUE_CERTS, subjects, _issue, concurrency=concurrency, timeout=timeout)

    outcomes, failures = [], []
    for subject, status, failure in results:
        if failure is not None:
            outcomes.append(CertOutcome(subject=subject, status=FAILED, message=failure.message))
            failures.append(failure)
        else:
            outcomes.append(CertOutcome(subject=subject, status=status.value))
    return outcomes, failures


async def observe_certificates(transport, subjects, layout) -> frozenset[str]:
    """Subjects whose certificate chain is present on the target.

    Queried once per run, after issuance. Raises TransportError when the
    target cannot answer.
    """
    present = set()
    for subject in subjects:
        if await transport.exists(f"{layout.certs_live}/{subject}/fullchain.pem"):
            present.add(subject)
    return frozenset(present)
