"""Certbot-backed CertificateAuthorityClient (HTTP-01 via a shared webroot)."""

import logging
import shlex

from foldhost.errors import TransportError
from foldhost.provisioning.types import CertificateAuthorityClient, CertStatus

logger = logging.getLogger(__name__)

# certbot prints this when --keep-until-expiring finds a valid certificate.
_NOT_DUE_MARKER = "not yet due for renewal"


def certbot_command(subject, acme_root, email=""):
    """certonly for one subject; a no-op while its certificate is still valid."""
    email_flag = f"--email {shlex.quote(email)}" if email else "--register-unsafely-without-email"
    return (
        "certbot certonly --webroot"
        f" -w {shlex.quote(acme_root)}"
        f" -d {shlex.quote(subject)}"
        f" --cert-name {shlex.quote(subject)}"
        " --keep-until-expiring --non-interactive --agree-tos"
        f" {email_flag}"
    )


class CertbotAuthority(CertificateAuthorityClient):
    """Issues certificates on the target by running certbot over the transport."""

    def __init__(self, transport, acme_root="/var/www/acme-challenge", timeout=300):
        self.transport = transport
        self.acme_root = acme_root
        self.timeout = timeout

    async def ensure_certificate(self, subject, root_domain, email=""):
        command = certbot_command(subject, self.acme_root, email)
        logger.debug(f"certbot for {subject} (root domain {root_domain})")
        rc, stdout, stderr = await self.transport.run(command, timeout=self.timeout)
        if rc != 0:
            raise TransportError(command, rc, stderr or stdout)
        if _NOT_DUE_MARKER in stdout or _NOT_DUE_MARKER in stderr:
            return CertStatus.ALREADY_VALID
        return CertStatus.ISSUED
