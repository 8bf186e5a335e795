"""Remote server setup: install nginx, Docker, certbot and the ACME bootstrap site."""

import logging
import shlex

from foldhost.errors import TransportError

logger = logging.getLogger(__name__)

BOOTSTRAP_SITE = "/etc/nginx/sites-available/acme-bootstrap"
BOOTSTRAP_LINK = "/etc/nginx/sites-enabled/acme-bootstrap"


def acme_bootstrap_conf(acme_root):
    """HTTP-only catch-all that answers ACME challenges before any cert exists."""
    return f"""# Managed by foldhost - ACME challenges for hosts without a TLS block yet
server {{
    listen 80 default_server;
    listen [::]:80 default_server;
    server_name _;
    location /.well-known/acme-challenge/ {{ root {acme_root}; }}
    location / {{ return 404; }}
}}
"""


async def provision_remote(transport, layout):
    """Ensure the target is ready for deployment.

    Steps (each checks before installing):
    1. Create the apps, root-content and ACME webroot directories
    2. Install nginx, Docker and certbot if not found
    3. Install the ACME bootstrap site and drop the nginx default site
    4. Enable services and reload nginx

    Returns:
        True if every step succeeded.
    """
    ok = True

    async def _step(command, timeout=600):
        nonlocal ok
        rc, _, stderr = await transport.run(command, timeout=timeout)
        if rc != 0:
            logger.error(f"Setup step failed: {command}\n{stderr.strip()}")
            ok = False
        return rc

    # 1. Directories
    dirs = " ".join(shlex.quote(d) for d in (layout.apps_root, layout.root_content, layout.acme_root))
    await _step(f"mkdir -p {dirs}")

    # 2. Packages
    rc, _, _ = await transport.run("command -v nginx")
    if rc != 0:
        logger.info("Installing nginx...")
        await _step("DEBIAN_FRONTEND=noninteractive apt-get update && DEBIAN_FRONTEND=noninteractive apt-get install -y nginx", timeout=1200)

    rc, _, _ = await transport.run("command -v docker")
    if rc != 0:
        logger.info("Installing Docker...")
        await _step("curl -fsSL https://get.docker.com | sh", timeout=1200)

    rc, _, _ = await transport.run("command -v certbot")
    if rc != 0:
        logger.info("Installing certbot...")
        await _step("DEBIAN_FRONTEND=noninteractive apt-get install -y certbot", timeout=1200)

    # 3. nginx sites
    try:
        await transport.write_file(BOOTSTRAP_SITE, acme_bootstrap_conf(layout.acme_root))
    except TransportError as e:
        logger.error(f"Failed to write {BOOTSTRAP_SITE}: {e}")
        ok = False
    await _step(f"ln -sfn {BOOTSTRAP_SITE} {BOOTSTRAP_LINK} && rm -f /etc/nginx/sites-enabled/default")

    # 4. Services
    await _step("systemctl enable --now docker nginx")
    await _step("nginx -t && systemctl reload nginx")
    return ok
