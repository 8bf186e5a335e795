"""SSH-backed TransportClient."""

import logging
import shlex

from foldhost.errors import TransportError
from foldhost.provisioning.shell import rsync_args, run_shell_cmd
from foldhost.provisioning.ssh_transport import make_run_cmd, make_write_file
from foldhost.provisioning.types import TransportClient

logger = logging.getLogger(__name__)


class SshTransport(TransportClient):
    """Runs commands over ssh, writes files with scp, syncs with rsync."""

    def __init__(self, address, ssh_key="", ssh_port=22, dry_run=False, timeout=600):
        self.address = address
        self.ssh_key = ssh_key
        self.ssh_port = ssh_port
        self.dry_run = dry_run
        self.timeout = timeout
        self._run_cmd = make_run_cmd(address, ssh_key, ssh_port, dry_run=dry_run)
        self._write_file = make_write_file(address, ssh_key, ssh_port, dry_run=dry_run)

    async def run(self, command, timeout=None):
        return await self._run_cmd(command, timeout=timeout or self.timeout)

    async def write_file(self, path, content):
        rc, stderr = await self._write_file(path, content, timeout=self.timeout)
        if rc != 0:
            raise TransportError(f"scp -> {self.address}:{path}", rc, stderr)

    async def sync_files(self, local_root, remote_root):
        await self.check(f"mkdir -p {shlex.quote(remote_root)}")
        args = rsync_args(local_root, self.address, remote_root, self.ssh_key, self.ssh_port)
        rc, _, stderr = await run_shell_cmd(args, dry_run=self.dry_run, timeout=self.timeout)
        if rc != 0:
            raise TransportError(" ".join(args), rc, stderr)
        logger.info(f"  Synced {local_root} -> {self.address}:{remote_root}")
