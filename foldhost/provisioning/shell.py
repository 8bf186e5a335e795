"""Local command execution and rsync argument building."""

import asyncio
import logging

from foldhost.provisioning.ssh_transport import ssh_command_string

logger = logging.getLogger(__name__)

# Never shipped to the target.
SYNC_EXCLUDES = (".git", ".github", "node_modules", ".env", ".DS_Store")


async def run_shell_cmd(command, dry_run=False, timeout=600):
    """Run a local command and return (returncode, stdout, stderr).

    Args:
        command: list of command arguments
        dry_run: if True, log the command instead of executing
        timeout: maximum seconds to wait for the command

    Returns:
        (returncode, stdout, stderr) tuple
    """
    if dry_run:
        logger.info(f"[dry-run] {' '.join(command)}")
        return 0, "", ""

    proc = None
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        stdout = stdout_bytes.decode() if stdout_bytes else ""
        stderr = stderr_bytes.decode() if stderr_bytes else ""
        return proc.returncode, stdout, stderr
    except TimeoutError:
        logger.error(f"Command timed out after {timeout}s: {' '.join(command)}")
        if proc is not None:
            proc.kill()
            await proc.wait()
        return 1, "", f"timed out after {timeout}s"
    except FileNotFoundError:
        logger.error(f"Error: '{command[0]}' not found. Is it installed and on PATH?")
        return 1, "", f"'{command[0]}' not found"


def rsync_args(local_root, server, remote_root, ssh_key="", ssh_port=22, excludes=SYNC_EXCLUDES):
    """Build an rsync invocation mirroring local_root into remote_root.

    ``--delete`` makes the remote tree an exact copy, so removed folders
    disappear from the target on the next sync.
    """
    args = ["rsync", "-az", "--delete"]
    for pattern in excludes:
        args += ["--exclude", pattern]
    args += ["-e", ssh_command_string(ssh_key, ssh_port)]
    args += [f"{local_root.rstrip('/')}/", f"{server}:{remote_root.rstrip('/')}/"]
    return args
