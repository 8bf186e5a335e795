"""SSH transport: run commands and write files on the target via SSH/SCP."""

import asyncio
import logging
import os
import tempfile

logger = logging.getLogger(__name__)

_SSH_OPTIONS = [
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
    "-o", "BatchMode=yes",
    "-o", "ServerAliveInterval=60",
    "-o", "ServerAliveCountMax=5",
]


def ssh_base_args(server, ssh_key, ssh_port):
    """Build base SSH arguments."""
    args = ["ssh", *_SSH_OPTIONS]
    if ssh_key:
        args += ["-i", ssh_key]
    if ssh_port and ssh_port != 22:
        args += ["-p", str(ssh_port)]
    args.append(server)
    return args


def ssh_command_string(ssh_key, ssh_port):
    """The ssh invocation as a single string, for rsync's -e option."""
    return " ".join(ssh_base_args("", ssh_key, ssh_port)[:-1])


def make_run_cmd(server, ssh_key, ssh_port, dry_run=False):
    """Create a run_cmd callable for SSH execution.

    A timeout returns rc 124 and a failure to launch ssh returns 255, so
    neither can be mistaken for a remote command's own exit status 1.
    """

    async def run_cmd(command, timeout=600):
        if dry_run:
            logger.info(f"[dry-run] ssh {server}: {command}")
            return 0, "", ""

        ssh_args = ssh_base_args(server, ssh_key, ssh_port)
        ssh_args.append(command)
        logger.debug(f"ssh {server}: {command}")

        proc = None
        try:
            proc = await asyncio.create_subprocess_exec(
                *ssh_args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
            stdout = stdout_bytes.decode(errors="replace") if stdout_bytes else ""
            stderr = stderr_bytes.decode(errors="replace") if stderr_bytes else ""
            return proc.returncode, stdout, stderr
        except TimeoutError:
            logger.error(f"Command timed out after {timeout}s: {command}")
            if proc is not None:
                proc.kill()
                await proc.wait()
            return 124, "", f"timed out after {timeout}s"
        except OSError as e:
            logger.error(f"Error running SSH command: {e}")
            return 255, "", str(e)

    return run_cmd


async def scp_file(local_path, server, ssh_key, ssh_port, remote_path, timeout=300):
    """Copy a file to the remote server via SCP."""
    scp_args = ["scp", *_SSH_OPTIONS]
    if ssh_key:
        scp_args += ["-i", ssh_key]
    if ssh_port and ssh_port != 22:
        scp_args += ["-P", str(ssh_port)]
    scp_args += [local_path, f"{server}:{remote_path}"]

    proc = None
    try:
        proc = await asyncio.create_subprocess_exec(
            *scp_args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        stderr = stderr_bytes.decode() if stderr_bytes else ""
        return proc.returncode, stderr
    except TimeoutError:
        logger.error(f"SCP timed out after {timeout}s: {local_path} -> {server}:{remote_path}")
        if proc is not None:
            proc.kill()
            await proc.wait()
        return 1, "timeout"
    except OSError as e:
        return 1, str(e)


def make_write_file(server, ssh_key, ssh_port, dry_run=False):
    """Create a write_file callable that SCPs content to an absolute remote path.

    Returns (returncode, stderr); the caller decides whether a failure is fatal.
    """

    async def write_file(remote_path, content, timeout=300):
        if dry_run:
            logger.info(f"[dry-run] scp {os.path.basename(remote_path)} -> {server}:{remote_path}")
            return 0, ""

        # Write to a temp file locally, then SCP
        suffix = f"_{os.path.basename(remote_path)}"
        with tempfile.NamedTemporaryFile(mode="w", suffix=suffix, delete=False, encoding="utf-8", newline="") as f:
            f.write(content)
            tmp_path = f.name

        try:
            rc, stderr = await scp_file(tmp_path, server, ssh_key, ssh_port, remote_path, timeout=timeout)
            if rc != 0:
                logger.error(f"Failed to SCP to {server}:{remote_path}: {stderr.strip()}")
            return rc, stderr
        finally:
            os.unlink(tmp_path)

    return write_file
