"""Target access: capability interfaces and their SSH-backed implementations."""

from foldhost.provisioning.certbot import CertbotAuthority, certbot_command
from foldhost.provisioning.compose import ComposeRuntime, compose_project_name
from foldhost.provisioning.remote import provision_remote
from foldhost.provisioning.shell import SYNC_EXCLUDES, rsync_args, run_shell_cmd
from foldhost.provisioning.ssh_transport import (
    make_run_cmd,
    make_write_file,
    scp_file,
    ssh_base_args,
)
from foldhost.provisioning.transport import SshTransport
from foldhost.provisioning.types import (
    CertificateAuthorityClient,
    CertStatus,
    ContainerRuntimeClient,
    TransportClient,
)

__all__ = [
    "CertStatus",
    "CertbotAuthority",
    "CertificateAuthorityClient",
    "ComposeRuntime",
    "ContainerRuntimeClient",
    "SYNC_EXCLUDES",
    "SshTransport",
    "TransportClient",
    "certbot_command",
    "compose_project_name",
    "make_run_cmd",
    "make_write_file",
    "provision_remote",
    "rsync_args",
    "run_shell_cmd",
    "scp_file",
    "ssh_base_args",
]
