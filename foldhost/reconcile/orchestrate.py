"""Deploy orchestration: run_pipeline, activate_config, deploy, setup.

Every run starts from scratch: desired state comes from the local folder
layout, actual state from a live query of the target. No step depends on
anything remembered from a previous run, so rerunning the whole pipeline is
always the recovery path.
"""

import asyncio
import logging
import shlex
from dataclasses import dataclass

from foldhost.errors import ConfigError, FatalPipelineError, RecoverableStepError, TransportError
from foldhost.provisioning.certbot import CertbotAuthority
from foldhost.provisioning.compose import ComposeRuntime, compose_project_name
from foldhost.provisioning.remote import provision_remote
from foldhost.provisioning.transport import SshTransport
from foldhost.reconcile.certs import observe_certificates, reconcile_certificates
from foldhost.reconcile.fanout import attempt, for_each
from foldhost.reconcile.landing import build_tokens, load_landing_template, render_landing
from foldhost.reconcile.orphans import find_orphans, observe_target, tear_down_orphans
from foldhost.reconcile.proxy import generate_proxy_config
from foldhost.reconcile.state import PIPELINE, DeployResult, Step, StepFailure
from foldhost.topology.classifier import build_topology
from foldhost.topology.ports import allocate_ports
from foldhost.topology.types import PortMap

logger = logging.getLogger(__name__)

_STEP_TITLES = {
    Step.SYNC_FILES: "Syncing files",
    Step.DETECT_APPS: "Detecting apps",
    Step.START_CONTAINERS: "Starting containerized apps",
    Step.STOP_ORPHANS: "Cleaning up orphaned services",
    Step.ISSUE_CERTS: "Issuing TLS certificates",
    Step.FIX_PERMISSIONS: "Fixing certificate permissions",
    Step.RENDER_CONFIG: "Generating nginx config",
    Step.VALIDATE_AND_RELOAD: "Validating and reloading nginx",
}

# One activation at a time per target within this process.
_activation_locks: dict[str, asyncio.Lock] = {}


def _activation_lock(target):
    if target not in _activation_locks:
        _activation_locks[target] = asyncio.Lock()
    return _activation_locks[target]


@dataclass
class _Context:
    params: object
    transport: object
    ca: object
    runtime: object
    result: DeployResult


# ── Steps ───────────────────────────────────────────────────────────


async def _sync_files(ctx):
    params = ctx.params
    try:
        await asyncio.wait_for(
            ctx.transport.sync_files(params.local_root, params.layout.apps_root),
            timeout=params.remote_timeout,
        )
    except TimeoutError as e:
        raise FatalPipelineError(Step.SYNC_FILES.value, f"sync timed out after {params.remote_timeout}s") from e
    except TransportError as e:
        raise FatalPipelineError(Step.SYNC_FILES.value, f"file sync failed: {e}") from e


async def _detect_apps(ctx):
    params = ctx.params
    try:
        topology = build_topology(params.local_root, params.domain)
    except (ConfigError, OSError) as e:
        raise FatalPipelineError(Step.DETECT_APPS.value, f"cannot read repository: {e}") from e
    ctx.result.topology = topology
    ctx.result.ports = PortMap.from_assignments(allocate_ports(list(topology.apps)))
    for name in topology.rejected:
        ctx.result.failures.append(
            StepFailure(step=Step.DETECT_APPS, target=name, message="not a valid subdomain label; folder not deployed")
        )
    for app in topology.apps:
        port = ctx.result.ports.port_for(app.name)
        suffix = f" -> port {port}" if port is not None else ""
        logger.info(f"  {app.name} ({app.kind.value}){suffix}")


async def _start_containers(ctx):
    params = ctx.params
    apps = ctx.result.topology.containerized_apps
    if not apps:
        logger.info("  No containerized apps.")
        return

    async def _start(app):
        port = ctx.result.ports.port_for(app.name)
        logger.info(f"  Starting {app.name} on port {port}...")
        await ctx.runtime.ensure_running(params.layout.app_dir(app.name), port, compose_project_name(app.name))

    results = await for_each(
        Step.START_CONTAINERS,
        apps,
        _start,
        target_of=lambda app: app.name,
        concurrency=params.concurrency,
        timeout=params.remote_timeout,
    )
    ctx.result.failures.extend(f for _, _, f in results if f is not None)


async def _stop_orphans(ctx):
    params = ctx.params
    observed, failure = await attempt(Step.STOP_ORPHANS, "list running services", lambda: observe_target(ctx.runtime), 60)
    if failure is not None:
        ctx.result.failures.append(failure)
        logger.error("  Could not list running services; skipping orphan cleanup.")
        return

    desired = [app.name for app in ctx.result.topology.containerized_apps]
    orphans = find_orphans(observed, desired)
    ctx.result.orphans = orphans
    failures = await tear_down_orphans(ctx.runtime, orphans, concurrency=params.concurrency, timeout=params.remote_timeout)
    ctx.result.failures.extend(failures)


async def _issue_certs(ctx):
    params = ctx.params
    topology = ctx.result.topology
    outcomes, failures = await reconcile_certificates(
        ctx.ca,
        topology.subjects,
        topology.root_domain,
        params.email,
        concurrency=params.concurrency,
        timeout=params.remote_timeout,
    )
    ctx.result.cert_outcomes = outcomes
    ctx.result.failures.extend(failures)


def fix_permission_commands(layout):
    """Let the proxy's worker user traverse the cert dirs and read public PEMs."""
    return [
        f"chmod 755 {layout.certs_live} {layout.certs_archive}",
        f"find {layout.certs_archive} -name '*.pem' ! -name 'privkey*.pem' -exec chmod 644 {{}} +",
    ]


async def _fix_permissions(ctx):
    for command in fix_permission_commands(ctx.params.layout):
        _, failure = await attempt(Step.FIX_PERMISSIONS, command, lambda c=command: ctx.transport.check(c), 120)
        if failure is not None:
            ctx.result.failures.append(failure)


async def _render_config(ctx):
    params = ctx.params
    layout = params.layout
    topology = ctx.result.topology

    certified, failure = await attempt(
        Step.RENDER_CONFIG,
        "certificate inventory",
        lambda: observe_certificates(ctx.transport, topology.subjects, layout),
        120,
    )
    if failure is not None:
        ctx.result.failures.append(failure)
    else:
        for subject in topology.subjects:
            if subject not in certified:
                logger.warning(f"  No certificate for {subject}; leaving it out of the config")

    config = generate_proxy_config(topology, ctx.result.ports, layout, certified=certified)
    logger.debug(config)
    _, failure = await attempt(
        Step.RENDER_CONFIG, layout.staged_config, lambda: ctx.transport.write_file(layout.staged_config, config), 120
    )
    if failure is not None:
        ctx.result.failures.append(failure)
    else:
        ctx.result.config_staged = True
        logger.info(f"  Staged {layout.staged_config} ({len(topology.apps)} app blocks)")

    async def _write_landing():
        try:
            template = load_landing_template(params.local_root)
        except (OSError, UnicodeDecodeError) as e:
            raise RecoverableStepError(
                Step.RENDER_CONFIG.value, layout.landing_page, f"cannot read landing template: {e}"
            ) from e
        landing = render_landing(template, build_tokens(topology))
        await ctx.transport.check(f"mkdir -p {layout.root_content}")
        await ctx.transport.write_file(layout.landing_page, landing)

    _, failure = await attempt(Step.RENDER_CONFIG, layout.landing_page, _write_landing, 120)
    if failure is not None:
        ctx.result.failures.append(failure)


async def _validate_and_reload(ctx):
    if not ctx.result.config_staged:
        raise FatalPipelineError(Step.VALIDATE_AND_RELOAD.value, "no staged config to activate")
    await activate_exclusive(ctx.transport, ctx.params.layout, ctx.params.host, timeout=ctx.params.remote_timeout)


_STEP_HANDLERS = {
    Step.SYNC_FILES: _sync_files,
    Step.DETECT_APPS: _detect_apps,
    Step.START_CONTAINERS: _start_containers,
    Step.STOP_ORPHANS: _stop_orphans,
    Step.ISSUE_CERTS: _issue_certs,
    Step.FIX_PERMISSIONS: _fix_permissions,
    Step.RENDER_CONFIG: _render_config,
    Step.VALIDATE_AND_RELOAD: _validate_and_reload,
}


# ── Config activation ───────────────────────────────────────────────


def staged_check_command(layout):
    """Shell snippet running `nginx -t` against the staged file, live files untouched.

    A scratch copy of the main config includes every enabled site except
    ours, plus the staged file in its place.
    """
    q = shlex.quote
    sites = layout.check_sites_dir
    return (
        f"rm -rf {q(sites)} && mkdir -p {q(sites)}"
        f" && for f in {q(layout.sites_enabled_dir)}/*; do"
        f' [ -e "$f" ] && [ "$f" != {q(layout.enabled_link)} ] && ln -s "$(readlink -f "$f")" {q(sites)}/;'
        f" done;"
        f" ln -s {q(layout.staged_config)} {q(sites)}/foldhost-staged"
        f" && sed 's#{layout.sites_enabled_dir}/\\*#{sites}/*#' {q(layout.nginx_main_conf)} > {q(layout.check_conf)}"
        f" && nginx -t -c {q(layout.check_conf)};"
        f" rc=$?; rm -rf {q(sites)} {q(layout.check_conf)}; exit $rc"
    )


async def _restore(transport, layout, had_active, backup):
    if had_active:
        await transport.move(backup, layout.active_config)
    else:
        await transport.remove(layout.active_config)
        await transport.remove(layout.enabled_link)


async def activate_config(transport, layout, timeout=300):
    """Validate the staged config, swap it in, reload.

    The staged file is tested before the live config is touched. After the
    swap the live config is tested again; if that fails, the previous file is
    restored from a byte-exact copy. nginx is reloaded only after both tests
    pass. Raises FatalPipelineError.
    """
    step = Step.VALIDATE_AND_RELOAD.value
    backup = f"{layout.active_config}.bak"

    rc, stdout, stderr = await transport.run(staged_check_command(layout), timeout=timeout)
    if rc != 0:
        raise FatalPipelineError(step, f"nginx config test failed:\n{(stderr or stdout).strip()}")
    logger.info("  Staged config test passed.")

    try:
        had_active = await transport.exists(layout.active_config)
        if had_active:
            await transport.copy(layout.active_config, backup)
    except TransportError as e:
        raise FatalPipelineError(step, f"could not back up active config: {e}") from e

    try:
        await transport.move(layout.staged_config, layout.active_config)
        await transport.symlink(layout.active_config, layout.enabled_link)
        rc, stdout, stderr = await transport.run("nginx -t", timeout=timeout)
        if rc != 0:
            raise FatalPipelineError(step, f"nginx config test failed after install:\n{(stderr or stdout).strip()}")
    except (TransportError, FatalPipelineError) as e:
        reason = e.message if isinstance(e, FatalPipelineError) else f"could not install new config: {e}"
        try:
            await _restore(transport, layout, had_active, backup)
        except TransportError as restore_error:
            raise FatalPipelineError(step, f"{reason}\nprevious config NOT restored: {restore_error}") from e
        raise FatalPipelineError(step, reason) from e

    logger.info("  nginx config test passed.")
    try:
        await transport.check("systemctl reload nginx", timeout=timeout)
    except TransportError as e:
        raise FatalPipelineError(step, f"nginx reload failed: {e}") from e
    logger.info("  nginx reloaded.")

    if had_active:
        try:
            await transport.remove(backup)
        except TransportError as e:
            logger.warning(f"  Could not remove {backup}: {e}")


async def activate_exclusive(transport, layout, target, timeout=300):
    """activate_config under the per-target lock, shielded as one unit.

    A cancelled caller returns at once; the activation and the lock it holds
    run to completion.
    """

    async def _locked():
        async with _activation_lock(target):
            await activate_config(transport, layout, timeout=timeout)

    await asyncio.shield(_locked())


# ── Pipeline ────────────────────────────────────────────────────────


def _log_summary(result, domain):
    topology = result.topology
    if result.state is Step.FAILED:
        logger.error(f"\nDeploy failed: {result.fatal_error}")
    else:
        logger.info("\nDeploy complete!")
        if topology is not None and topology.apps:
            logger.info("\nYour apps are live:")
            for app in topology.apps:
                logger.info(f"  https://{app.subject(domain)}")
        logger.info(f"\nRoot domain: https://{domain}")

    if result.failures:
        logger.error(f"\n{len(result.failures)} step(s) failed and were skipped:")
        for failure in result.failures:
            logger.error(f"  [{failure.step.value}] {failure.target}: {failure.message}")


async def run_pipeline(params, transport, ca, runtime, cancel=None) -> DeployResult:
    """Converge the target toward the folder layout in params.local_root.

    Args:
        params: validated DeployParams
        transport: TransportClient for the target
        ca: CertificateAuthorityClient
        runtime: ContainerRuntimeClient
        cancel: optional asyncio.Event; checked only between steps

    Returns:
        DeployResult whose state is DONE or FAILED.
    """
    result = DeployResult()
    ctx = _Context(params=params, transport=transport, ca=ca, runtime=runtime, result=result)

    for number, step in enumerate(PIPELINE, start=1):
        if cancel is not None and cancel.is_set():
            result.state = Step.FAILED
            result.fatal_error = f"cancelled before {step.value}"
            break

        result.state = step
        logger.info(f"\n{number}. {_STEP_TITLES[step]}...")
        try:
            await _STEP_HANDLERS[step](ctx)
        except FatalPipelineError as e:
            result.state = Step.FAILED
            result.fatal_error = str(e)
            break
        result.completed.append(step)
    else:
        result.state = Step.DONE

    _log_summary(result, params.domain)
    return result


def _make_clients(params):
    transport = SshTransport(
        params.address,
        ssh_key=params.ssh_key,
        ssh_port=params.ssh_port,
        dry_run=params.dry_run,
        timeout=params.remote_timeout,
    )
    ca = CertbotAuthority(transport, acme_root=params.layout.acme_root, timeout=params.remote_timeout)
    runtime = ComposeRuntime(transport, timeout=params.remote_timeout)
    return transport, ca, runtime


async def deploy(params) -> DeployResult:
    """Deploy the folder layout to a server via SSH. Single entry point."""
    params.validate()
    via = f" (via {params.server})" if params.server and params.server != params.domain else ""
    logger.info(f"Deploying {params.local_root} to {params.domain}{via}")
    transport, ca, runtime = _make_clients(params)
    return await run_pipeline(params, transport, ca, runtime)


async def setup(params) -> bool:
    """Prepare a fresh server for deploys."""
    params.validate()
    if not params.server:
        raise ConfigError("--server is required for setup")
    logger.info(f"Setting up server at {params.host} for {params.domain}...")
    transport, _, _ = _make_clients(params)
    ok = await provision_remote(transport, params.layout)
    if ok:
        logger.info("\nServer setup complete!")
        logger.info("\nNext steps:")
        logger.info("  1. Configure DNS (A records pointing to your server):")
        logger.info(f"     {params.domain}    -> {params.host}")
        logger.info(f"     *.{params.domain}  -> {params.host}")
        logger.info(f"  2. Deploy your apps: foldhost deploy --domain {params.domain}")
    else:
        logger.error("\nServer setup finished with errors.")
    return ok
