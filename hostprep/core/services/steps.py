"""
Step actions — the units of work profiles are assembled from.

Each factory below returns an action: a callable taking the
``RunContext`` and returning an ``Outcome``.  Actions go through the
host adapters only, and each one is safe to run twice:

- package installs skip packages that are already installed;
- ``systemctl enable --now`` re-asserts an enabled, running unit;
- group membership is checked before ``usermod``;
- binaries are replaced atomically, never appended to or backed up.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from hostprep.adapters.base import CommandResult
from hostprep.core.context import RunContext
from hostprep.core.models.outcome import Outcome
from hostprep.core.services.download_helpers import render_url
from hostprep.core.services.platform import aws_arch

logger = logging.getLogger(__name__)

StepAction = Callable[[RunContext], Outcome]


def _outcome(result: CommandResult, message: str = "") -> Outcome:
    """Translate an adapter result into a step outcome."""
    if result.skipped:
        return Outcome.skip(result.stdout.strip() or message or "nothing to do")
    if result.ok:
        return Outcome.success(message)
    return Outcome.failure(
        result.error or "failed",
        detail=result.stderr[-2000:],
        metadata={"argv": result.argv, "returncode": result.returncode},
    )


# ── Package manager ─────────────────────────────────────────────


def update_packages() -> StepAction:
    def action(ctx: RunContext) -> Outcome:
        return _outcome(ctx.host.packages.update(), "packages up to date")
    return action


def install_packages(*names: str) -> StepAction:
    def action(ctx: RunContext) -> Outcome:
        return _outcome(ctx.host.packages.install(list(names)), "installed " + ", ".join(names))
    return action


def clean_package_cache() -> StepAction:
    def action(ctx: RunContext) -> Outcome:
        return _outcome(ctx.host.packages.clean(), "package caches cleaned")
    return action


# ── Services and accounts ───────────────────────────────────────


def enable_service(name: str | None = None) -> StepAction:
    """Enable and start ``name`` (default: the configured docker service)."""

    def action(ctx: RunContext) -> Outcome:
        service = name or ctx.settings.docker_service
        return _outcome(ctx.host.services.enable_and_start(service), f"{service} enabled and running")
    return action


def add_target_user_to_group(group: str | None = None) -> StepAction:
    """Add the run's target user to ``group`` (default: the docker group).

    A target user that does not exist is skipped, not failed: the group
    can be granted by hand later.
    """

    def action(ctx: RunContext) -> Outcome:
        target_group = group or ctx.settings.docker_group
        user = ctx.target_user
        users = ctx.host.users

        if not users.user_exists(user):
            return Outcome.skip(
                f"user {user} not found; add users to the {target_group} group manually"
            )
        if users.in_group(user, target_group):
            return Outcome.skip(f"{user} already in group {target_group}")
        return _outcome(
            users.add_user_to_group(user, target_group),
            f"added {user} to group {target_group}",
        )
    return action


# ── Docker Compose ──────────────────────────────────────────────


def install_compose_plugin() -> StepAction:
    def action(ctx: RunContext) -> Outcome:
        return _outcome(
            ctx.host.packages.install(["docker-compose-plugin"]),
            "docker-compose-plugin package installed",
        )
    return action


def install_compose_standalone() -> StepAction:
    """Download the standalone ``docker-compose`` binary into ``bin_dir``.

    Also links the legacy ``/usr/bin/docker-compose`` path when nothing
    occupies it yet.
    """

    def action(ctx: RunContext) -> Outcome:
        settings = ctx.settings
        url = render_url(settings.compose_url, os=ctx.os_name, machine=ctx.machine, arch=ctx.arch)
        staging = settings.work_dir / "docker-compose"
        dest = settings.bin_dir / "docker-compose"

        ctx.run_log.info(f"Downloading docker-compose from {url}")
        fetched = ctx.host.fetcher.fetch(url, staging)
        if not fetched.ok:
            return _outcome(fetched)

        installed = ctx.host.files.install_executable(staging, dest)
        ctx.host.files.remove_tree(staging)
        if not installed.ok:
            return _outcome(installed)

        linked = ctx.host.files.ensure_symlink(dest, settings.compose_compat_link)
        if not linked.ok:
            # Compatibility link only; the binary itself is in place.
            ctx.run_log.info(f"Could not create {settings.compose_compat_link}: {linked.error}")

        return Outcome.success(f"standalone docker-compose installed to {dest}")
    return action


# ── AWS CLI v2 ──────────────────────────────────────────────────


def install_awscli() -> StepAction:
    """Download the AWS CLI v2 bundle and run its installer with ``--update``."""

    def action(ctx: RunContext) -> Outcome:
        settings = ctx.settings
        host = ctx.host
        url = render_url(settings.awscli_url, aws_arch=aws_arch(ctx.arch), arch=ctx.arch)
        archive = settings.work_dir / "awscliv2.zip"
        extract_dir = settings.work_dir / "aws-install"

        ctx.run_log.info(f"Downloading AWS CLI from {url}")
        fetched = host.fetcher.fetch(url, archive)
        if not fetched.ok:
            return _outcome(fetched)

        host.files.remove_tree(extract_dir)
        unzipped = host.commands.run(
            ["unzip", "-o", "-q", str(archive), "-d", str(extract_dir)],
            timeout=settings.command_timeout,
        )
        if not unzipped.ok:
            return _outcome(unzipped)

        installed = host.commands.run(
            [
                str(extract_dir / "aws" / "install"),
                "--bin-dir", str(settings.bin_dir),
                "--install-dir", str(settings.aws_install_dir),
                "--update",
            ],
            timeout=settings.command_timeout,
        )
        return _outcome(installed, "AWS CLI v2 installed/updated")
    return action


# ── Kubernetes clients ──────────────────────────────────────────


def install_eksctl() -> StepAction:
    """Install the latest eksctl release for this architecture."""

    def action(ctx: RunContext) -> Outcome:
        settings = ctx.settings
        host = ctx.host
        url = render_url(settings.eksctl_url, os=ctx.os_name, arch=ctx.arch)
        archive = settings.work_dir / f"eksctl_{ctx.arch}.tar.gz"
        extract_dir = settings.work_dir / "eksctl-extract"

        ctx.run_log.info(f"Downloading eksctl from {url}")
        fetched = host.fetcher.fetch(url, archive)
        if not fetched.ok:
            return _outcome(fetched)

        host.files.remove_tree(extract_dir)
        host.files.make_dirs(extract_dir)
        extracted = host.commands.run(
            ["tar", "-xzf", str(archive), "-C", str(extract_dir)],
            timeout=settings.command_timeout,
        )
        if not extracted.ok:
            return _outcome(extracted)

        binary = extract_dir / "eksctl"
        if not binary.is_file():
            return Outcome.failure(f"eksctl binary not found in {archive.name} after extract")

        return _outcome(
            host.files.install_executable(binary, settings.bin_dir / "eksctl"),
            f"eksctl installed to {settings.bin_dir}",
        )
    return action


def resolve_kubectl_version(ctx: RunContext) -> str | None:
    """Look up the current stable kubectl release.

    When the lookup fails, the configured fallback version is used and
    the substitution is logged as a warning: a pinned version can be
    far behind the cluster.  Returns None if there is no fallback.
    """
    settings = ctx.settings
    lookup = ctx.host.fetcher.fetch_text(settings.kubectl_stable_url)
    version = lookup.stdout.strip() if lookup.ok else ""

    if version.startswith("v") and len(version) < 40:
        ctx.run_log.info(f"Latest stable kubectl version: {version}")
        return version

    reason = lookup.error if not lookup.ok else f"unexpected response {version[:40]!r}"
    fallback = settings.kubectl_fallback_version
    if not fallback:
        ctx.run_log.fail(f"Could not fetch stable kubectl version ({reason}) and no fallback is configured")
        return None

    ctx.run_log.warn(
        f"Could not fetch stable kubectl version ({reason}); "
        f"installing pinned fallback {fallback}, which may be outdated"
    )
    return fallback


def install_kubectl() -> StepAction:
    def action(ctx: RunContext) -> Outcome:
        settings = ctx.settings
        version = resolve_kubectl_version(ctx)
        if version is None:
            return Outcome.failure("stable kubectl version lookup failed")

        url = render_url(settings.kubectl_url, version=version, arch=ctx.arch)
        staging = settings.work_dir / "kubectl"

        ctx.run_log.info(f"Downloading kubectl {version} from {url}")
        fetched = ctx.host.fetcher.fetch(url, staging)
        if not fetched.ok:
            return _outcome(fetched)

        installed = ctx.host.files.install_executable(staging, settings.bin_dir / "kubectl")
        ctx.host.files.remove_tree(staging)
        return _outcome(installed, f"kubectl {version} installed to {settings.bin_dir}")
    return action


# ── Housekeeping ────────────────────────────────────────────────


def cleanup_work_dir() -> StepAction:
    def action(ctx: RunContext) -> Outcome:
        return _outcome(
            ctx.host.files.remove_tree(ctx.settings.work_dir),
            f"removed {ctx.settings.work_dir}",
        )
    return action
