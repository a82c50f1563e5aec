"""
Provision use case — one full run from CLI arguments to an exit code.

This is the top-level orchestrator: it creates the run log, resolves
the target user and platform facts, builds the RunContext, runs the
profile through the Sequencer and closes the log.  The privilege check
happens before this is called; nothing here runs without root.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from hostprep.adapters.host import Host
from hostprep.core.config.loader import Settings
from hostprep.core.context import RunContext
from hostprep.core.engine.sequencer import Sequencer, SequenceReport
from hostprep.core.observability.run_log import RunLog
from hostprep.core.services.platform import (
    detect_machine,
    detect_os_name,
    download_arch,
    is_amazon_linux_2023,
    read_os_release,
    resolve_target_user,
)
from hostprep.core.services.probes import ProbeRegistry
from hostprep.core.services.profiles import get_profile

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


@dataclass
class ProvisionResult:
    """Result of a provisioning run."""

    report: SequenceReport | None = None
    log_path: Path | None = None
    target_user: str = ""
    notes: tuple[str, ...] = ()
    error: str | None = None
    # Set when some status lines could not be written to log_path
    log_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.ok

    @property
    def exit_code(self) -> int:
        return EXIT_OK if self.ok else EXIT_FAILED

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "ok": self.ok,
            "target_user": self.target_user,
            "log_path": str(self.log_path) if self.log_path else None,
            "notes": list(self.notes),
        }
        if self.error:
            result["error"] = self.error
        if self.log_error:
            result["log_error"] = self.log_error
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def build_host(settings: Settings) -> Host:
    """Wire the real adapters for this machine."""
    return Host.local(settings)


def provision(
    profile_name: str,
    settings: Settings,
    *,
    target_user: str | None = None,
    host: Host | None = None,
    verify_only: bool = False,
    echo: bool = True,
    environ: Mapping[str, str] | None = None,
    machine: str | None = None,
    os_release_path: Path | None = None,
) -> ProvisionResult:
    """Run a provisioning profile on this host.

    Args:
        profile_name: One of the names in ``PROFILES``.
        settings: Validated settings.
        target_user: Account to add to the docker group (None = resolve).
        host: Host adapters; defaults to the real local host.
        verify_only: Skip installation, only run the readiness phase.
        echo: Echo status lines to the terminal.
        environ: Environment used to resolve the target user.
        machine: Override ``uname -m`` (tests).
        os_release_path: Override ``/etc/os-release`` (tests).

    Returns:
        ProvisionResult; never raises for step failures.

    Raises:
        RunLogError: If the run log cannot be created.  Nothing else has
            been attempted at that point.
    """
    profile = get_profile(profile_name)

    # The log exists before any other action so early failures are captured.
    run_log = RunLog.create(settings.log_dir, prefix=profile.log_prefix, echo=echo)
    result = ProvisionResult(log_path=run_log.path, notes=tuple(profile.notes))

    try:
        user = resolve_target_user(target_user, environ, settings.default_user)
        result.target_user = user

        run_log.info(f"Starting {profile.name} provisioning. Log: {run_log.path}")

        release = read_os_release(os_release_path) if os_release_path else read_os_release()
        platform_id = release.get("ID", "unknown")
        platform_ver = release.get("VERSION_ID", "unknown")
        run_log.info(f"Detected platform: ID={platform_id}, VERSION_ID={platform_ver}")
        if not is_amazon_linux_2023(release):
            run_log.warn("This host is not Amazon Linux 2023; continuing anyway")

        raw_machine = machine or detect_machine()
        arch = download_arch(raw_machine)
        run_log.info(f"Detected architecture: {raw_machine} -> download arch: {arch}")
        run_log.info(f"Target non-root user for the docker group: {user}")

        host = host or build_host(settings)
        context = RunContext(
            host=host,
            settings=settings,
            run_log=run_log,
            target_user=user,
            machine=raw_machine,
            arch=arch,
            os_name=detect_os_name(),
        )
        probes = ProbeRegistry(host.commands, timeout=settings.probe_timeout)
        report = Sequencer(context, probes).run(profile, install=not verify_only)
        result.report = report

        if report.ok:
            run_log.ok("Installation completed." if not verify_only else "Verification completed.")
            for note in profile.notes:
                run_log.info(note)
        else:
            result.error = report.error
        run_log.info(f"Log file: {run_log.path}")
    finally:
        run_log.close()
        result.log_error = run_log.write_error

    return result
