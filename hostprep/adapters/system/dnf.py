"""
dnf package manager adapter (Amazon Linux 2023).

``install`` checks each package with ``rpm -q`` first and only hands
the missing ones to dnf, so re-running an install step on a
provisioned host never touches the package database.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from hostprep.adapters.base import CommandResult, CommandRunner, PackageManager

logger = logging.getLogger(__name__)


class DnfPackageManager(PackageManager):
    """``dnf`` / ``rpm`` backed package manager."""

    def __init__(self, runner: CommandRunner, timeout: float = 900) -> None:
        self._runner = runner
        self._timeout = timeout

    def query_installed(self, name: str) -> bool:
        result = self._runner.run(["rpm", "-q", name], timeout=30)
        return result.ok

    def missing(self, package_names: Sequence[str]) -> list[str]:
        """Return the subset of ``package_names`` not installed yet."""
        return [pkg for pkg in package_names if not self.query_installed(pkg)]

    def install(self, package_names: Sequence[str]) -> CommandResult:
        if not package_names:
            return CommandResult.success("No packages to install", skipped=True)

        missing = self.missing(package_names)
        if not missing:
            logger.debug("All packages already installed: %s", ", ".join(package_names))
            return CommandResult.success(
                "All packages already installed",
                argv=["dnf", "-y", "install", *package_names],
                skipped=True,
            )

        return self._runner.run(["dnf", "-y", "install", *missing], timeout=self._timeout)

    def update(self) -> CommandResult:
        return self._runner.run(["dnf", "-y", "update"], timeout=self._timeout)

    def clean(self) -> CommandResult:
        return self._runner.run(["dnf", "-y", "clean", "all"], timeout=120)
