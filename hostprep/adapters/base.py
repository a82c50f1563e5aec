"""
Adapter base — the contracts between the sequencer and the host.

The engine and the step actions only talk to the host through these
interfaces, never directly to ``subprocess`` or the network.  That is
what lets the whole sequence run against an in-memory ``FakeHost`` in
tests.

Adapters NEVER raise for a failed operation — failures are captured in
the returned ``CommandResult``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field


class CommandResult(BaseModel):
    """Outcome of one host operation (command, download, file write)."""

    argv: list[str] = Field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    skipped: bool = False
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error(self) -> str:
        """Short human-readable failure description ('' when ok)."""
        if self.ok:
            return ""
        tail = self.stderr.strip().splitlines()[-1:] if self.stderr.strip() else []
        base = f"exit {self.returncode}"
        return f"{base}: {tail[0]}" if tail else base

    @classmethod
    def success(cls, stdout: str = "", **kwargs) -> CommandResult:
        return cls(returncode=0, stdout=stdout, **kwargs)

    @classmethod
    def failure(cls, stderr: str, returncode: int = 1, **kwargs) -> CommandResult:
        return cls(returncode=returncode, stderr=stderr, **kwargs)


class CommandRunner(ABC):
    """Runs a program with an explicit, bounded environment."""

    @abstractmethod
    def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None = None,
        env_overrides: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run ``argv`` and capture its output. Never raises."""


class PackageManager(ABC):
    """System package manager (dnf on Amazon Linux 2023)."""

    @abstractmethod
    def install(self, package_names: Sequence[str]) -> CommandResult:
        """Install packages; already-installed packages are skipped."""

    @abstractmethod
    def query_installed(self, name: str) -> bool:
        """Read-only: is the package installed."""

    @abstractmethod
    def update(self) -> CommandResult:
        """Bring installed packages up to date."""

    @abstractmethod
    def clean(self) -> CommandResult:
        """Drop package manager caches."""


class ServiceManager(ABC):
    """Init system (systemd)."""

    @abstractmethod
    def enable_and_start(self, service_name: str) -> CommandResult:
        """Enable the unit at boot and start it now. Safe to repeat."""

    @abstractmethod
    def is_active(self, service_name: str) -> bool:
        """Read-only: is the unit running."""


class ArtifactFetcher(ABC):
    """HTTP(S) downloads.

    Implementations follow redirects and fail with a non-zero result on
    HTTP errors.  A failed fetch never leaves a partial or error-page
    file at ``destination_path``.
    """

    @abstractmethod
    def fetch(self, url: str, destination_path: Path) -> CommandResult:
        """Download ``url`` to ``destination_path``."""

    @abstractmethod
    def fetch_text(self, url: str) -> CommandResult:
        """Download a small text resource; body is returned in ``stdout``."""


class UserDirectory(ABC):
    """Local users and groups."""

    @abstractmethod
    def user_exists(self, name: str) -> bool:
        """Read-only: does the account exist."""

    @abstractmethod
    def in_group(self, name: str, group: str) -> bool:
        """Read-only: is the user already a member of the group."""

    @abstractmethod
    def add_user_to_group(self, name: str, group: str) -> CommandResult:
        """Add the user to a supplementary group. No-op if already a member."""
