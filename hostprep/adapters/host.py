"""
Host — the bundle of adapters a run talks to.

``Host.local(settings)`` wires the real adapters for this machine.
Tests build a ``FakeHost`` (see ``hostprep.adapters.mock``) with the
same shape.
"""

from __future__ import annotations

from dataclasses import dataclass

from hostprep.adapters.base import (
    ArtifactFetcher,
    CommandRunner,
    PackageManager,
    ServiceManager,
    UserDirectory,
)
from hostprep.adapters.fetch.http import UrllibFetcher
from hostprep.adapters.shell.command import LocalCommandRunner
from hostprep.adapters.shell.filesystem import FileInstaller
from hostprep.adapters.system.dnf import DnfPackageManager
from hostprep.adapters.system.systemd import SystemdServiceManager
from hostprep.adapters.system.users import LocalUserDirectory
from hostprep.core.config.loader import Settings


@dataclass
class Host:
    """External collaborators of the sequencer."""

    commands: CommandRunner
    packages: PackageManager
    services: ServiceManager
    fetcher: ArtifactFetcher
    files: FileInstaller
    users: UserDirectory

    @classmethod
    def local(cls, settings: Settings) -> Host:
        runner = LocalCommandRunner(
            default_timeout=settings.command_timeout,
            extra_path=[settings.bin_dir],
        )
        return cls(
            commands=runner,
            packages=DnfPackageManager(runner, timeout=settings.package_timeout),
            services=SystemdServiceManager(runner),
            fetcher=UrllibFetcher(
                timeout=settings.download_timeout,
                text_timeout=settings.lookup_timeout,
            ),
            files=FileInstaller(),
            users=LocalUserDirectory(runner),
        )
