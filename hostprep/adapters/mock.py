"""
Fake host — in-memory test double for every host adapter.

Simulates an Amazon Linux 2023 machine without touching the real
package database, init system or network.  State lives on a shared
``FakeMachine`` so tests can set it up, run a profile and inspect what
changed.  Downloads and installed binaries are written to real files
under the configured (temporary) directories, using the real
``FileInstaller``.

By default the package repository carries the docker engine and the
usual prerequisites but *not* ``docker-compose-plugin``, as on a stock
AL2023 image.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from hostprep.adapters.base import (
    ArtifactFetcher,
    CommandResult,
    CommandRunner,
    PackageManager,
    ServiceManager,
    UserDirectory,
)
from hostprep.adapters.host import Host
from hostprep.adapters.shell.filesystem import FileInstaller
from hostprep.core.config.loader import Settings

DEFAULT_REPO = frozenset({
    "docker", "git", "curl", "unzip", "tar", "gzip", "ca-certificates", "coreutils",
})

# Canned ``--version`` output per tool
VERSION_OUTPUT = {
    "docker": "Docker version 25.0.3, build 4debf41",
    "compose": "Docker Compose version v2.24.6",
    "aws": "aws-cli/2.15.30 Python/3.11.8 Linux/6.1.79 exe/x86_64.amzn.2023",
    "eksctl": "0.175.0",
    "kubectl": "Client Version: v1.29.2\nKustomize Version: v5.0.4-0.20230601165947-6ce0bf390ce3",
}


@dataclass
class FakeMachine:
    """Mutable state of the simulated host."""

    bin_dir: Path
    repo: set[str] = field(default_factory=lambda: set(DEFAULT_REPO))
    installed: set[str] = field(default_factory=set)
    active_services: set[str] = field(default_factory=set)
    users: dict[str, set[str]] = field(default_factory=lambda: {"ec2-user": {"wheel"}})
    # False simulates a plugin package that installs but does not work
    plugin_works: bool = True
    failing_urls: set[str] = field(default_factory=set)
    failing_commands: dict[tuple[str, ...], str] = field(default_factory=dict)
    stable_version: str = "v1.29.2"
    versions: dict[str, str] = field(default_factory=lambda: dict(VERSION_OUTPUT))
    calls: list[list[str]] = field(default_factory=list)
    fetched: list[str] = field(default_factory=list)

    def commands_matching(self, *prefix: str) -> list[list[str]]:
        """Recorded calls whose argv starts with ``prefix``."""
        return [c for c in self.calls if tuple(c[:len(prefix)]) == prefix]

    def has_binary(self, name: str) -> bool:
        return (self.bin_dir / name).is_file()


class FakeCommandRunner(CommandRunner):
    """Answers version probes and the few commands install steps run."""

    def __init__(self, machine: FakeMachine) -> None:
        self._m = machine

    def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None = None,
        env_overrides: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        argv = [str(a) for a in argv]
        self._m.calls.append(argv)

        for prefix, error in self._m.failing_commands.items():
            if tuple(argv[:len(prefix)]) == prefix:
                return CommandResult.failure(error, argv=argv)

        program = Path(argv[0]).name
        if argv[0].endswith("/aws/install"):
            return self._aws_installer(argv)
        if program == "docker":
            return self._docker(argv)
        if program == "unzip":
            return self._unzip(argv)
        if program == "tar":
            return self._tar(argv)
        if program in ("docker-compose", "aws", "eksctl", "kubectl"):
            if not self._m.has_binary(program):
                return _not_found(argv)
            tool = "compose" if program == "docker-compose" else program
            return CommandResult.success(self._m.versions[tool], argv=argv)
        return _not_found(argv)

    def _docker(self, argv: list[str]) -> CommandResult:
        if "docker" not in self._m.installed:
            return _not_found(argv)
        if argv[1:2] == ["compose"]:
            if "docker-compose-plugin" in self._m.installed and self._m.plugin_works:
                return CommandResult.success(self._m.versions["compose"], argv=argv)
            return CommandResult.failure(
                "docker: 'compose' is not a docker command.", argv=argv,
            )
        return CommandResult.success(self._m.versions["docker"], argv=argv)

    def _unzip(self, argv: list[str]) -> CommandResult:
        archive = Path(argv[-3])
        target = Path(argv[argv.index("-d") + 1])
        if not archive.is_file():
            return CommandResult.failure(f"unzip: cannot find {archive}", returncode=9, argv=argv)
        installer = target / "aws" / "install"
        installer.parent.mkdir(parents=True, exist_ok=True)
        installer.write_text("#!/bin/sh\n", encoding="utf-8")
        return CommandResult.success(argv=argv)

    def _tar(self, argv: list[str]) -> CommandResult:
        archive = Path(argv[argv.index("-xzf") + 1])
        target = Path(argv[argv.index("-C") + 1])
        if not archive.is_file():
            return CommandResult.failure(f"tar: {archive}: Cannot open", returncode=2, argv=argv)
        (target / "eksctl").write_bytes(b"\x7fELF fake eksctl")
        return CommandResult.success(argv=argv)

    def _aws_installer(self, argv: list[str]) -> CommandResult:
        bin_dir = Path(argv[argv.index("--bin-dir") + 1])
        bin_dir.mkdir(parents=True, exist_ok=True)
        (bin_dir / "aws").write_bytes(b"\x7fELF fake aws")
        self._m.versions["aws"] = VERSION_OUTPUT["aws"]
        return CommandResult.success(
            f"You can now run: {bin_dir / 'aws'} --version", argv=argv,
        )


def _not_found(argv: list[str]) -> CommandResult:
    return CommandResult.failure(f"{argv[0]}: command not found", returncode=127, argv=argv)


class FakePackageManager(PackageManager):
    def __init__(self, machine: FakeMachine) -> None:
        self._m = machine

    def query_installed(self, name: str) -> bool:
        return name in self._m.installed

    def install(self, package_names: Sequence[str]) -> CommandResult:
        missing = [p for p in package_names if p not in self._m.installed]
        argv = ["dnf", "-y", "install", *missing]
        if not missing:
            return CommandResult.success("All packages already installed", skipped=True, argv=argv)

        self._m.calls.append(argv)
        unknown = [p for p in missing if p not in self._m.repo]
        if unknown:
            return CommandResult.failure(
                f"Error: Unable to find a match: {' '.join(unknown)}", argv=argv,
            )
        self._m.installed.update(missing)
        return CommandResult.success(f"Installed: {' '.join(missing)}", argv=argv)

    def update(self) -> CommandResult:
        argv = ["dnf", "-y", "update"]
        self._m.calls.append(argv)
        return CommandResult.success("Nothing to do.", argv=argv)

    def clean(self) -> CommandResult:
        argv = ["dnf", "-y", "clean", "all"]
        self._m.calls.append(argv)
        return CommandResult.success("0 files removed", argv=argv)


class FakeServiceManager(ServiceManager):
    def __init__(self, machine: FakeMachine) -> None:
        self._m = machine

    def enable_and_start(self, service_name: str) -> CommandResult:
        argv = ["systemctl", "enable", "--now", service_name]
        self._m.calls.append(argv)
        if service_name not in self._m.installed:
            return CommandResult.failure(
                f"Failed to enable unit: Unit {service_name}.service does not exist", argv=argv,
            )
        self._m.active_services.add(service_name)
        return CommandResult.success(argv=argv)

    def is_active(self, service_name: str) -> bool:
        return service_name in self._m.active_services


class FakeFetcher(ArtifactFetcher):
    """Writes a small placeholder file for every successful download."""

    def __init__(self, machine: FakeMachine) -> None:
        self._m = machine

    def fetch(self, url: str, destination_path: Path) -> CommandResult:
        argv = ["GET", url]
        self._m.fetched.append(url)
        if url in self._m.failing_urls:
            return CommandResult.failure(f"HTTP Error 404: Not Found ({url})", returncode=22, argv=argv)
        destination_path.parent.mkdir(parents=True, exist_ok=True)
        destination_path.write_bytes(f"fake artifact from {url}\n".encode())
        return CommandResult.success(str(destination_path), argv=argv)

    def fetch_text(self, url: str) -> CommandResult:
        argv = ["GET", url]
        self._m.fetched.append(url)
        if url in self._m.failing_urls:
            return CommandResult.failure("<urlopen error timed out>", returncode=1, argv=argv)
        return CommandResult.success(self._m.stable_version + "\n", argv=argv)


class FakeUserDirectory(UserDirectory):
    def __init__(self, machine: FakeMachine) -> None:
        self._m = machine

    def user_exists(self, name: str) -> bool:
        return name in self._m.users

    def in_group(self, name: str, group: str) -> bool:
        return group in self._m.users.get(name, set())

    def add_user_to_group(self, name: str, group: str) -> CommandResult:
        argv = ["usermod", "-aG", group, name]
        if self.in_group(name, group):
            return CommandResult.success(f"{name} already in {group}", argv=argv, skipped=True)
        self._m.calls.append(argv)
        if name not in self._m.users:
            return CommandResult.failure(f"usermod: user '{name}' does not exist", returncode=6, argv=argv)
        self._m.users[name].add(group)
        return CommandResult.success(argv=argv)


class FakeHost(Host):
    """A ``Host`` whose adapters all act on one ``FakeMachine``."""

    def __init__(self, settings: Settings, machine: FakeMachine | None = None) -> None:
        self.machine = machine or FakeMachine(bin_dir=settings.bin_dir)
        super().__init__(
            commands=FakeCommandRunner(self.machine),
            packages=FakePackageManager(self.machine),
            services=FakeServiceManager(self.machine),
            fetcher=FakeFetcher(self.machine),
            files=FileInstaller(),
            users=FakeUserDirectory(self.machine),
        )
