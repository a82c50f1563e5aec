"""systemd service manager adapter."""

from __future__ import annotations

from hostprep.adapters.base import CommandResult, CommandRunner, ServiceManager


class SystemdServiceManager(ServiceManager):
    """``systemctl`` backed service control."""

    def __init__(self, runner: CommandRunner, timeout: float = 120) -> None:
        self._runner = runner
        self._timeout = timeout

    def enable_and_start(self, service_name: str) -> CommandResult:
        # Re-enabling an enabled, running unit is a no-op for systemd.
        return self._runner.run(
            ["systemctl", "enable", "--now", service_name], timeout=self._timeout,
        )

    def is_active(self, service_name: str) -> bool:
        result = self._runner.run(
            ["systemctl", "is-active", "--quiet", service_name], timeout=15,
        )
        return result.ok
