"""
Local user directory adapter.

Reads go through the ``pwd`` / ``grp`` databases; the only write is
``usermod -aG``, and it is skipped when the user is already a member.
"""

from __future__ import annotations

import grp
import logging
import pwd

from hostprep.adapters.base import CommandResult, CommandRunner, UserDirectory

logger = logging.getLogger(__name__)


class LocalUserDirectory(UserDirectory):
    """``/etc/passwd`` + ``/etc/group`` view of the host's accounts."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def user_exists(self, name: str) -> bool:
        try:
            pwd.getpwnam(name)
        except KeyError:
            return False
        return True

    def in_group(self, name: str, group: str) -> bool:
        try:
            entry = grp.getgrnam(group)
        except KeyError:
            return False
        if name in entry.gr_mem:
            return True
        try:
            return pwd.getpwnam(name).pw_gid == entry.gr_gid
        except KeyError:
            return False

    def add_user_to_group(self, name: str, group: str) -> CommandResult:
        argv = ["usermod", "-aG", group, name]
        if self.in_group(name, group):
            logger.debug("%s is already in group %s", name, group)
            return CommandResult.success(
                f"{name} already in group {group}", argv=argv, skipped=True,
            )
        return self._runner.run(argv, timeout=30)
