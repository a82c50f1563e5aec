"""
Platform facts — architecture, OS release, privileges, target user.

Read-only.  Nothing here writes to the host.
"""

from __future__ import annotations

import logging
import os
import platform
from collections.abc import Callable, Mapping
from pathlib import Path

from hostprep.core.errors import PrivilegeError

logger = logging.getLogger(__name__)

# ``uname -m`` → download-arch token used by Go-style release assets.
# Values not listed here are passed through unchanged.
ARCH_MAP: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}

# Download-arch token → AWS CLI bundle suffix.
AWS_ARCH_MAP: dict[str, str] = {
    "arm64": "aarch64",
}

OS_RELEASE = Path("/etc/os-release")


def download_arch(machine: str) -> str:
    """Map a raw machine name to its download-arch token.

    >>> download_arch("x86_64"), download_arch("aarch64"), download_arch("riscv64")
    ('amd64', 'arm64', 'riscv64')
    """
    return ARCH_MAP.get(machine, machine)


def aws_arch(arch: str) -> str:
    """AWS CLI v2 ships ``x86_64`` and ``aarch64`` bundles only."""
    return AWS_ARCH_MAP.get(arch, "x86_64")


def detect_machine() -> str:
    return platform.machine() or "unknown"


def detect_os_name() -> str:
    return platform.system() or "Linux"


def read_os_release(path: Path = OS_RELEASE) -> dict[str, str]:
    """Parse ``/etc/os-release`` into a dict; empty if unreadable."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}

    data: dict[str, str] = {}
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        data[key.strip()] = value.strip().strip('"').strip("'")
    return data


def is_amazon_linux_2023(release: Mapping[str, str]) -> bool:
    return release.get("ID") == "amzn" and release.get("VERSION_ID", "").startswith("2023")


def check_privileges(geteuid: Callable[[], int] | None = None) -> None:
    """Raise PrivilegeError unless running as root."""
    euid = (geteuid or os.geteuid)()
    if euid != 0:
        raise PrivilegeError("This command must be run as root (use sudo).")


def resolve_target_user(
    requested: str | None,
    environ: Mapping[str, str] | None = None,
    default: str = "ec2-user",
) -> str:
    """Pick the account to add to the docker group.

    Precedence: explicit argument, then ``SUDO_USER`` (when the command
    was invoked through sudo by someone other than root), then ``default``.

    >>> resolve_target_user(None, {}, "ec2-user")
    'ec2-user'
    >>> resolve_target_user(None, {"SUDO_USER": "alice"})
    'alice'
    >>> resolve_target_user(None, {"SUDO_USER": "root"})
    'ec2-user'
    """
    if requested:
        return requested
    env = os.environ if environ is None else environ
    sudo_user = env.get("SUDO_USER", "")
    if sudo_user and sudo_user != "root":
        return sudo_user
    return default
