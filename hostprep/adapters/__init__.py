"""
Adapters — everything that touches the host.

    from hostprep.adapters import Host, CommandResult
"""

from hostprep.adapters.base import (
    ArtifactFetcher,
    CommandResult,
    CommandRunner,
    PackageManager,
    ServiceManager,
    UserDirectory,
)
from hostprep.adapters.host import Host

__all__ = [
    "ArtifactFetcher",
    "CommandResult",
    "CommandRunner",
    "Host",
    "PackageManager",
    "ServiceManager",
    "UserDirectory",
]
