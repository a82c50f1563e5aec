"""
Run context — everything a step action may touch during one run.

Built once by the provision use case and passed by reference to the
Step Runner, the Fallback Resolver and every action.  There is no
module-level state: two contexts never share a log or a host.
"""

from __future__ import annotations

from dataclasses import dataclass

from hostprep.adapters.host import Host
from hostprep.core.config.loader import Settings
from hostprep.core.observability.run_log import RunLog


@dataclass
class RunContext:
    """Per-invocation collaborators and resolved host facts."""

    host: Host
    settings: Settings
    run_log: RunLog
    target_user: str
    machine: str = "x86_64"          # raw ``uname -m``
    arch: str = "amd64"              # download-arch token
    os_name: str = "Linux"           # raw ``uname -s``
