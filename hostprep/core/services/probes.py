"""
Verification probes — read-only capability checks.

Each capability is answered by one or more command *surfaces*.  A probe
runs the surfaces in order and reports the capability present as soon
as one of them exits 0; the version is parsed from its output with the
surface's regex.  A *strict* surface must also match its regex, so a
wrong major release (AWS CLI v1 where v2 is wanted) reads as absent.

Probes only run version/introspection commands.  Calling a probe any
number of times produces the same ``VerificationResult`` as calling it
once, absent external change.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from hostprep.adapters.base import CommandRunner
from hostprep.core.models.outcome import ReadinessReport, VerificationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Surface:
    """One way of reaching a capability from the command line."""

    label: str
    argv: tuple[str, ...]
    version_pattern: str
    # Unmatched version output counts as absent (e.g. AWS CLI v1 for v2)
    strict: bool = False


PROBE_SURFACES: dict[str, tuple[Surface, ...]] = {
    "docker": (
        Surface("docker", ("docker", "--version"), r"Docker version\s+(\d+\.\d+\.\d+)"),
    ),
    # Plugin first; the standalone binary is the legacy surface.
    "compose": (
        Surface("docker compose", ("docker", "compose", "version"), r"v?(\d+\.\d+\.\d+)"),
        Surface("docker-compose", ("docker-compose", "--version"), r"v?(\d+\.\d+\.\d+)"),
    ),
    "aws": (
        Surface("aws", ("aws", "--version"), r"aws-cli/(2\.\d+\.\d+)", strict=True),
    ),
    "eksctl": (
        Surface("eksctl", ("eksctl", "version"), r"(\d+\.\d+\.\d+)"),
    ),
    "kubectl": (
        Surface("kubectl", ("kubectl", "version", "--client"), r"v(\d+\.\d+\.\d+)"),
    ),
}


class ProbeRegistry:
    """Runs the registered probes through a command runner."""

    def __init__(
        self,
        commands: CommandRunner,
        *,
        timeout: float = 15,
        surfaces: dict[str, tuple[Surface, ...]] | None = None,
    ) -> None:
        self._commands = commands
        self._timeout = timeout
        self._surfaces = dict(PROBE_SURFACES if surfaces is None else surfaces)

    @property
    def tools(self) -> list[str]:
        return list(self._surfaces)

    def probe(self, tool: str) -> VerificationResult:
        """Check whether ``tool`` is present and report its version.

        Raises:
            ValueError: If no probe is registered for ``tool``.
        """
        surfaces = self._surfaces.get(tool)
        if surfaces is None:
            raise ValueError(
                f"No probe registered for '{tool}'. Known: {', '.join(sorted(self._surfaces))}"
            )

        for surface in surfaces:
            result = self._commands.run(surface.argv, timeout=self._timeout)
            if not result.ok:
                logger.debug("Probe %s: %s unavailable (%s)", tool, surface.label, result.error)
                continue
            output = result.stdout + result.stderr
            if surface.strict and not re.search(surface.version_pattern, output):
                logger.debug("Probe %s: %s reports an unsupported version: %s",
                             tool, surface.label, output.strip()[:120])
                continue
            version = _parse_version(output, surface.version_pattern)
            logger.debug("Probe %s: %s reports %s", tool, surface.label, version)
            return VerificationResult(
                tool=tool, present=True, version_string=version, surface=surface.label,
            )

        return VerificationResult(tool=tool, present=False)

    def readiness(
        self,
        required: Iterable[str],
        optional: Iterable[str] = (),
    ) -> ReadinessReport:
        """Probe every listed tool and aggregate the results."""
        required = list(required)
        tools = required + [t for t in optional if t not in required]
        return ReadinessReport(
            results=[self.probe(tool) for tool in tools],
            required=required,
        )


def _parse_version(output: str, pattern: str) -> str | None:
    match = re.search(pattern, output)
    if match:
        return match.group(1)
    first_line = output.strip().splitlines()[:1]
    return first_line[0].strip() if first_line else None
