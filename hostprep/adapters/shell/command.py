"""
Local command runner — the SINGLE PLACE where ``subprocess.run`` is called.

Every child process gets an environment built from scratch: a fixed
base (PATH, LANG, HOME) plus the overrides passed for that call.
Nothing from the invoking shell leaks into a step, and nothing one
step exports is visible to the next.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path

from hostprep.adapters.base import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"

# Output kept on the result; the full text goes to the run log at DEBUG.
_TAIL_CHARS = 2000


def base_environment(extra_path: Sequence[str] = ()) -> dict[str, str]:
    """Build the minimal environment every command starts from."""
    path_parts = [str(p) for p in extra_path] + [DEFAULT_PATH]
    return {
        "PATH": ":".join(path_parts),
        "LANG": "C.UTF-8",
        "LC_ALL": "C.UTF-8",
        "HOME": os.environ.get("HOME", "/root"),
    }


class LocalCommandRunner(CommandRunner):
    """Run commands on this host with bounded time and environment."""

    def __init__(
        self,
        default_timeout: float = 600,
        extra_path: Sequence[str | Path] = (),
    ) -> None:
        self._default_timeout = default_timeout
        self._extra_path = [str(p) for p in extra_path]

    def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None = None,
        env_overrides: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        cmd = [str(a) for a in argv]
        timeout = timeout if timeout is not None else self._default_timeout

        env = base_environment(self._extra_path)
        if env_overrides:
            env.update(env_overrides)

        logger.debug("Executing: %s (timeout=%ss)", " ".join(cmd), timeout)
        start = time.monotonic()

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
                cwd=str(cwd) if cwd else None,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            return CommandResult.failure(
                f"{cmd[0]}: command not found", returncode=127, argv=cmd,
            )
        except subprocess.TimeoutExpired:
            logger.debug("Timed out after %ss: %s", timeout, " ".join(cmd))
            return CommandResult.failure(
                f"Command timed out after {timeout}s", returncode=124, argv=cmd,
            )
        except OSError as e:
            return CommandResult.failure(f"Cannot execute {cmd[0]}: {e}", argv=cmd)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if result.stdout:
            logger.debug("stdout from %s:\n%s", cmd[0], result.stdout.rstrip())
        if result.stderr:
            logger.debug("stderr from %s:\n%s", cmd[0], result.stderr.rstrip())

        return CommandResult(
            argv=cmd,
            returncode=result.returncode,
            stdout=(result.stdout or "")[-_TAIL_CHARS:],
            stderr=(result.stderr or "")[-_TAIL_CHARS:],
            duration_ms=elapsed_ms,
        )
