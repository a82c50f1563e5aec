"""
Run log — the append-only record of one provisioning invocation.

One ``RunLog`` is created per run, before any other action, at a path
derived from the start time (``<log_dir>/<prefix>-YYYYmmdd-HHMMSS.log``).
It is passed explicitly to every component that reports progress; there
is no module-level log handle.

Two kinds of lines land in the file:

- status records (``[INFO]``, ``[OK]``, ``[WARN]``, ``[FAIL]``), also echoed
  to the terminal as colored lines;
- diagnostic output from the ``hostprep`` logger (command stdout and
  stderr at DEBUG), attached for the lifetime of the run.

After ``close()`` the log rejects further records.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import click

from hostprep.core.errors import RunLogError
from hostprep.core.models.outcome import RunRecord
from hostprep.core.observability.logging_config import DATEFMT_FILE, FMT_FILE

logger = logging.getLogger(__name__)

_PACKAGE_LOGGER = "hostprep"

_STYLE: dict[str, tuple[str, str]] = {
    "info": ("[INFO]", "yellow"),
    "ok": ("[OK]  ", "green"),
    "warn": ("[WARN]", "magenta"),
    "fail": ("[FAIL]", "red"),
}


class RunLog:
    """Append-only, timestamped status log for one invocation."""

    def __init__(self, path: Path, *, echo: bool = True) -> None:
        self._path = path
        self._echo = echo
        self._records: list[RunRecord] = []
        self._closed = False
        self._handler: logging.Handler | None = None
        self._saved_level: int | None = None
        self._write_error: str | None = None

    @classmethod
    def create(
        cls,
        log_dir: Path,
        *,
        prefix: str = "install",
        started_at: datetime | None = None,
        echo: bool = True,
    ) -> RunLog:
        """Create the log file for a new run.

        The file is created exclusively: a run never appends to a
        previous run's log, even when two runs start in the same second.

        Raises:
            RunLogError: If the directory or the file cannot be created.
        """
        started = started_at or datetime.now()
        stamp = started.strftime("%Y%m%d-%H%M%S")

        candidate = log_dir / f"{prefix}-{stamp}.log"
        suffix = 1
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            while True:
                try:
                    with candidate.open("x", encoding="utf-8"):
                        pass
                    break
                except FileExistsError:
                    candidate = log_dir / f"{prefix}-{stamp}-{suffix}.log"
                    suffix += 1
        except OSError as e:
            raise RunLogError(f"Cannot create run log in {log_dir}: {e}") from e

        run_log = cls(candidate, echo=echo)
        run_log.attach()
        return run_log

    # ── Properties ──────────────────────────────────────────────

    @property
    def path(self) -> Path:
        return self._path

    @property
    def records(self) -> tuple[RunRecord, ...]:
        """All records so far, oldest first (read-only view)."""
        return tuple(self._records)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def write_error(self) -> str | None:
        """First error hit while appending to the file, if any."""
        return self._write_error

    @property
    def degraded(self) -> bool:
        """True when some status records never reached the file."""
        return self._write_error is not None

    # ── Status records ──────────────────────────────────────────

    def info(self, message: str) -> RunRecord:
        return self._append("info", message)

    def ok(self, message: str) -> RunRecord:
        return self._append("ok", message)

    def warn(self, message: str) -> RunRecord:
        return self._append("warn", message)

    def fail(self, message: str) -> RunRecord:
        return self._append("fail", message)

    def _append(self, level: str, message: str) -> RunRecord:
        if self._closed:
            raise RuntimeError(f"Run log {self._path} is closed")

        record = RunRecord(level=level, message=message)
        self._records.append(record)

        tag, color = _STYLE[level]
        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(f"{record.timestamp} {tag} {message}\n")
        except OSError as e:
            logger.error("Failed to write run log %s: %s", self._path, e)
            if self._write_error is None:
                self._write_error = str(e)
                click.secho(
                    f"[WARN] Run log {self._path} is incomplete: {e}", fg="magenta", err=True,
                )

        if self._echo:
            click.secho(f"{tag} {message}", fg=color, err=level == "fail")
        return record

    # ── Diagnostic handler ──────────────────────────────────────

    def attach(self) -> None:
        """Route ``hostprep.*`` log output (DEBUG and up) into the run log file."""
        if self._handler is not None:
            return
        handler = logging.FileHandler(self._path, encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(FMT_FILE, datefmt=DATEFMT_FILE))

        pkg_logger = logging.getLogger(_PACKAGE_LOGGER)
        self._saved_level = pkg_logger.level
        pkg_logger.setLevel(logging.DEBUG)
        pkg_logger.addHandler(handler)
        self._handler = handler

    def close(self) -> None:
        """Detach the diagnostic handler and freeze the log."""
        if self._handler is not None:
            pkg_logger = logging.getLogger(_PACKAGE_LOGGER)
            pkg_logger.removeHandler(self._handler)
            self._handler.close()
            if self._saved_level is not None:
                pkg_logger.setLevel(self._saved_level)
            self._handler = None
        self._closed = True

    def __enter__(self) -> RunLog:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<RunLog path={str(self._path)!r} records={len(self._records)}>"
