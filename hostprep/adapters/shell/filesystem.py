"""
Filesystem adapter — placing binaries into well-known directories.

Binaries are written next to their destination and renamed into place,
so a reader never sees a half-written executable, and the executable
bit is set explicitly before the rename.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from hostprep.adapters.base import CommandResult

logger = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755


class FileInstaller:
    """Receipt-returning file operations used by install steps."""

    def install_executable(
        self, source: Path, dest: Path, mode: int = EXECUTABLE_MODE,
    ) -> CommandResult:
        """Copy ``source`` to ``dest`` atomically and mark it executable."""
        argv = ["install", str(source), str(dest)]
        if not source.is_file():
            return CommandResult.failure(f"Source file not found: {source}", argv=argv)

        staging = dest.with_name(f".{dest.name}.hostprep-tmp")
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, staging)
            os.chmod(staging, mode)
            os.replace(staging, dest)
        except OSError as e:
            staging.unlink(missing_ok=True)
            return CommandResult.failure(f"Cannot install {dest}: {e}", argv=argv)

        logger.debug("Installed %s -> %s (mode %o)", source, dest, mode)
        return CommandResult.success(f"Installed {dest}", argv=argv)

    def ensure_symlink(self, target: Path, link: Path) -> CommandResult:
        """Create ``link`` -> ``target`` unless something already sits at ``link``."""
        argv = ["ln", "-s", str(target), str(link)]
        if link.exists() or link.is_symlink():
            return CommandResult.success(f"{link} already present", argv=argv, skipped=True)
        try:
            link.parent.mkdir(parents=True, exist_ok=True)
            link.symlink_to(target)
        except OSError as e:
            return CommandResult.failure(f"Cannot link {link}: {e}", argv=argv)
        return CommandResult.success(f"Linked {link} -> {target}", argv=argv)

    def remove_tree(self, path: Path) -> CommandResult:
        """Remove a file or directory; missing paths are not an error."""
        argv = ["rm", "-rf", str(path)]
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)
        except OSError as e:
            return CommandResult.failure(f"Cannot remove {path}: {e}", argv=argv)
        return CommandResult.success(argv=argv)

    def make_dirs(self, path: Path) -> CommandResult:
        argv = ["mkdir", "-p", str(path)]
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return CommandResult.failure(f"Cannot create {path}: {e}", argv=argv)
        return CommandResult.success(argv=argv)
