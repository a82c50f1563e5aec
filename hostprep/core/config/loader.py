"""
Configuration loader — reads hostprep.yml into a Settings model.

Every setting has a built-in default matching a stock Amazon Linux
2023 EC2 instance, so a config file is optional.  When one is given
it is read with ``yaml.safe_load`` and validated by Pydantic; unknown
keys are rejected so that a typo cannot silently fall back to a
default.

Lookup order for the file:
    --config flag  >  HOSTPREP_CONFIG env var  >  /etc/hostprep.yml (if present)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("/etc/hostprep.yml")
CONFIG_ENV_VAR = "HOSTPREP_CONFIG"


class ConfigError(Exception):
    """Raised when the settings file is invalid or unreadable."""


class Settings(BaseModel):
    """Tunable paths, URLs and limits for a provisioning run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # ── Paths ───────────────────────────────────────────────────
    log_dir: Path = Path("/var/log/hostprep")
    work_dir: Path = Path("/tmp/hostprep")
    bin_dir: Path = Path("/usr/local/bin")
    compose_compat_link: Path = Path("/usr/bin/docker-compose")
    aws_install_dir: Path = Path("/usr/local/aws-cli")

    # ── Accounts ────────────────────────────────────────────────
    default_user: str = "ec2-user"
    docker_group: str = "docker"
    docker_service: str = "docker"

    # ── Limits (seconds) ────────────────────────────────────────
    command_timeout: int = Field(default=600, gt=0)
    package_timeout: int = Field(default=900, gt=0)
    probe_timeout: int = Field(default=15, gt=0)
    download_timeout: int = Field(default=300, gt=0)
    lookup_timeout: int = Field(default=15, gt=0)

    # ── Artifacts ───────────────────────────────────────────────
    compose_url: str = (
        "https://github.com/docker/compose/releases/latest/download/"
        "docker-compose-{os}-{machine}"
    )
    awscli_url: str = "https://awscli.amazonaws.com/awscli-exe-linux-{aws_arch}.zip"
    eksctl_url: str = (
        "https://github.com/eksctl-io/eksctl/releases/latest/download/"
        "eksctl_{os}_{arch}.tar.gz"
    )
    kubectl_stable_url: str = "https://dl.k8s.io/release/stable.txt"
    kubectl_url: str = "https://dl.k8s.io/release/{version}/bin/linux/{arch}/kubectl"
    # Used when the stable lookup fails; empty string makes that failure fatal.
    kubectl_fallback_version: str = "v1.27.0"


def find_settings_file(environ: dict[str, str] | None = None) -> Path | None:
    """Locate the settings file from the environment or the default path."""
    env = os.environ if environ is None else environ
    from_env = env.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)
    if DEFAULT_CONFIG_FILE.is_file():
        return DEFAULT_CONFIG_FILE
    return None


def load_settings(path: Path | None = None, *, search: bool = True) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit settings file.  If None and ``search`` is True,
            ``find_settings_file()`` is consulted.
        search: Whether to look for a settings file when ``path`` is None.

    Returns:
        Validated Settings (all defaults when no file is found).

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None and search:
        path = find_settings_file()

    if path is None:
        logger.debug("No settings file, using built-in defaults")
        return Settings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may wrap everything under a "hostprep" key or be flat
    settings_data = data.get("hostprep", data) if "hostprep" in data else data

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings
