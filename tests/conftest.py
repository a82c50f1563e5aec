"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from hostprep.adapters.mock import FakeHost
from hostprep.core.config.loader import Settings
from hostprep.core.context import RunContext
from hostprep.core.observability.run_log import RunLog

AL2023_RELEASE = """\
NAME="Amazon Linux"
VERSION="2023"
ID="amzn"
ID_LIKE="fedora"
VERSION_ID="2023"
PRETTY_NAME="Amazon Linux 2023.4.20240401"
"""


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every host path redirected under tmp_path."""
    return Settings(
        log_dir=tmp_path / "log",
        work_dir=tmp_path / "work",
        bin_dir=tmp_path / "bin",
        compose_compat_link=tmp_path / "usr-bin" / "docker-compose",
        aws_install_dir=tmp_path / "aws-cli",
    )


@pytest.fixture
def os_release(tmp_path: Path) -> Path:
    """An Amazon Linux 2023 /etc/os-release."""
    path = tmp_path / "os-release"
    path.write_text(AL2023_RELEASE)
    return path


@pytest.fixture
def fake_host(settings: Settings) -> FakeHost:
    return FakeHost(settings)


@pytest.fixture
def run_log(settings: Settings):
    log = RunLog.create(settings.log_dir, prefix="test", echo=False)
    yield log
    log.close()


@pytest.fixture
def context(fake_host: FakeHost, settings: Settings, run_log: RunLog) -> RunContext:
    return RunContext(
        host=fake_host,
        settings=settings,
        run_log=run_log,
        target_user="ec2-user",
    )
