"""
Provisioning profiles — the supported host layouts, as data.

Pure data.  Each profile lists its steps and fallback chains in run
order plus the probes the final verification phase must see pass.

    docker       Docker engine + Compose (plugin, else standalone binary)
    docker-aws   docker + AWS CLI v2
    eks-client   Docker + AWS CLI v2 + eksctl + kubectl
"""

from __future__ import annotations

from hostprep.core.models.step import FallbackChain, OnFailure, Profile, Step
from hostprep.core.services import steps

_GROUP_NOTE = (
    "Users added to the docker group must log out and back in "
    "(or run 'newgrp docker') for the membership to apply."
)


def _docker_engine(*extra_packages: str) -> list[Step]:
    return [
        Step(name="Install Docker package", action=steps.install_packages("docker", *extra_packages)),
        Step(name="Enable and start Docker service", action=steps.enable_service()),
        Step(name="Add target user to docker group", action=steps.add_target_user_to_group()),
    ]


def _compose_chain() -> FallbackChain:
    return FallbackChain(
        name="Docker Compose",
        capability="compose",
        members=[
            Step(
                name="docker-compose-plugin package",
                action=steps.install_compose_plugin(),
                on_failure=OnFailure.CONTINUE,
            ),
            Step(
                name="standalone docker-compose binary",
                action=steps.install_compose_standalone(),
            ),
        ],
    )


def _awscli_chain() -> FallbackChain:
    return FallbackChain(
        name="AWS CLI v2",
        capability="aws",
        members=[Step(name="AWS CLI v2 bundle installer", action=steps.install_awscli())],
    )


def _cleanup(*, package_cache: bool = False) -> list[Step]:
    cleanup = [
        Step(
            name="Remove downloaded artifacts",
            action=steps.cleanup_work_dir(),
            on_failure=OnFailure.CONTINUE,
        ),
    ]
    if package_cache:
        cleanup.append(Step(
            name="Clean dnf caches",
            action=steps.clean_package_cache(),
            on_failure=OnFailure.CONTINUE,
        ))
    return cleanup


PROFILES: dict[str, Profile] = {
    "docker": Profile(
        name="docker",
        description="Docker engine and Docker Compose",
        log_prefix="docker-install",
        entries=[
            Step(name="Update system packages", action=steps.update_packages()),
            *_docker_engine("git", "curl"),
            _compose_chain(),
            *_cleanup(package_cache=True),
        ],
        required_probes=["docker", "compose"],
        notes=[_GROUP_NOTE],
    ),
    "docker-aws": Profile(
        name="docker-aws",
        description="Docker engine, Docker Compose and AWS CLI v2",
        log_prefix="install",
        entries=[
            Step(name="Update system packages", action=steps.update_packages()),
            Step(
                name="Install prerequisites",
                action=steps.install_packages("curl", "unzip", "tar", "gzip", "ca-certificates"),
            ),
            *_docker_engine(),
            _compose_chain(),
            _awscli_chain(),
            *_cleanup(),
        ],
        required_probes=["docker", "compose", "aws"],
        notes=[_GROUP_NOTE],
    ),
    "eks-client": Profile(
        name="eks-client",
        description="Docker engine, AWS CLI v2, eksctl and kubectl",
        log_prefix="eks-client-install",
        entries=[
            Step(
                name="Install prerequisites",
                action=steps.install_packages("curl", "unzip", "tar", "gzip", "coreutils"),
            ),
            *_docker_engine(),
            _awscli_chain(),
            FallbackChain(
                name="eksctl",
                capability="eksctl",
                members=[Step(name="eksctl latest release", action=steps.install_eksctl())],
            ),
            FallbackChain(
                name="kubectl",
                capability="kubectl",
                members=[Step(name="kubectl stable release", action=steps.install_kubectl())],
            ),
            *_cleanup(),
        ],
        required_probes=["docker", "aws", "eksctl", "kubectl"],
        optional_probes=["compose"],
        notes=[_GROUP_NOTE],
    ),
}

DEFAULT_PROFILE = "docker-aws"


def get_profile(name: str) -> Profile:
    """Look up a profile by name.

    Raises:
        KeyError: If no such profile exists.
    """
    try:
        return PROFILES[name]
    except KeyError:
        raise KeyError(
            f"Unknown profile '{name}'. Available: {', '.join(sorted(PROFILES))}"
        ) from None
