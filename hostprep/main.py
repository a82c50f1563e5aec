"""
hostprep — CLI entrypoint.

Usage:
    sudo hostprep [TARGET_USER]
    sudo hostprep --profile eks-client
    sudo hostprep --verify-only --json
    python -m hostprep --help
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from hostprep import __version__
from hostprep.core.config.loader import ConfigError, load_settings
from hostprep.core.errors import PrivilegeError, RunLogError
from hostprep.core.observability.logging_config import resolve_level, setup_logging
from hostprep.core.services.platform import check_privileges
from hostprep.core.services.profiles import DEFAULT_PROFILE, PROFILES

EXIT_CONFIG = 2


@click.command()
@click.version_option(version=__version__, prog_name="hostprep")
@click.argument("target_user", required=False)
@click.option(
    "--profile",
    "profile_name",
    type=click.Choice(sorted(PROFILES)),
    default=DEFAULT_PROFILE,
    show_default=True,
    help="What to install.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to hostprep.yml (default: $HOSTPREP_CONFIG or /etc/hostprep.yml).",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for the run log (overrides the config file).",
)
@click.option("--verify-only", is_flag=True, help="Only run the readiness checks.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output the report as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    target_user: str | None,
    profile_name: str,
    config_path: Path | None,
    log_dir: Path | None,
    verify_only: bool,
    as_json: bool,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Provision an Amazon Linux 2023 host with Docker and AWS tooling.

    TARGET_USER is added to the docker group.  Defaults to $SUDO_USER,
    then to the configured default user (ec2-user).
    """
    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(resolve_level(debug=debug, verbose=verbose, quiet=quiet))

    try:
        check_privileges()
    except PrivilegeError as e:
        click.secho(f"[FAIL] {e}", fg="red", err=True)
        sys.exit(1)

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        click.secho(f"[FAIL] {e}", fg="red", err=True)
        sys.exit(EXIT_CONFIG)

    if log_dir is not None:
        settings = settings.model_copy(update={"log_dir": log_dir})

    from hostprep.core.use_cases.provision import provision

    try:
        result = provision(
            profile_name,
            settings,
            target_user=target_user,
            verify_only=verify_only,
            echo=not as_json and not quiet,
        )
    except RunLogError as e:
        click.secho(f"[FAIL] {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.ok:
        click.secho(f"\nAll done. Log file: {result.log_path}", fg="green")
    else:
        click.secho(f"\n{result.error or 'Provisioning failed'}", fg="red", err=True)
    if result.log_error:
        click.secho(f"Run log is incomplete: {result.log_error}", fg="magenta", err=True)
    sys.exit(result.exit_code)


if __name__ == "__main__":
    cli()
