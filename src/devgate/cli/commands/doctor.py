"""Doctor command for DevGate CLI.

This module provides the `devgate doctor` command that diagnoses common issues
and suggests fixes for the DevGate configuration.

Checks performed:
    1. Settings file exists and is valid YAML
    2. Settings pass schema validation
    3. The project root exists and is a directory
    4. Allowlisted tools are installed (informational)
"""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
import yaml
from pydantic import ValidationError

from devgate.config import DevGateSettings, apply_env_overrides, load_settings


@dataclass
class CheckResult:
    """Result of a diagnostic check.

    Attributes:
        name: Short name of the check.
        passed: Whether the check passed.
        message: Descriptive message about the result.
        suggestion: Optional suggestion for fixing failures.
    """

    name: str
    passed: bool
    message: str
    suggestion: str | None = None


def doctor_command(
    config: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to settings.yml",
        ),
    ] = Path("./settings.yml"),
) -> None:
    """Diagnose common issues and suggest fixes.

    Runs a series of diagnostic checks on the DevGate configuration
    and reports the results.
    """
    typer.echo("Running diagnostics...\n")

    checks: list[CheckResult] = []

    file_exists_check = _check_settings_file_exists(config)
    checks.append(file_exists_check)

    if file_exists_check.passed:
        yaml_check = _check_yaml_validity(config)
        checks.append(yaml_check)

        if yaml_check.passed:
            schema_check, settings = _check_schema(config)
            checks.append(schema_check)

            if settings is not None:
                checks.append(_check_project_root(settings))
                checks.append(_check_tools(settings))

    _display_results(checks)

    has_failures = any(not check.passed for check in checks)
    if has_failures:
        raise typer.Exit(1)


def _check_settings_file_exists(config: Path) -> CheckResult:
    """Check if the settings file exists."""
    if config.exists():
        return CheckResult(
            name="Settings file",
            passed=True,
            message=f"Found: {config}",
        )
    return CheckResult(
        name="Settings file",
        passed=False,
        message=f"Not found: {config}",
        suggestion="Create a settings.yml or pass --config with its location.",
    )


def _check_yaml_validity(config: Path) -> CheckResult:
    """Check if the settings file contains valid YAML."""
    try:
        yaml.safe_load(config.read_text())
    except yaml.YAMLError as e:
        return CheckResult(
            name="YAML syntax",
            passed=False,
            message=f"Invalid YAML: {e}",
            suggestion="Check the YAML syntax and fix any formatting errors.",
        )
    return CheckResult(
        name="YAML syntax",
        passed=True,
        message="Valid YAML",
    )


def _check_schema(config: Path) -> tuple[CheckResult, DevGateSettings | None]:
    """Validate the settings against the configuration models.

    Returns:
        Tuple of (CheckResult, settings with env overrides applied, or None).
    """
    try:
        settings = apply_env_overrides(load_settings(config))
    except ValidationError as e:
        return (
            CheckResult(
                name="Settings schema",
                passed=False,
                message=f"{e.error_count()} validation error(s): {e}",
                suggestion="Fix the reported fields in settings.yml.",
            ),
            None,
        )
    except ValueError as e:
        return (
            CheckResult(
                name="Settings schema",
                passed=False,
                message=str(e),
                suggestion="Set the referenced environment variables.",
            ),
            None,
        )
    return (
        CheckResult(
            name="Settings schema",
            passed=True,
            message=(
                f"{len(settings.gateway.allowed_commands)} allowlisted commands, "
                f"{len(settings.cache.namespaces)} cache namespaces"
            ),
        ),
        settings,
    )


def _check_project_root(settings: DevGateSettings) -> CheckResult:
    """Check that the project root exists and is a directory."""
    root = settings.gateway.project_root
    if root.is_dir():
        return CheckResult(
            name="Project root",
            passed=True,
            message=f"Directory exists: {root.resolve()}",
        )
    return CheckResult(
        name="Project root",
        passed=False,
        message=f"Not a directory: {root}",
        suggestion="Set gateway.project_root or DEVGATE_PROJECT_ROOT.",
    )


def _check_tools(settings: DevGateSettings) -> CheckResult:
    """Report which allowlisted tools are installed.

    Missing tools are not an error: the allowlist is usually broader than
    what a single machine has installed.
    """
    allowed = sorted(set(settings.gateway.allowed_commands))
    missing = [name for name in allowed if shutil.which(name) is None]
    installed = len(allowed) - len(missing)

    message = f"{installed} of {len(allowed)} allowlisted tools installed"
    if missing:
        message += f" (missing: {', '.join(missing)})"

    return CheckResult(name="Tools", passed=True, message=message)


def _display_results(checks: list[CheckResult]) -> None:
    """Display check results in a human-readable format."""
    passed_count = 0
    failed_count = 0

    for check in checks:
        if check.passed:
            passed_count += 1
            prefix = "[PASS]"
        else:
            failed_count += 1
            prefix = "[FAIL]"

        typer.echo(f"{prefix} {check.name}: {check.message}")

        if check.suggestion:
            typer.echo(f"       Suggestion: {check.suggestion}")

    typer.echo()
    typer.echo(f"Summary: {passed_count} passed, {failed_count} errors")
