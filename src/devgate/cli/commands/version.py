"""Version command for DevGate CLI.

This module provides the `devgate version` command that displays version
information.
"""

import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Annotated

import typer

DEPENDENCIES = ["fastmcp", "pydantic", "pyyaml", "structlog", "typer"]


def get_version() -> str:
    """Get the installed DevGate version.

    Returns:
        Version string or 'unknown' if not found.
    """
    try:
        return version("devgate")
    except PackageNotFoundError:
        return "unknown"


def version_command(
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show detailed version information",
        ),
    ] = False,
) -> None:
    """Show DevGate version information.

    Displays the installed version of DevGate and optionally
    additional environment information.
    """
    devgate_version = get_version()

    if not verbose:
        typer.echo(f"devgate {devgate_version}")
        return

    typer.echo(f"DevGate version: {devgate_version}")
    typer.echo(f"Python version: {sys.version}")
    typer.echo(f"Python executable: {sys.executable}")

    typer.echo("\nDependencies:")
    for dep in DEPENDENCIES:
        try:
            typer.echo(f"  {dep}: {version(dep)}")
        except PackageNotFoundError:
            typer.echo(f"  {dep}: not found")
