"""Exec command for DevGate CLI.

This module provides the `devgate exec` command that runs one command through
the execution gateway and prints the result as JSON. The process exit code
mirrors the child's exit code; rejected and failed requests exit with 1.
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer

from devgate.config import resolve_settings
from devgate.errors import ConfigError
from devgate.execution import Completed, ExecutionGateway, ExecutionRequest
from devgate.logging_config import configure_logging


def exec_command(
    command: Annotated[
        str,
        typer.Argument(help="Allowlisted executable to run"),
    ],
    args: Annotated[
        list[str] | None,
        typer.Argument(help="Arguments passed verbatim to the executable"),
    ] = None,
    working_directory: Annotated[
        str | None,
        typer.Option(
            "--cwd",
            "-C",
            help="Working directory inside the project root",
        ),
    ] = None,
    timeout_ms: Annotated[
        int | None,
        typer.Option(
            "--timeout-ms",
            help="Timeout in milliseconds",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to settings.yml (default: search standard locations)",
        ),
    ] = None,
) -> None:
    """Run a command through the execution gateway.

    Options must come before COMMAND; everything after it is passed to the
    executable unchanged.

    Examples:
        devgate exec go version
        devgate exec -C pkg/api go test ./...
    """
    try:
        settings = resolve_settings(config)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2) from e

    configure_logging(settings.log_level)

    gateway = ExecutionGateway(settings.gateway)
    request = ExecutionRequest(
        command=command,
        args=args or [],
        working_directory=working_directory,
        timeout_ms=timeout_ms,
    )
    result = asyncio.run(gateway.execute(request))

    typer.echo(json.dumps(result.to_dict(), indent=2))

    if isinstance(result, Completed) and 0 <= result.exit_code <= 255:
        exit_code = result.exit_code
    else:
        exit_code = 0 if result.succeeded else 1

    if exit_code != 0:
        raise typer.Exit(exit_code)
