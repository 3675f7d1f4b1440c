"""Run command for DevGate CLI.

This module provides the `devgate run` command that starts the MCP server.
"""

from pathlib import Path
from typing import Annotated

import typer

from devgate.config import SETTINGS_ENV_VAR


def run_command(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to settings.yml (default: search standard locations)",
        ),
    ] = None,
    transport: Annotated[
        str,
        typer.Option(
            "--transport",
            "-t",
            help="Transport type (stdio or sse)",
        ),
    ] = "stdio",
    host: Annotated[
        str,
        typer.Option(
            "--host",
            help="Host to bind to (for sse transport)",
        ),
    ] = "127.0.0.1",
    port: Annotated[
        int,
        typer.Option(
            "--port",
            "-p",
            help="Port to bind to (for sse transport)",
        ),
    ] = 8000,
) -> None:
    """Run the DevGate MCP server.

    Starts the MCP server with the specified configuration. By default,
    uses stdio transport for integration with MCP clients.

    Examples:
        devgate run                    # Run with stdio (default)
        devgate run -t sse -p 8080     # Run with SSE on port 8080
    """
    import os

    if transport not in ("stdio", "sse"):
        typer.echo(f"Error: Unknown transport '{transport}'", err=True)
        typer.echo("Supported transports: stdio, sse", err=True)
        raise typer.Exit(1)

    if config is not None:
        if not config.exists():
            typer.echo(f"Error: Settings file not found: {config}", err=True)
            raise typer.Exit(1)
        os.environ[SETTINGS_ENV_VAR] = str(config.absolute())

    # Import the server lazily so `devgate --help` stays fast
    from devgate.server import mcp

    settings_label = str(config) if config is not None else "auto"
    if transport == "stdio":
        typer.echo("Starting DevGate MCP server (stdio)...", err=True)
        typer.echo(f"Using settings: {settings_label}", err=True)
        mcp.run(transport="stdio")
    else:
        typer.echo(f"Starting DevGate MCP server on http://{host}:{port}", err=True)
        typer.echo(f"Using settings: {settings_label}", err=True)
        mcp.run(transport="sse", host=host, port=port)
