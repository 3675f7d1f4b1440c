"""DevGate CLI entry point.

This module provides the main Typer application and entry point for the
`devgate` CLI.

Usage:
    devgate run [options]                 - Run the MCP server
    devgate exec [options] COMMAND [ARGS] - Run a command through the gateway
    devgate doctor [options]              - Run diagnostics
    devgate version [options]             - Show version information
"""

import typer

from devgate.cli.commands import doctor, execute, run, version

app = typer.Typer(
    name="devgate",
    help="DevGate CLI - Allowlisted developer tools for coding agents",
    no_args_is_help=True,
)

app.command(name="run")(run.run_command)
app.command(
    name="exec",
    context_settings={
        "allow_interspersed_args": False,
        "ignore_unknown_options": True,
    },
)(execute.exec_command)
app.command(name="doctor")(doctor.doctor_command)
app.command(name="version")(version.version_command)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
