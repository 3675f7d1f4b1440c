"""DevGate MCP Server.

This module provides the MCP server for DevGate, exposing the execution
gateway and the result cache to AI coding agents through FastMCP.

The server:
    - Builds the runtime (gateway, cache, availability checker) on startup
    - Routes command requests through the gateway's validation pipeline
    - Caches tool-availability probes
    - Reports cache statistics

Usage:
    # Start the server directly
    python -m devgate.server

    # Or via the CLI
    devgate run --config settings.yml
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
from fastmcp import FastMCP

from devgate.availability import CommandAvailability
from devgate.cache import CacheManager
from devgate.config import DevGateSettings, resolve_settings
from devgate.errors import UnknownNamespaceError
from devgate.execution import ExecutionGateway, ExecutionRequest
from devgate.logging_config import configure_logging

logger = structlog.get_logger()


@dataclass
class Runtime:
    """Everything a request handler needs, built once per process.

    Attributes:
        settings: Resolved settings.
        gateway: The execution gateway.
        cache: The process-wide result cache.
        availability: Cached tool-availability probes.
    """

    settings: DevGateSettings
    gateway: ExecutionGateway
    cache: CacheManager
    availability: CommandAvailability


def build_runtime(settings: DevGateSettings) -> Runtime:
    """Construct the gateway, cache and availability checker from settings."""
    gateway = ExecutionGateway(settings.gateway)
    cache = CacheManager(settings.cache)
    return Runtime(
        settings=settings,
        gateway=gateway,
        cache=cache,
        availability=CommandAvailability(gateway, cache),
    )


# Process-wide runtime, created on first use. Use _reset_for_testing() in
# tests to reset state.
_runtime: Runtime | None = None


def initialize_runtime(
    settings_path: str | Path | None = None,
    settings: DevGateSettings | None = None,
) -> Runtime:
    """Initialize the process-wide runtime.

    Args:
        settings_path: Path to settings.yml (optional).
        settings: Pre-loaded settings (optional, for testing).

    Returns:
        The initialized Runtime.

    Raises:
        ConfigError: If settings cannot be resolved.
    """
    global _runtime

    if _runtime is not None:
        logger.warning("runtime_already_initialized")
        return _runtime

    if settings is None:
        settings = resolve_settings(settings_path)

    _runtime = build_runtime(settings)

    logger.info(
        "runtime_initialized",
        project_root=str(_runtime.gateway.project_root),
        allowed_commands=len(_runtime.gateway.allowlist),
        cache_namespaces=_runtime.cache.namespaces,
    )

    return _runtime


def shutdown_runtime() -> None:
    """Discard the runtime."""
    global _runtime

    if _runtime is not None:
        _runtime = None
        logger.info("runtime_shutdown")


def get_runtime() -> Runtime:
    """Return the runtime, initializing it from settings on first use."""
    if _runtime is None:
        return initialize_runtime()
    return _runtime


def _reset_for_testing() -> None:
    """Reset global state for testing purposes.

    Clears every cache namespace before discarding the runtime so the next
    test starts from a pristine cache.

    Warning:
        This function is for testing only. Do not use in production code.
    """
    global _runtime

    if _runtime is not None:
        _runtime.cache.clear_all()
        _runtime = None


@asynccontextmanager
async def _server_lifespan(server: FastMCP):
    """Lifespan context manager for the MCP server.

    Builds the runtime on startup and discards it on shutdown.
    """
    runtime = get_runtime()
    configure_logging(runtime.settings.log_level)
    yield
    shutdown_runtime()


# Create the FastMCP server instance with lifespan
mcp = FastMCP("DevGate", lifespan=_server_lifespan)


@mcp.tool()
async def run_command(
    command: str,
    args: list[str] | None = None,
    working_directory: str | None = None,
    timeout_ms: int | None = None,
    env: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Run an allowlisted developer tool inside the project root.

    Arguments are passed to the tool as-is, one argument per list element;
    no shell is involved, so quoting and shell operators have no effect.

    Args:
        command: Allowlisted executable, e.g. "go" or "npm run".
        args: Arguments for the tool.
        working_directory: Directory inside the project root (default: root).
        timeout_ms: Timeout in milliseconds (default from settings).
        env: Extra environment variables.

    Returns:
        Result with kind (completed, failed or rejected), succeeded, exit_code,
        stdout, stderr, duration_ms and failure_reason.
    """
    request = ExecutionRequest(
        command=command,
        args=args or [],
        working_directory=working_directory,
        timeout_ms=timeout_ms,
        env=env or {},
    )
    result = await get_runtime().gateway.execute(request)
    return result.to_dict()


@mcp.tool()
async def run_sequence(
    commands: list[ExecutionRequest],
    stop_on_failure: bool = True,
) -> list[dict[str, Any]]:
    """Run several commands in order.

    Args:
        commands: Requests to run, each with command, args, working_directory,
            timeout_ms and env.
        stop_on_failure: Stop after the first unsuccessful command.

    Returns:
        One result per command that was attempted.
    """
    results = await get_runtime().gateway.execute_sequence(
        commands, stop_on_failure=stop_on_failure
    )
    return [result.to_dict() for result in results]


@mcp.tool()
async def check_command(name: str) -> dict[str, Any]:
    """Check whether a tool is allowlisted and installed.

    Args:
        name: Executable name.

    Returns:
        Dictionary with command, allowed and available.
    """
    return await get_runtime().availability.check(name)


@mcp.tool()
async def list_available_commands() -> dict[str, Any]:
    """List allowlisted tools that are installed on this machine.

    Returns:
        Dictionary with available (installed) and allowed (entire allowlist).
    """
    runtime = get_runtime()
    return {
        "available": await runtime.availability.available_commands(),
        "allowed": runtime.gateway.allowed_commands,
    }


@mcp.tool()
def cache_stats(namespace: str | None = None) -> dict[str, Any]:
    """Report result cache statistics.

    Args:
        namespace: A single namespace to report (default: all of them).

    Returns:
        Dictionary with enabled, total_memory_mb and per-namespace stats.

    Raises:
        ValueError: If the namespace does not exist.
    """
    cache = get_runtime().cache

    if namespace is None:
        stats = cache.get_all_stats()
    else:
        try:
            stats = [cache.get_stats(namespace)]
        except UnknownNamespaceError as e:
            raise ValueError(str(e)) from e

    return {
        "enabled": cache.enabled,
        "max_memory_mb": cache.settings.max_memory_mb,
        "total_memory_mb": sum(s.memory_estimate_mb for s in stats),
        "namespaces": [s.to_dict() for s in stats],
    }


# For testing: helper to create a server with specific settings
def create_test_server(settings: DevGateSettings) -> FastMCP:
    """Create a test server with the given settings.

    Resets any existing global state before initialization.

    Args:
        settings: The DevGateSettings instance to use.

    Returns:
        The FastMCP server instance.
    """
    _reset_for_testing()
    initialize_runtime(settings=settings)
    return mcp


if __name__ == "__main__":
    mcp.run()
