"""DevGate: a command-execution gateway for AI coding agents.

DevGate lets an agent run developer tools (compilers, linters, test runners,
VCS tools) on the host without shell access. Commands are checked against an
allowlist, spawned with an argument vector, confined to the project root and
bounded by a timeout. A namespaced LRU cache keeps the answers to expensive,
idempotent questions such as "is this tool installed".

Subpackages:
    - execution: The execution gateway (ExecutionGateway)
    - cache: The namespaced result cache (CacheManager)
    - cli: The `devgate` command-line interface
"""

__version__ = "0.1.0"

__all__ = ["__version__", "mcp"]


def __getattr__(name: str):
    """Lazy import of the MCP server to keep library imports light."""
    if name == "mcp":
        from devgate.server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
