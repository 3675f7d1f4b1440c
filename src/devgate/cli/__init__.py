"""DevGate CLI module.

This module provides the command-line interface for DevGate, enabling users to:
    - Start the MCP server with `devgate run`
    - Run a single command through the gateway with `devgate exec`
    - Diagnose configuration issues with `devgate doctor`
    - Show version information with `devgate version`
"""
