"""CLI commands for DevGate.

This package contains the implementation of CLI commands:
    - run: Start the MCP server
    - execute: Run one command through the gateway
    - doctor: Diagnose issues
    - version: Show version information
"""
