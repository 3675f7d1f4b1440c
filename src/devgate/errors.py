"""DevGate error types and error codes.

This module defines the error hierarchy shared by the execution gateway,
the result cache and the configuration loader.

Classes:
    - GatewayErrorCode: Machine-readable reasons a request was rejected
    - GatewayError: Policy violation detected before a process is spawned
    - CacheError: Base exception for cache misuse
    - UnknownNamespaceError: Lookup against a namespace that was never configured
    - ConfigError: Settings could not be loaded or validated
"""

from enum import Enum


class GatewayErrorCode(str, Enum):
    """Reasons a request is rejected by the execution gateway.

    Every code is a policy violation: it is detected before any child
    process exists, so results carrying one of these codes have no duration.
    """

    # Command policy
    COMMAND_NOT_ALLOWED = "command_not_allowed"
    INVALID_COMMAND = "invalid_command"

    # Working directory policy
    PATH_OUTSIDE_ROOT = "path_outside_root"
    WORKING_DIRECTORY_MISSING = "working_directory_missing"

    # Limits
    TIMEOUT_OUT_OF_RANGE = "timeout_out_of_range"

    # Environment
    INVALID_ENVIRONMENT = "invalid_environment"


class GatewayError(Exception):
    """Raised by gateway validation when a request violates policy.

    The gateway converts these into ``Rejected`` results; they never escape
    ``ExecutionGateway.execute``.

    Attributes:
        code: The error code categorizing this violation.
        message: Human-readable error message.
        command: The command that was being validated (if known).
        cause: The underlying exception (if any).

    Example:
        raise GatewayError(
            code=GatewayErrorCode.COMMAND_NOT_ALLOWED,
            message="Command 'curl' is not in the allowlist",
            command="curl",
        )
    """

    def __init__(
        self,
        code: GatewayErrorCode,
        message: str,
        command: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the gateway error.

        Args:
            code: The error code for this violation.
            message: Human-readable error message.
            command: The command being validated (optional).
            cause: The underlying exception (optional).
        """
        self.code = code
        self.message = message
        self.command = command
        self.cause = cause

        full_message = f"[{code.value}] {message}"
        if command:
            full_message = f"[{command}] {full_message}"

        super().__init__(full_message)


class CacheError(Exception):
    """Base exception for cache errors."""


class UnknownNamespaceError(CacheError, KeyError):
    """Raised when a cache operation names a namespace that does not exist.

    Namespaces are fixed when the cache is constructed, so this is always
    a programming error rather than a runtime condition.

    Attributes:
        namespace: The namespace that was requested.
        known: The namespaces the cache was built with.
    """

    def __init__(self, namespace: str, known: list[str] | None = None) -> None:
        self.namespace = namespace
        self.known = sorted(known or [])
        super().__init__(namespace)

    def __str__(self) -> str:
        known = ", ".join(self.known) or "none"
        return f"Unknown cache namespace '{self.namespace}' (known: {known})"


class ConfigError(Exception):
    """Raised when settings cannot be loaded or fail validation.

    Attributes:
        message: Human-readable error message.
        path: Path of the settings file (if applicable).
        cause: The underlying exception (if any).
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.path = path
        self.cause = cause
        super().__init__(f"{path}: {message}" if path else message)
