"""Request and result types for the execution gateway.

This module defines:
    - ExecutionRequest: What a caller asks the gateway to run
    - PreparedCommand: A request that passed validation and is ready to spawn
    - FailureReason: Why a spawned (or attempted) process produced no exit code
    - Completed / Failed / Rejected: The three result variants
    - ExecutionResult: Union of the result variants

Every variant exposes ``succeeded``, ``exit_code``, ``failure_reason`` and
``to_dict()`` so callers can use one success check regardless of outcome.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from devgate.errors import GatewayErrorCode


class ExecutionRequest(BaseModel):
    """A command the caller wants the gateway to run.

    Attributes:
        command: Allowlisted executable, optionally followed by leading
            arguments separated by whitespace (e.g. "go test").
        args: Further arguments, each passed as one argv element.
        working_directory: Directory to run in; relative paths are taken from
            the project root. None means the project root.
        timeout_ms: Timeout in milliseconds; None means the configured default.
        env: Environment variables to set on top of the inherited environment.
    """

    model_config = ConfigDict(frozen=True)

    command: str
    args: list[str] = Field(default_factory=list)
    working_directory: str | None = None
    timeout_ms: int | None = None
    env: dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class PreparedCommand:
    """A validated request, ready to be spawned.

    Attributes:
        argv: Full argument vector, executable first.
        cwd: Resolved working directory inside the project root.
        timeout_ms: Validated timeout.
        env: Environment overrides to merge into the inherited environment.
    """

    argv: tuple[str, ...]
    cwd: Path
    timeout_ms: int
    env: dict[str, str] = field(default_factory=dict)

    @property
    def executable(self) -> str:
        return self.argv[0]

    @property
    def display(self) -> str:
        """Human-readable echo of the command (never executed)."""
        return " ".join(self.argv)


class FailureReason(str, Enum):
    """Why a process produced no exit code."""

    TIMEOUT = "timeout"
    SPAWN_ERROR = "spawn_error"


@dataclass(frozen=True)
class Completed:
    """The process ran and exited on its own.

    A non-zero exit code is reported faithfully; interpreting it (e.g. "exit 1
    means lint findings") is the caller's business.
    """

    command: str
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int
    stdout_truncated: bool = False
    stderr_truncated: bool = False
    kind: Literal["completed"] = field(default="completed", init=False)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def failure_reason(self) -> str | None:
        return None if self.succeeded else "exit_code"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "succeeded": self.succeeded,
            "command": self.command,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_ms": self.duration_ms,
            "failure_reason": self.failure_reason,
            "message": (
                None if self.succeeded else f"Command exited with code {self.exit_code}"
            ),
            "stdout_truncated": self.stdout_truncated,
            "stderr_truncated": self.stderr_truncated,
        }


@dataclass(frozen=True)
class Failed:
    """The process timed out or could not be spawned.

    Output captured before a timeout is kept in ``stdout``/``stderr``.
    """

    command: str
    reason: FailureReason
    message: str
    duration_ms: int
    stdout: str = ""
    stderr: str = ""
    kind: Literal["failed"] = field(default="failed", init=False)

    @property
    def succeeded(self) -> bool:
        return False

    @property
    def exit_code(self) -> int:
        return -1

    @property
    def failure_reason(self) -> str:
        return self.reason.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "succeeded": False,
            "command": self.command,
            "exit_code": -1,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_ms": self.duration_ms,
            "failure_reason": self.failure_reason,
            "message": self.message,
        }


@dataclass(frozen=True)
class Rejected:
    """The request violated policy; no process was spawned.

    Rejections carry no duration since nothing ran.
    """

    command: str
    violation: GatewayErrorCode
    message: str
    kind: Literal["rejected"] = field(default="rejected", init=False)

    @property
    def succeeded(self) -> bool:
        return False

    @property
    def exit_code(self) -> int:
        return -1

    @property
    def duration_ms(self) -> None:
        return None

    @property
    def failure_reason(self) -> str:
        return self.violation.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "succeeded": False,
            "command": self.command,
            "exit_code": -1,
            "stdout": "",
            "stderr": "",
            "duration_ms": None,
            "failure_reason": self.failure_reason,
            "message": self.message,
        }


ExecutionResult = Completed | Failed | Rejected
