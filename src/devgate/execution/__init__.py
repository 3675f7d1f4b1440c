"""DevGate execution gateway.

Core Components:
    - allowlist: Immutable set of permitted executables (Allowlist)
    - confinement: Working-directory confinement to the project root
    - output: Bounded capture of child process output
    - types: Requests and the Completed / Failed / Rejected result variants
    - gateway: Validation pipeline and process supervision (ExecutionGateway)
"""

from devgate.execution.allowlist import Allowlist
from devgate.execution.gateway import ExecutionGateway
from devgate.execution.types import (
    Completed,
    ExecutionRequest,
    ExecutionResult,
    Failed,
    FailureReason,
    PreparedCommand,
    Rejected,
)

__all__ = [
    "Allowlist",
    "Completed",
    "ExecutionGateway",
    "ExecutionRequest",
    "ExecutionResult",
    "Failed",
    "FailureReason",
    "PreparedCommand",
    "Rejected",
]
