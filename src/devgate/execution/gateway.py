"""Execution gateway.

The gateway is the only place in DevGate that spawns processes. A request is
validated in full before anything runs:

    1. The executable must be a bare name present in the allowlist.
    2. Arguments are passed as a discrete argument vector; no shell is used.
    3. The working directory must resolve inside the project root.
    4. The timeout must lie inside the configured range (never clamped).
    5. Environment overrides must be well-formed and may not replace PATH or
       dynamic-loader variables (LD_*, DYLD_*).

The child runs in its own process group so a timeout (or cancellation of the
awaiting task) can terminate it together with anything it spawned.

Policy violations, spawn errors, timeouts and non-zero exits are all returned
as values (see ``devgate.execution.types``); ``execute`` does not raise for
any of them.
"""

import asyncio
import os
import shutil
import signal
import time
from collections.abc import Iterable
from pathlib import Path

import structlog

from devgate.config import GatewaySettings
from devgate.errors import GatewayError, GatewayErrorCode
from devgate.execution.allowlist import Allowlist, split_command
from devgate.execution.confinement import resolve_working_directory
from devgate.execution.output import BoundedOutput, drain_stream
from devgate.execution.types import (
    Completed,
    ExecutionRequest,
    ExecutionResult,
    Failed,
    FailureReason,
    PreparedCommand,
    Rejected,
)

logger = structlog.get_logger()

_IS_POSIX = os.name == "posix"
_SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)

# Overrides that would change which binary runs or what it loads
_PROTECTED_ENV_KEYS = frozenset({"PATH", "PATHEXT"})
_PROTECTED_ENV_PREFIXES = ("LD_", "DYLD_")


class ExecutionGateway:
    """Validates and runs allowlisted developer-tool commands.

    The gateway keeps no state between calls apart from its configuration,
    so concurrent ``execute`` calls are independent of each other.

    Example:
        gateway = ExecutionGateway(GatewaySettings(project_root=Path("/srv/app")))
        result = await gateway.execute(
            ExecutionRequest(command="go", args=["vet", "./..."], timeout_ms=60_000)
        )
        if not result.succeeded:
            print(result.failure_reason)
    """

    def __init__(
        self,
        settings: GatewaySettings,
        allowlist: Allowlist | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            settings: Gateway settings (project root, limits, allowlist).
            allowlist: Explicit allowlist; built from settings when omitted.
        """
        self._settings = settings
        self._allowlist = allowlist or Allowlist(settings.allowed_commands)
        self._project_root = settings.project_root.resolve()

    @property
    def settings(self) -> GatewaySettings:
        return self._settings

    @property
    def project_root(self) -> Path:
        return self._project_root

    @property
    def allowlist(self) -> Allowlist:
        return self._allowlist

    @property
    def allowed_commands(self) -> list[str]:
        """Sorted names of every allowlisted executable."""
        return list(self._allowlist)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, request: ExecutionRequest) -> PreparedCommand | Rejected:
        """Run the validation pipeline without spawning anything.

        Args:
            request: The request to validate.

        Returns:
            A PreparedCommand when every check passes, otherwise a Rejected
            result naming the violated policy.
        """
        try:
            return self._prepare(request)
        except GatewayError as e:
            logger.warning(
                "command_rejected",
                command=request.command,
                violation=e.code.value,
                reason=e.message,
            )
            return Rejected(
                command=request.command,
                violation=e.code,
                message=e.message,
            )

    def _prepare(self, request: ExecutionRequest) -> PreparedCommand:
        executable, leading = split_command(request.command)
        self._allowlist.check(executable)

        args = [*leading, *request.args]
        for arg in args:
            if "\x00" in arg:
                raise GatewayError(
                    code=GatewayErrorCode.INVALID_COMMAND,
                    message="Arguments must not contain NUL bytes",
                    command=executable,
                )

        cwd = resolve_working_directory(self._project_root, request.working_directory)
        timeout_ms = self._check_timeout(request.timeout_ms, executable)
        env = self._check_env(request.env, executable)

        return PreparedCommand(
            argv=(executable, *args),
            cwd=cwd,
            timeout_ms=timeout_ms,
            env=env,
        )

    def _check_timeout(self, timeout_ms: int | None, executable: str) -> int:
        if timeout_ms is None:
            return self._settings.default_timeout_ms

        low = self._settings.min_timeout_ms
        high = self._settings.max_timeout_ms
        if not low <= timeout_ms <= high:
            raise GatewayError(
                code=GatewayErrorCode.TIMEOUT_OUT_OF_RANGE,
                message=f"Timeout {timeout_ms}ms is outside the allowed range "
                f"{low}-{high}ms",
                command=executable,
            )
        return timeout_ms

    @staticmethod
    def _check_env(env: dict[str, str], executable: str) -> dict[str, str]:
        for key, value in env.items():
            if not key or "=" in key or "\x00" in key or "\x00" in value:
                raise GatewayError(
                    code=GatewayErrorCode.INVALID_ENVIRONMENT,
                    message=f"Invalid environment variable: {key!r}",
                    command=executable,
                )
            name = key.upper()
            if name in _PROTECTED_ENV_KEYS or name.startswith(_PROTECTED_ENV_PREFIXES):
                raise GatewayError(
                    code=GatewayErrorCode.INVALID_ENVIRONMENT,
                    message=f"Environment variable {key} may not be overridden",
                    command=executable,
                )
        return dict(env)

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Validate and run a request.

        Args:
            request: The command to run.

        Returns:
            Rejected if validation failed (nothing was spawned), Failed on a
            spawn error or timeout, Completed otherwise.
        """
        prepared = self.validate(request)
        if isinstance(prepared, Rejected):
            return prepared
        return await self._run(prepared)

    async def execute_sequence(
        self,
        requests: Iterable[ExecutionRequest],
        stop_on_failure: bool = True,
    ) -> list[ExecutionResult]:
        """Run several requests one after another.

        Args:
            requests: Requests in execution order.
            stop_on_failure: Stop after the first unsuccessful result.

        Returns:
            Results of every request that was attempted.
        """
        results: list[ExecutionResult] = []

        for request in requests:
            result = await self.execute(request)
            results.append(result)

            if stop_on_failure and not result.succeeded:
                break

        return results

    async def _run(self, prepared: PreparedCommand) -> ExecutionResult:
        env = os.environ.copy()
        env.update(prepared.env)

        stdout = BoundedOutput(self._settings.max_output_bytes)
        stderr = BoundedOutput(self._settings.max_output_bytes)

        logger.info(
            "command_executing",
            command=prepared.display,
            cwd=str(prepared.cwd),
            timeout_ms=prepared.timeout_ms,
        )

        start_time = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *prepared.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(prepared.cwd),
                env=env,
                start_new_session=_IS_POSIX,
            )
        except OSError as e:
            logger.warning(
                "command_spawn_failed",
                command=prepared.display,
                error=str(e),
            )
            return Failed(
                command=prepared.display,
                reason=FailureReason.SPAWN_ERROR,
                message=f"Failed to start {prepared.executable}: {e}",
                duration_ms=_elapsed_ms(start_time),
            )

        readers = asyncio.gather(
            drain_stream(process.stdout, stdout),
            drain_stream(process.stderr, stderr),
        )

        try:
            await asyncio.wait_for(process.wait(), timeout=prepared.timeout_ms / 1000)
        except TimeoutError:
            await self._terminate(process)
            await self._collect(readers)
            duration_ms = _elapsed_ms(start_time)
            logger.warning(
                "command_timed_out",
                command=prepared.display,
                timeout_ms=prepared.timeout_ms,
                duration_ms=duration_ms,
            )
            return Failed(
                command=prepared.display,
                reason=FailureReason.TIMEOUT,
                message=f"Command timed out after {prepared.timeout_ms}ms",
                duration_ms=duration_ms,
                stdout=stdout.text(),
                stderr=stderr.text(),
            )
        except asyncio.CancelledError:
            logger.warning("command_cancelled", command=prepared.display)
            await self._terminate(process)
            readers.cancel()
            raise

        await self._collect(readers)
        duration_ms = _elapsed_ms(start_time)
        exit_code = process.returncode if process.returncode is not None else -1

        if exit_code != 0:
            logger.warning(
                "command_exited_nonzero",
                command=prepared.display,
                exit_code=exit_code,
                duration_ms=duration_ms,
            )
        else:
            logger.debug(
                "command_completed",
                command=prepared.display,
                duration_ms=duration_ms,
            )

        return Completed(
            command=prepared.display,
            exit_code=exit_code,
            stdout=stdout.text(),
            stderr=stderr.text(),
            duration_ms=duration_ms,
            stdout_truncated=stdout.truncated,
            stderr_truncated=stderr.truncated,
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Terminate a process and its group: SIGTERM, grace period, SIGKILL."""
        _signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(
                process.wait(), timeout=self._settings.kill_grace_ms / 1000
            )
        except TimeoutError:
            logger.warning("command_force_killed", pid=process.pid)
        # Members of the group may outlive the leader.
        _signal_group(process, _SIGKILL)
        await process.wait()

    async def _collect(self, readers: asyncio.Future) -> None:
        """Wait for the output readers to reach EOF.

        A grandchild that inherited the pipes can keep them open after the
        child exits; readers are abandoned after the grace period.
        """
        grace = max(self._settings.kill_grace_ms / 1000, 0.1)
        try:
            await asyncio.wait_for(readers, timeout=grace)
        except TimeoutError:
            logger.debug("output_readers_abandoned")

    # =========================================================================
    # Probes
    # =========================================================================

    async def is_command_available(self, name: str) -> bool:
        """Check whether an executable can be found on PATH.

        This is a lightweight probe: it does not consult the allowlist and
        spawns nothing. Callers that probe repeatedly should cache the answer
        (see ``devgate.availability``).

        Args:
            name: Executable name.

        Returns:
            True if the executable resolves on PATH.
        """
        if not name or not name.strip():
            return False
        path = await asyncio.to_thread(shutil.which, name)
        logger.debug("command_probe", command=name, available=path is not None)
        return path is not None


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    if _IS_POSIX:
        try:
            # start_new_session makes the child its own group leader
            os.killpg(process.pid, sig)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            pass
    if process.returncode is None:
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            pass


def _elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)
