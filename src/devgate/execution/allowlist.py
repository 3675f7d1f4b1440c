"""Executable allowlist.

The allowlist is the first gate a request passes. It is built once from
configuration and never changes for the lifetime of the process. Matching is
exact: no wildcard expansion, no path resolution.
"""

from collections.abc import Iterable, Iterator

from devgate.errors import GatewayError, GatewayErrorCode


class Allowlist:
    """Immutable set of executable names the gateway may spawn.

    Example:
        allowlist = Allowlist(["go", "npm", "make"])
        allowlist.check("go")      # ok
        allowlist.check("curl")    # raises GatewayError(COMMAND_NOT_ALLOWED)
    """

    __slots__ = ("_names",)

    def __init__(self, names: Iterable[str]) -> None:
        self._names = frozenset(names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"Allowlist({sorted(self._names)!r})"

    def check(self, executable: str) -> None:
        """Verify that an executable name is allowlisted.

        Args:
            executable: Bare executable name (already split from its arguments).

        Raises:
            GatewayError: If the name is not in the allowlist.
        """
        if executable not in self._names:
            raise GatewayError(
                code=GatewayErrorCode.COMMAND_NOT_ALLOWED,
                message=f"Command '{executable}' is not in the allowlist",
                command=executable,
            )


def split_command(command: str) -> tuple[str, list[str]]:
    """Split a command string into its executable and leading arguments.

    Whitespace splitting only; quotes and shell syntax carry no meaning here.
    ``"go test"`` becomes ``("go", ["test"])`` and ``"echo $(id)"`` becomes
    ``("echo", ["$(id)"])``.

    Args:
        command: Command as supplied by the caller.

    Returns:
        Tuple of (executable, leading arguments).

    Raises:
        GatewayError: If the command is empty or the executable is not a bare
            name (contains a path separator or a NUL byte).
    """
    tokens = command.split()
    if not tokens:
        raise GatewayError(
            code=GatewayErrorCode.INVALID_COMMAND,
            message="Command is empty",
        )

    executable, leading = tokens[0], tokens[1:]
    if "/" in executable or "\\" in executable:
        raise GatewayError(
            code=GatewayErrorCode.INVALID_COMMAND,
            message=(
                f"Command '{executable}' must be a bare executable name; "
                "paths are not accepted"
            ),
            command=executable,
        )
    if "\x00" in command:
        raise GatewayError(
            code=GatewayErrorCode.INVALID_COMMAND,
            message="Command contains a NUL byte",
            command=executable,
        )

    return executable, leading
