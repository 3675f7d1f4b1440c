"""Working-directory confinement.

A working directory is only accepted if, after resolving symlinks and ``..``
segments, it is the project root or one of its descendants.
"""

from pathlib import Path

from devgate.errors import GatewayError, GatewayErrorCode


def resolve_working_directory(project_root: Path, directory: str | Path | None) -> Path:
    """Canonicalize a working directory and confine it to the project root.

    Relative directories are interpreted against the project root.

    Args:
        project_root: The configured project root.
        directory: Requested working directory, or None for the root itself.

    Returns:
        The resolved working directory.

    Raises:
        GatewayError: PATH_OUTSIDE_ROOT if the directory escapes the root or
            cannot be resolved,
            WORKING_DIRECTORY_MISSING if it does not exist or is not a directory.
    """
    root = project_root.resolve()

    if directory is None or str(directory) == "":
        candidate = root
    else:
        try:
            if "\x00" in str(directory):
                raise ValueError("embedded null byte")
            requested = Path(directory).expanduser()
            if not requested.is_absolute():
                requested = root / requested
            candidate = requested.resolve()
        except (OSError, ValueError, RuntimeError) as e:
            # NUL bytes, symlink loops, unknown ~user
            raise GatewayError(
                code=GatewayErrorCode.PATH_OUTSIDE_ROOT,
                message=f"Working directory {directory!r} cannot be resolved: {e}",
                cause=e,
            ) from e

    if candidate != root and not candidate.is_relative_to(root):
        raise GatewayError(
            code=GatewayErrorCode.PATH_OUTSIDE_ROOT,
            message=f"Working directory {directory} is outside project root {root}",
        )

    if not candidate.is_dir():
        raise GatewayError(
            code=GatewayErrorCode.WORKING_DIRECTORY_MISSING,
            message=f"Working directory {directory} does not exist",
        )

    return candidate
