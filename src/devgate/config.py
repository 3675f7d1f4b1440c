"""DevGate configuration models and utilities.

This module provides Pydantic models for validating and loading DevGate
settings from YAML files, with support for environment variable expansion
and environment overrides.

Models:
    - GatewaySettings: Allowlist, project root and execution limits
    - CacheNamespaceConfig: Capacity and TTL of a single cache namespace
    - CacheSettings: Cache switch, memory budget and namespace table
    - DevGateSettings: Root configuration model

Functions:
    - expand_env_vars: Expand ${VAR} patterns in strings
    - expand_env_vars_in_dict: Expand env vars through nested dicts and lists
    - find_settings_path: Locate settings.yml in the standard places
    - load_settings: Load and validate settings from a YAML file
    - apply_env_overrides: Apply DEVGATE_PROJECT_ROOT / LOG_LEVEL overrides
    - resolve_settings: Find, load and override settings in one step
"""

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from devgate.errors import ConfigError

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "DEVGATE_SETTINGS"
PROJECT_ROOT_ENV_VAR = "DEVGATE_PROJECT_ROOT"
LOG_LEVEL_ENV_VAR = "LOG_LEVEL"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

# Developer tools the gateway may run out of the box. "sh" is intentionally
# absent: allowing a shell would undo argument-vector spawning.
DEFAULT_ALLOWED_COMMANDS: tuple[str, ...] = (
    "make",
    "npm",
    "yarn",
    "pnpm",
    "bun",
    "npx",
    "node",
    "markdownlint",
    "yamllint",
    "commitlint",
    "eslint",
    "prettier",
    "tsc",
    "jest",
    "vitest",
    "mocha",
    "pytest",
    "go",
    "gofmt",
    "golangci-lint",
    "staticcheck",
    "govulncheck",
    "actionlint",
    "git",
    "gs",
    "jq",
    "cargo",
    "mvn",
    "gradle",
    "dotnet",
    "echo",
    "false",
    "true",
)


class GatewaySettings(BaseModel):
    """Settings for the execution gateway.

    Attributes:
        project_root: Directory every working directory must resolve into.
        allowed_commands: Bare executable names the gateway may spawn.
        default_timeout_ms: Timeout used when a request does not give one.
        min_timeout_ms: Smallest timeout a request may ask for.
        max_timeout_ms: Largest timeout a request may ask for.
        max_output_bytes: Per-stream capture limit for stdout and stderr.
        kill_grace_ms: Delay between SIGTERM and SIGKILL on timeout.
    """

    project_root: Path = Field(
        default_factory=Path.cwd,
        description="Root directory that confines every working directory",
    )

    allowed_commands: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_COMMANDS),
        description="Bare executable names permitted to run (no wildcards)",
    )

    default_timeout_ms: int = Field(
        default=30_000,
        gt=0,
        description="Default execution timeout in milliseconds",
    )

    min_timeout_ms: int = Field(
        default=100,
        gt=0,
        description="Minimum accepted timeout in milliseconds",
    )

    max_timeout_ms: int = Field(
        default=600_000,
        gt=0,
        description="Maximum accepted timeout in milliseconds",
    )

    max_output_bytes: int = Field(
        default=1_048_576,
        gt=0,
        description="Maximum bytes captured per output stream",
    )

    kill_grace_ms: int = Field(
        default=2_000,
        ge=0,
        description="Grace period between terminate and kill on timeout",
    )

    @field_validator("project_root")
    @classmethod
    def expand_project_root(cls, v: Path) -> Path:
        """Expand ~ in the project root."""
        return v.expanduser()

    @field_validator("allowed_commands")
    @classmethod
    def validate_commands(cls, v: list[str]) -> list[str]:
        """Validate that every allowlist entry is a bare executable name."""
        for name in v:
            if not name or name != name.strip() or any(c.isspace() for c in name):
                raise ValueError(f"Invalid allowlist entry: {name!r}")
            if "/" in name or "\\" in name:
                raise ValueError(
                    f"Invalid allowlist entry: {name}. "
                    "Entries must be bare executable names, not paths."
                )
            if "*" in name or "?" in name:
                raise ValueError(
                    f"Invalid allowlist entry: {name}. Wildcards are not supported."
                )
        return v

    @model_validator(mode="after")
    def validate_timeout_range(self) -> "GatewaySettings":
        """Check that the default timeout lies inside the accepted range."""
        if self.min_timeout_ms > self.max_timeout_ms:
            raise ValueError(
                f"min_timeout_ms ({self.min_timeout_ms}) exceeds "
                f"max_timeout_ms ({self.max_timeout_ms})"
            )
        if not self.min_timeout_ms <= self.default_timeout_ms <= self.max_timeout_ms:
            raise ValueError(
                f"default_timeout_ms ({self.default_timeout_ms}) must be between "
                f"{self.min_timeout_ms} and {self.max_timeout_ms}"
            )
        return self


class CacheNamespaceConfig(BaseModel):
    """Capacity and time-to-live of one cache namespace.

    Attributes:
        max_entries: Entries kept before the least-recently-used is evicted.
        ttl_ms: Sliding time-to-live in milliseconds.
    """

    max_entries: int = Field(ge=1)
    ttl_ms: int = Field(ge=1)


def default_namespaces() -> dict[str, CacheNamespaceConfig]:
    """Return the default namespace table.

    Returns:
        Fresh mapping of namespace name to its configuration.
    """
    return {
        "project_detection": CacheNamespaceConfig(max_entries=50, ttl_ms=60_000),
        "command_availability": CacheNamespaceConfig(
            max_entries=50, ttl_ms=3_600_000
        ),
        "file_lists": CacheNamespaceConfig(max_entries=200, ttl_ms=30_000),
        "git_operations": CacheNamespaceConfig(max_entries=100, ttl_ms=30_000),
        "module_metadata": CacheNamespaceConfig(max_entries=50, ttl_ms=300_000),
        "test_results": CacheNamespaceConfig(max_entries=100, ttl_ms=60_000),
    }


class CacheSettings(BaseModel):
    """Settings for the namespaced result cache.

    Attributes:
        enabled: When False the cache stores nothing and every lookup misses.
        max_memory_mb: Advisory memory budget reported alongside stats.
        namespaces: Mapping of namespace name to its configuration.
    """

    enabled: bool = True
    max_memory_mb: float = Field(default=100.0, gt=0)
    namespaces: dict[str, CacheNamespaceConfig] = Field(
        default_factory=default_namespaces
    )

    @field_validator("namespaces")
    @classmethod
    def validate_namespace_names(
        cls, v: dict[str, CacheNamespaceConfig]
    ) -> dict[str, CacheNamespaceConfig]:
        """Reject blank namespace names."""
        for name in v:
            if not name.strip():
                raise ValueError("Cache namespace names must not be empty")
        return v


class DevGateSettings(BaseModel):
    """Root configuration model for DevGate.

    Attributes:
        version: Configuration schema version.
        log_level: Log verbosity (CRITICAL, ERROR, WARNING, INFO or DEBUG).
        gateway: Execution gateway settings.
        cache: Result cache settings.
    """

    version: str = "1"
    log_level: str = "INFO"
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level."""
        level = v.strip().upper()
        if level == "WARN":
            level = "WARNING"
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {v}. Expected one of {', '.join(LOG_LEVELS)}"
            )
        return level


# ${VAR_NAME} reference inside a settings value
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: str, environ: Mapping[str, str] | None = None) -> str:
    """Substitute ${VAR} references in a settings string.

    Args:
        value: Raw string from settings.yml.
        environ: Environment to read (defaults to os.environ).

    Raises:
        ValueError: If a referenced variable is not set.

    Example:
        >>> expand_env_vars("${HOME}/src/project", {"HOME": "/home/dev"})
        '/home/dev/src/project'
    """
    env = os.environ if environ is None else environ
    missing = [name for name in _ENV_VAR_PATTERN.findall(value) if name not in env]
    if missing:
        raise ValueError(f"Environment variable '{missing[0]}' not set")
    return _ENV_VAR_PATTERN.sub(lambda m: env[m.group(1)], value)


def _expand_value(value: Any, environ: Mapping[str, str] | None) -> Any:
    if isinstance(value, str):
        return expand_env_vars(value, environ)
    if isinstance(value, dict):
        return {key: _expand_value(item, environ) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_value(item, environ) for item in value]
    return value


def expand_env_vars_in_dict(
    data: dict[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Expand ${VAR} references in every string of a parsed settings tree.

    Mappings and lists are walked to any depth, so entries such as a list of
    mappings are expanded too. Keys and non-string scalars are left as-is.

    Raises:
        ValueError: If a referenced variable is not set.
    """
    return _expand_value(data, environ)


def find_settings_path() -> Path | None:
    """Find the settings file in standard locations.

    Searches for settings.yml in:
        1. DEVGATE_SETTINGS environment variable (if set)
        2. Current working directory
        3. ~/.devgate/settings.yml
        4. /etc/devgate/settings.yml

    Returns:
        Path to the settings file if found, None otherwise.
    """
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path
        logger.warning(
            "%s path does not exist, falling back to search: %s",
            SETTINGS_ENV_VAR,
            env_path,
        )

    search_paths = [
        Path.cwd() / "settings.yml",
        Path.home() / ".devgate" / "settings.yml",
        Path("/etc/devgate/settings.yml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_settings(path: str | Path) -> DevGateSettings:
    """Load and validate settings from a YAML file.

    Performs environment variable expansion on all string values before
    validation.

    Args:
        path: Path to the settings.yml file.

    Returns:
        Validated DevGateSettings instance.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
        pydantic.ValidationError: If the configuration is invalid.
        ValueError: If environment variable expansion fails.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with path.open() as f:
        data = yaml.safe_load(f)

    # Handle empty file
    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a mapping: {path}")

    data = expand_env_vars_in_dict(data)

    return DevGateSettings.model_validate(data)


def apply_env_overrides(
    settings: DevGateSettings,
    environ: Mapping[str, str] | None = None,
) -> DevGateSettings:
    """Apply environment overrides on top of loaded settings.

    Honors DEVGATE_PROJECT_ROOT (project root) and LOG_LEVEL (verbosity).

    Args:
        settings: Settings loaded from file or defaults.
        environ: Environment to read (defaults to os.environ).

    Returns:
        A new DevGateSettings instance with overrides applied and validated.
    """
    env = os.environ if environ is None else environ

    data = settings.model_dump()
    project_root = env.get(PROJECT_ROOT_ENV_VAR)
    if project_root:
        data["gateway"]["project_root"] = project_root
    log_level = env.get(LOG_LEVEL_ENV_VAR)
    if log_level:
        data["log_level"] = log_level

    return DevGateSettings.model_validate(data)


def resolve_settings(path: str | Path | None = None) -> DevGateSettings:
    """Find, load and override settings in one step.

    Args:
        path: Explicit settings path. When None, standard locations are
            searched and defaults are used if nothing is found.

    Returns:
        Fully resolved DevGateSettings.

    Raises:
        ConfigError: If the settings file is missing, malformed or invalid.
    """
    if path is None:
        path = find_settings_path()

    if path is None:
        settings = DevGateSettings()
    else:
        try:
            settings = load_settings(path)
        except FileNotFoundError as e:
            raise ConfigError("Settings file not found", str(path), e) from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}", str(path), e) from e
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}", str(path), e) from e
        except ValueError as e:
            raise ConfigError(str(e), str(path), e) from e

    try:
        return apply_env_overrides(settings)
    except ValidationError as e:
        raise ConfigError(f"Invalid environment override: {e}", cause=e) from e
