"""Cached tool-availability probes.

Installed-tool status rarely changes within a session, so probe results are
kept in the ``command_availability`` cache namespace. This is the pattern
every gateway consumer follows: check the cache, call the gateway on a miss,
store the answer.
"""

from typing import Any

import structlog

from devgate.cache import CacheManager
from devgate.errors import UnknownNamespaceError
from devgate.execution import ExecutionGateway

logger = structlog.get_logger()

COMMAND_AVAILABILITY_NAMESPACE = "command_availability"


class CommandAvailability:
    """Answers "is tool X installed" with caching.

    Attributes:
        namespace: Cache namespace used for probe results.
    """

    def __init__(
        self,
        gateway: ExecutionGateway,
        cache: CacheManager,
        namespace: str = COMMAND_AVAILABILITY_NAMESPACE,
    ) -> None:
        """Initialize the checker.

        Args:
            gateway: Gateway used for PATH probes.
            cache: Cache holding probe results.
            namespace: Namespace to cache under.

        Raises:
            UnknownNamespaceError: If the cache has no such namespace.
        """
        if namespace not in cache.namespaces:
            raise UnknownNamespaceError(namespace, cache.namespaces)
        self._gateway = gateway
        self._cache = cache
        self.namespace = namespace

    @staticmethod
    def _key(name: str) -> str:
        return f"cmd:{name}"

    async def is_available(self, name: str) -> bool:
        """Return whether an executable is on PATH, using the cache when possible."""
        key = self._key(name)
        cached = self._cache.get(self.namespace, key)
        if cached is not None:
            return cached

        available = await self._gateway.is_command_available(name)
        # Negative answers are cached too
        self._cache.set(self.namespace, key, available)
        return available

    async def check(self, name: str) -> dict[str, Any]:
        """Report both allowlist membership and PATH availability."""
        return {
            "command": name,
            "allowed": name in self._gateway.allowlist,
            "available": await self.is_available(name),
        }

    async def available_commands(self) -> list[str]:
        """Return the allowlisted commands that are installed."""
        available = [
            name
            for name in self._gateway.allowed_commands
            if await self.is_available(name)
        ]
        logger.debug(
            "available_commands",
            available=len(available),
            allowed=len(self._gateway.allowed_commands),
        )
        return available

    def forget(self, name: str | None = None) -> None:
        """Drop cached probe results (all of them when name is None)."""
        key = None if name is None else self._key(name)
        self._cache.invalidate(self.namespace, key)
