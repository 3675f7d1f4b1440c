"""Multi-namespace LRU result cache.

The cache sits in front of expensive, side-effect-free gateway calls such as
"is tool X installed" or "what kind of project is this". It is used by the
callers of the gateway, never by the gateway itself.

Each namespace has its own capacity and time-to-live:
    - Capacity: inserting into a full namespace evicts the least-recently-used
      entry.
    - TTL: sliding. A hit refreshes the entry's clock, so data that is read
      regularly never expires. Expiry is checked lazily on access.

Namespaces are fixed at construction. Naming a namespace that was never
configured raises UnknownNamespaceError.

Classes:
    - CacheRecord: A stored value with its timestamps
    - CacheStats: Hit/miss counters and size of one namespace
    - CacheManager: The cache itself
"""

import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from devgate.config import CacheNamespaceConfig, CacheSettings
from devgate.errors import UnknownNamespaceError

logger = structlog.get_logger()

# Entries serialized when estimating memory usage
MEMORY_SAMPLE_SIZE = 10
# Per-entry bookkeeping overhead assumed by the estimate
ENTRY_OVERHEAD_BYTES = 100
# Size assumed for values that cannot be serialized
UNSERIALIZABLE_ENTRY_BYTES = 1024

_MISSING = object()


@dataclass
class CacheRecord:
    """A cached value.

    Attributes:
        value: The cached value.
        created_at: Clock reading when the value was stored.
        last_access: Clock reading of the last store or hit; TTL counts from here.
    """

    value: Any
    created_at: float
    last_access: float


@dataclass(frozen=True)
class CacheStats:
    """Statistics for one namespace.

    Attributes:
        namespace: Namespace name.
        hits: Lookups that found a live entry.
        misses: Lookups that found nothing or an expired entry.
        hit_rate: hits / (hits + misses), 0.0 before the first lookup.
        size: Entries currently stored (expired entries not yet swept included).
        max_size: Configured capacity.
        estimated_memory_bytes: Sampled estimate of memory held by the entries.
    """

    namespace: str
    hits: int
    misses: int
    hit_rate: float
    size: int
    max_size: int
    estimated_memory_bytes: int

    @property
    def memory_estimate_mb(self) -> float:
        return self.estimated_memory_bytes / (1024 * 1024)

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "size": self.size,
            "max_size": self.max_size,
            "estimated_memory_bytes": self.estimated_memory_bytes,
            "memory_estimate_mb": self.memory_estimate_mb,
        }


class _Namespace:
    """One LRU partition. Callers must hold ``lock``."""

    def __init__(
        self,
        name: str,
        config: CacheNamespaceConfig,
        clock: Callable[[], float],
    ) -> None:
        self.name = name
        self.max_entries = config.max_entries
        self.ttl = config.ttl_ms / 1000
        self.clock = clock
        self.entries: OrderedDict[str, CacheRecord] = OrderedDict()
        self.lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def live_record(self, key: str) -> CacheRecord | None:
        """Return the record for key, dropping it first if it has expired."""
        record = self.entries.get(key)
        if record is None:
            return None
        if self.clock() - record.last_access >= self.ttl:
            self.discard(key, "expire")
            return None
        return record

    def store(self, key: str, value: Any) -> None:
        now = self.clock()
        if key in self.entries:
            del self.entries[key]
        elif len(self.entries) >= self.max_entries:
            oldest = next(iter(self.entries))
            self.discard(oldest, "evict")
        self.entries[key] = CacheRecord(value=value, created_at=now, last_access=now)

    def discard(self, key: str, reason: str) -> None:
        record = self.entries.pop(key, None)
        if record is not None:
            logger.debug(
                "cache_dispose",
                namespace=self.name,
                key=key,
                reason=reason,
                created_at=record.created_at,
            )

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return 0.0 if total == 0 else self.hits / total

    def estimate_memory(self) -> int:
        size = len(self.entries)
        if size == 0:
            return 0

        total_bytes = 0
        sample_count = 0
        for key, record in self.entries.items():
            if sample_count >= MEMORY_SAMPLE_SIZE:
                break
            try:
                key_size = len(str(key).encode("utf-8"))
                value_size = len(json.dumps(record.value).encode("utf-8"))
                total_bytes += key_size + value_size + ENTRY_OVERHEAD_BYTES
            except (TypeError, ValueError):
                total_bytes += UNSERIALIZABLE_ENTRY_BYTES
            sample_count += 1

        return int(size * (total_bytes / sample_count))


class CacheManager:
    """Multi-namespace LRU cache with sliding TTL and hit/miss statistics.

    Construct one instance and pass it to every component that needs it.

    Example:
        cache = CacheManager(CacheSettings())
        cached = cache.get("command_availability", "cmd:go")
        if cached is None:
            cached = await gateway.is_command_available("go")
            cache.set("command_availability", "cmd:go", cached)
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize every configured namespace.

        Args:
            settings: Cache settings; defaults to the built-in namespace table.
            clock: Monotonic clock in seconds (injectable for tests).
        """
        self._settings = settings or CacheSettings()
        self._clock = clock
        self._namespaces: dict[str, _Namespace] = {
            name: _Namespace(name, ns_config, clock)
            for name, ns_config in self._settings.namespaces.items()
        }

        if not self._settings.enabled:
            logger.info("cache_disabled")
        else:
            logger.info(
                "cache_initialized",
                max_memory_mb=self._settings.max_memory_mb,
                namespaces=sorted(self._namespaces),
            )

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    @property
    def namespaces(self) -> list[str]:
        return sorted(self._namespaces)

    def _namespace(self, namespace: str) -> _Namespace:
        try:
            return self._namespaces[namespace]
        except KeyError:
            raise UnknownNamespaceError(namespace, list(self._namespaces)) from None

    def get(self, namespace: str, key: str, default: Any = None) -> Any:
        """Look up a value.

        A hit counts towards the namespace's hits, marks the entry as most
        recently used and restarts its TTL. Anything else counts as a miss.

        Args:
            namespace: Namespace name.
            key: Entry key.
            default: Returned when the key is absent or expired.

        Returns:
            The cached value, or ``default``.

        Raises:
            UnknownNamespaceError: If the namespace was never configured.
        """
        ns = self._namespace(namespace)
        if not self.enabled:
            return default

        with ns.lock:
            record = ns.live_record(key)
            if record is None:
                ns.misses += 1
                logger.debug(
                    "cache_miss", namespace=namespace, key=key, hit_rate=ns.hit_rate()
                )
                return default

            ns.hits += 1
            record.last_access = self._clock()
            ns.entries.move_to_end(key)
            logger.debug(
                "cache_hit", namespace=namespace, key=key, hit_rate=ns.hit_rate()
            )
            return record.value

    def set(self, namespace: str, key: str, value: Any) -> None:
        """Store a value, replacing any previous entry under the same key.

        Raises:
            UnknownNamespaceError: If the namespace was never configured.
        """
        ns = self._namespace(namespace)
        if not self.enabled:
            return

        with ns.lock:
            ns.store(key, value)
            logger.debug(
                "cache_set",
                namespace=namespace,
                key=key,
                size=len(ns.entries),
                max_size=ns.max_entries,
            )

    def has(self, namespace: str, key: str) -> bool:
        """Check for a live entry without counting a hit or miss.

        Expired entries are dropped. Recency and TTL are left untouched.

        Raises:
            UnknownNamespaceError: If the namespace was never configured.
        """
        ns = self._namespace(namespace)
        if not self.enabled:
            return False

        with ns.lock:
            return ns.live_record(key) is not None

    def invalidate(self, namespace: str, key: str | None = None) -> None:
        """Drop one entry, or every entry of the namespace when key is None.

        Raises:
            UnknownNamespaceError: If the namespace was never configured.
        """
        ns = self._namespace(namespace)
        if not self.enabled:
            return

        with ns.lock:
            if key is None:
                ns.entries.clear()
                logger.debug("cache_invalidate_all", namespace=namespace)
            else:
                ns.discard(key, "delete")
                logger.debug("cache_invalidate", namespace=namespace, key=key)

    def clear(self, namespace: str) -> None:
        """Drop every entry of a namespace."""
        self.invalidate(namespace)

    def clear_all(self) -> None:
        """Drop every entry of every namespace. Counters are kept."""
        for ns in self._namespaces.values():
            with ns.lock:
                ns.entries.clear()
        logger.info("cache_cleared")

    def get_stats(self, namespace: str) -> CacheStats:
        """Return statistics for a namespace.

        Raises:
            UnknownNamespaceError: If the namespace was never configured.
        """
        ns = self._namespace(namespace)
        with ns.lock:
            return CacheStats(
                namespace=namespace,
                hits=ns.hits,
                misses=ns.misses,
                hit_rate=ns.hit_rate(),
                size=len(ns.entries),
                max_size=ns.max_entries,
                estimated_memory_bytes=ns.estimate_memory(),
            )

    def get_all_stats(self) -> list[CacheStats]:
        """Return statistics for every namespace, sorted by name."""
        return [self.get_stats(name) for name in self.namespaces]

    def total_memory_usage_mb(self) -> float:
        """Sum of the per-namespace memory estimates, in megabytes."""
        return sum(stats.memory_estimate_mb for stats in self.get_all_stats())
