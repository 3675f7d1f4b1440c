"""DevGate namespaced result cache.

Core Components:
    - manager: Multi-namespace LRU cache with sliding TTL (CacheManager)
"""

from devgate.cache.manager import CacheManager, CacheRecord, CacheStats

__all__ = [
    "CacheManager",
    "CacheRecord",
    "CacheStats",
]
