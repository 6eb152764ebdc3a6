"""Cache storage backends and the factory that selects one."""

from .base import CacheStorage, SupportsCacheStorage
from .factory import create_cache_storage
from .local import LocalCacheStorage, LocalSkipCacheStorage
from .remote import HANG_TIMEOUT_SECONDS, RemoteCacheStorage

__all__ = [
    "CacheStorage",
    "SupportsCacheStorage",
    "create_cache_storage",
    "LocalCacheStorage",
    "LocalSkipCacheStorage",
    "RemoteCacheStorage",
    "HANG_TIMEOUT_SECONDS",
]
