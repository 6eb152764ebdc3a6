"""
Remote storage backend for a build-output cache.

Fetches artifact bundles keyed by a content hash from an object store and
extracts them into a working directory, or packs local output files and
uploads them under that hash.
"""

from .config import (
    CacheStorageConfig,
    CustomStorageConfig,
    get_cache_storage_config,
    get_cache_storage_config_from_env,
    validate_cache_storage_config,
)
from .exceptions import (
    BufferOverflowError,
    CacheError,
    ConfigurationError,
    HangTimeoutError,
    PipelineError,
)
from .object_store import (
    StorageConnectionError,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)
from .storage import CacheStorage, RemoteCacheStorage, create_cache_storage

__all__ = [
    "CacheStorage",
    "RemoteCacheStorage",
    "create_cache_storage",
    "CacheStorageConfig",
    "CustomStorageConfig",
    "get_cache_storage_config",
    "get_cache_storage_config_from_env",
    "validate_cache_storage_config",
    "CacheError",
    "PipelineError",
    "HangTimeoutError",
    "BufferOverflowError",
    "ConfigurationError",
    "StorageError",
    "StorageNotFoundError",
    "StoragePermissionError",
    "StorageConnectionError",
]
