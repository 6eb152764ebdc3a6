"""Factory for creating cache storage backends from provider configuration."""

import logging
from pathlib import Path

from ..config import (
    AzureBlobCacheStorageConfig,
    CacheStorageConfig,
    CustomStorageConfig,
    LocalCacheStorageConfig,
    LocalSkipCacheStorageConfig,
    NpmCacheStorageConfig,
    S3CacheStorageConfig,
)
from ..exceptions import ConfigurationError
from .base import SupportsCacheStorage
from .local import DEFAULT_INTERNAL_CACHE_FOLDER, LocalCacheStorage, LocalSkipCacheStorage

log = logging.getLogger(__name__)


def create_cache_storage(
    config: CacheStorageConfig,
    cwd: str | Path,
    incremental_caching: bool = False,
    internal_cache_folder: str = DEFAULT_INTERNAL_CACHE_FOLDER,
) -> SupportsCacheStorage:
    """Create the cache storage selected by *config* for the working directory *cwd*.

    Vendor backends are imported lazily so that only the selected provider's
    client library has to be importable.

    Raises:
        ConfigurationError: If a custom provider does not return a cache storage.
    """
    if isinstance(config, CustomStorageConfig):
        return _create_custom_storage(config, cwd)

    if isinstance(config, LocalSkipCacheStorageConfig):
        log.info("Using local-skip cache storage: caching disabled")
        return LocalSkipCacheStorage(cwd, incremental_caching=incremental_caching)

    if isinstance(config, LocalCacheStorageConfig):
        log.info("Using local cache storage: %s", internal_cache_folder)
        return LocalCacheStorage(
            cwd,
            internal_cache_folder=internal_cache_folder,
            incremental_caching=incremental_caching,
        )

    if isinstance(config, NpmCacheStorageConfig):
        return _create_npm_storage(config, cwd, incremental_caching, internal_cache_folder)
    if isinstance(config, AzureBlobCacheStorageConfig):
        return _create_azure_blob_storage(config, cwd, incremental_caching)
    if isinstance(config, S3CacheStorageConfig):
        return _create_s3_storage(config, cwd, incremental_caching)

    raise ConfigurationError(f"Unsupported cache storage configuration: {type(config).__name__}")


def _create_custom_storage(config: CustomStorageConfig, cwd: str | Path) -> SupportsCacheStorage:
    name = config.name or getattr(config.provider, "__name__", "custom")
    storage = config.provider(str(cwd))
    if not isinstance(storage, SupportsCacheStorage):
        log.error("Custom cache provider %s returned %r", name, storage)
        raise ConfigurationError(
            f"Custom cache provider {name} did not return a cache storage", provider=name
        )
    log.info("Using custom cache storage: %s", name)
    return storage


def _create_npm_storage(
    config: NpmCacheStorageConfig,
    cwd: str | Path,
    incremental_caching: bool,
    internal_cache_folder: str,
) -> SupportsCacheStorage:
    from .npm import NpmCacheStorage

    log.info("Using npm cache storage: %s", config.options.npm_package_name)
    return NpmCacheStorage(
        config.options,
        cwd,
        internal_cache_folder=internal_cache_folder,
        incremental_caching=incremental_caching,
    )


def _create_azure_blob_storage(
    config: AzureBlobCacheStorageConfig, cwd: str | Path, incremental_caching: bool
) -> SupportsCacheStorage:
    from .azure_blob import AzureBlobCacheStorage

    log.info("Using Azure Blob cache storage")
    return AzureBlobCacheStorage(config.options, cwd, incremental_caching=incremental_caching)


def _create_s3_storage(
    config: S3CacheStorageConfig, cwd: str | Path, incremental_caching: bool
) -> SupportsCacheStorage:
    from .s3 import S3CacheStorage

    log.info("Using S3 cache storage: %s", config.options.bucket)
    return S3CacheStorage(config.options, cwd, incremental_caching=incremental_caching)
