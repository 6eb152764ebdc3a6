"""Remote cache storage backed by an Azure Blob Storage container."""

import logging
from pathlib import Path

from ..config import AzureBlobCacheStorageOptions, AzureBlobConnectionOptions
from ..object_store.azure_client import AzureBlobStorageClient
from .remote import RemoteCacheStorage

log = logging.getLogger(__name__)


class AzureBlobCacheStorage(RemoteCacheStorage):
    """Stores one tar archive per key as a blob named after the key."""

    def __init__(
        self,
        options: AzureBlobCacheStorageOptions,
        cwd: str | Path,
        incremental_caching: bool = False,
    ):
        if isinstance(options, AzureBlobConnectionOptions):
            store = AzureBlobStorageClient(
                container_name=options.container,
                connection_string=options.connection_string,
                credential=options.credential,
            )
        else:
            store = AzureBlobStorageClient(container_client=options.container_client)

        super().__init__(
            store,
            cwd,
            max_size=options.max_size,
            incremental_caching=incremental_caching,
        )
        log.debug("Azure Blob cache storage initialized. Container: %s", store.container_name)
