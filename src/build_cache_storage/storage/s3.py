"""Remote cache storage backed by an S3-compatible bucket."""

import logging
from pathlib import Path

from botocore.client import BaseClient

from ..config import S3CacheStorageOptions
from ..object_store.s3_client import S3StorageClient
from .remote import RemoteCacheStorage

log = logging.getLogger(__name__)


class S3CacheStorage(RemoteCacheStorage):
    """Stores one tar archive per key at ``s3://<bucket>/<prefix><key>``."""

    def __init__(
        self,
        options: S3CacheStorageOptions,
        cwd: str | Path,
        incremental_caching: bool = False,
        client: BaseClient | None = None,
    ):
        store = S3StorageClient(
            bucket_name=options.bucket,
            client_config=options.client_config,
            client=client,
        )
        super().__init__(
            store,
            cwd,
            max_size=options.max_size,
            prefix=options.prefix,
            incremental_caching=incremental_caching,
        )
        log.debug(
            "S3 cache storage initialized. Bucket: %s, Prefix: %s",
            options.bucket,
            options.prefix or "(none)",
        )
