"""
Remote cache storage on top of an object store client.

Fetch pipeline: object body -> sponge -> hang timeout -> tar extract.
Put pipeline: tar pack -> streaming upload.
"""

import logging
import os
from pathlib import Path

from ..archive import ARCHIVE_CONTENT_TYPE, TarExtractSink, TarPackSource
from ..object_store.base import ObjectStoreClient
from ..object_store.exceptions import StorageError, StorageNotFoundError
from ..paths import resolve_within
from ..pipeline.core import Channel, ChannelReader, IterableSource, Pipeline, Stage
from ..pipeline.stages import DEFAULT_SPONGE_CAPACITY, HangTimeoutStage, SpongeStage
from .base import CacheStorage

log = logging.getLogger(__name__)

HANG_TIMEOUT_SECONDS = 10 * 60


class UploadSink(Stage):
    """Sink stage handing the incoming byte stream to the object store."""

    name = "upload"

    def __init__(self, store: ObjectStoreClient, key: str, content_type: str):
        self._store = store
        self._key = key
        self._content_type = content_type

    def run(self, inbox: Channel | None, outbox: Channel | None) -> None:
        self._store.put_object(self._key, ChannelReader(inbox), self._content_type)


class RemoteCacheStorage(CacheStorage):
    """Cache storage that keeps one tar archive per key in an object store.

    The store client is owned by this instance and shared by concurrent
    calls. Object keys are ``prefix + key``.
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        cwd: str | Path,
        max_size: int | None = None,
        prefix: str | None = None,
        incremental_caching: bool = False,
        hang_timeout: float = HANG_TIMEOUT_SECONDS,
        sponge_capacity: int = DEFAULT_SPONGE_CAPACITY,
    ):
        super().__init__(cwd, incremental_caching)
        self._store = store
        self._max_size = max_size
        self._prefix = prefix or ""
        self._hang_timeout = hang_timeout
        self._sponge_capacity = sponge_capacity

    @property
    def store(self) -> ObjectStoreClient:
        return self._store

    def object_key(self, key: str) -> str:
        return self._prefix + key

    def _fetch(self, key: str) -> bool:
        try:
            remote_object = self._store.get_object(self.object_key(key))
        except StorageNotFoundError:
            return False

        try:
            size = remote_object.descriptor.content_length
            if self._max_size and size and size > self._max_size:
                log.debug("Object is too large to be downloaded: %s, size: %d bytes", key, size)
                return False

            if remote_object.body is None:
                raise StorageError("Unable to fetch object.", key=key)

            pipeline = Pipeline(
                IterableSource(remote_object.body, on_close=remote_object.close),
                SpongeStage(capacity=self._sponge_capacity),
                HangTimeoutStage(
                    self._hang_timeout,
                    f"The fetch request to {key} seems to be hanging",
                    key=key,
                ),
                TarExtractSink(self.cwd),
            )
            pipeline.run()
            return True
        finally:
            remote_object.close()

    def _put(self, key: str, files: list[str]) -> None:
        if self._max_size:
            total = 0
            for file in files:
                total += os.lstat(resolve_within(self.cwd, file)).st_size

            if total > self._max_size:
                log.debug("The output is too large to be uploaded: %s, size: %d bytes", key, total)
                return

        pipeline = Pipeline(
            TarPackSource(self.cwd, files),
            UploadSink(self._store, self.object_key(key), ARCHIVE_CONTENT_TYPE),
        )
        pipeline.run()
