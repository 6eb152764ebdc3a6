"""Cache storage contract shared by every backend."""

import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

log = logging.getLogger(__name__)


@runtime_checkable
class SupportsCacheStorage(Protocol):
    """Structural form of the contract, used for caller-supplied backends."""

    def fetch(self, key: str) -> bool: ...

    def put(self, key: str, files: Sequence[str]) -> None: ...


class CacheStorage(ABC):
    """Fetches and stores artifact bundles for a working directory.

    ``fetch`` returns False on a cache miss or when the artifact is too
    large; ``put`` silently skips oversize uploads. Every other failure is
    raised to the caller, which owns retry and fallback policy.

    With ``incremental_caching`` enabled, ``put`` only stores files modified
    since the last ``fetch`` of the same key started.
    """

    def __init__(self, cwd: str | Path, incremental_caching: bool = False):
        self.cwd = Path(cwd)
        self._incremental_caching = incremental_caching
        self._fetch_times: dict[str, float] = {}
        self._fetch_times_lock = threading.Lock()

    def fetch(self, key: str) -> bool:
        started = time.monotonic()
        if self._incremental_caching:
            with self._fetch_times_lock:
                self._fetch_times[key] = time.time()

        hit = self._fetch(key)

        log.info(
            "Cache %s for %s (%.2fs)",
            "hit" if hit else "miss",
            key,
            time.monotonic() - started,
        )
        return hit

    def put(self, key: str, files: Sequence[str]) -> None:
        started = time.monotonic()
        files_to_cache = self._select_files(key, files)

        self._put(key, files_to_cache)

        log.info(
            "Put %d file(s) for %s (%.2fs)",
            len(files_to_cache),
            key,
            time.monotonic() - started,
        )

    def _select_files(self, key: str, files: Sequence[str]) -> list[str]:
        if not self._incremental_caching:
            return list(files)

        with self._fetch_times_lock:
            fetched_at = self._fetch_times.pop(key, None)
        if fetched_at is None:
            return list(files)

        selected = [f for f in files if os.lstat(self.cwd / f).st_mtime >= fetched_at]
        log.debug(
            "Incremental caching kept %d of %d file(s) for %s", len(selected), len(files), key
        )
        return selected

    @abstractmethod
    def _fetch(self, key: str) -> bool:
        """Materialize the artifact for *key* under cwd. Return False on a miss."""

    @abstractmethod
    def _put(self, key: str, files: list[str]) -> None:
        """Store *files* (relative to cwd) under *key*."""
