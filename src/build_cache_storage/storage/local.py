"""Local filesystem cache backends."""

import logging
import os
import shutil
import tempfile
from collections.abc import Sequence
from pathlib import Path

from ..paths import resolve_within
from .base import CacheStorage

log = logging.getLogger(__name__)

DEFAULT_INTERNAL_CACHE_FOLDER = os.path.join("node_modules", ".cache", "build-cache")


class LocalSkipCacheStorage(CacheStorage):
    """Backend that disables caching: every fetch misses, every put is dropped."""

    def _fetch(self, key: str) -> bool:
        return False

    def _put(self, key: str, files: list[str]) -> None:
        log.debug("Caching disabled, not storing %s", key)


class LocalCacheStorage(CacheStorage):
    """Keeps a copy of each artifact under ``<cwd>/<internal_cache_folder>/<key>/``."""

    def __init__(
        self,
        cwd: str | Path,
        internal_cache_folder: str = DEFAULT_INTERNAL_CACHE_FOLDER,
        incremental_caching: bool = False,
    ):
        super().__init__(cwd, incremental_caching)
        self._cache_folder = self.cwd / internal_cache_folder

    def _fetch(self, key: str) -> bool:
        artifact_folder = self._cache_folder / key
        if not artifact_folder.is_dir():
            return False

        # copytree cannot replace an existing entry with a symlink
        for link in artifact_folder.rglob("*"):
            if link.is_symlink():
                existing = self.cwd / link.relative_to(artifact_folder)
                if existing.is_symlink() or existing.is_file():
                    existing.unlink()

        shutil.copytree(artifact_folder, self.cwd, symlinks=True, dirs_exist_ok=True)
        return True

    def _put(self, key: str, files: list[str]) -> None:
        self._cache_folder.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{key}.", dir=self._cache_folder))
        try:
            copy_files(self.cwd, files, staging)
            artifact_folder = self._cache_folder / key
            if artifact_folder.exists():
                shutil.rmtree(artifact_folder)
            os.replace(staging, artifact_folder)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise


def copy_files(root: Path, files: Sequence[str], destination: Path) -> None:
    """Copy *files* (relative to *root*) into *destination*, keeping their layout."""
    for relative in files:
        source = resolve_within(root, relative)
        target = destination / relative
        if source.is_dir() and not source.is_symlink():
            shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target, follow_symlinks=False)
