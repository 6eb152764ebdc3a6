"""Shared fixtures for the cache storage unit tests."""

import threading
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

import pytest

from build_cache_storage.object_store.base import (
    ObjectDescriptor,
    ObjectStoreClient,
    StorageObject,
)
from build_cache_storage.object_store.exceptions import StorageNotFoundError


class InMemoryObjectStore(ObjectStoreClient):
    """Thread-safe dict-backed store that records every call."""

    def __init__(self, chunk_size: int = 4096):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.get_calls: list[str] = []
        self.put_calls: list[str] = []
        self.closed_keys: list[str] = []
        self.declared_lengths: dict[str, int] = {}
        self._chunk_size = chunk_size
        self._lock = threading.Lock()

    def get_object(self, key: str) -> StorageObject:
        with self._lock:
            self.get_calls.append(key)
            if key not in self.objects:
                raise StorageNotFoundError(f"No such key: {key}", key=key)
            data = self.objects[key]
            length = self.declared_lengths.get(key, len(data))

        descriptor = ObjectDescriptor(
            key=key,
            content_length=length,
            content_type=self.content_types.get(key, "application/octet-stream"),
        )
        return StorageObject(
            descriptor=descriptor,
            body=self._chunks(data),
            on_close=lambda: self.closed_keys.append(key),
        )

    def put_object(self, key: str, stream: BinaryIO, content_type: str) -> None:
        data = stream.read()
        with self._lock:
            self.put_calls.append(key)
            self.objects[key] = data
            self.content_types[key] = content_type

    def _chunks(self, data: bytes) -> Iterator[bytes]:
        for offset in range(0, len(data), self._chunk_size):
            yield data[offset : offset + self._chunk_size]


def _write_files(root: Path, files: dict[str, bytes]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


def _snapshot(root: Path) -> dict[str, bytes]:
    """Map of relative posix path to content for every file under *root*."""
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture()
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture()
def write_files():
    return _write_files


@pytest.fixture()
def snapshot():
    return _snapshot
