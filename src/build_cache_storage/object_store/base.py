"""Abstract base class for object store clients used by the remote cache."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import BinaryIO


@dataclass(frozen=True)
class ObjectDescriptor:
    """Metadata the store reports before the body is read."""

    key: str
    content_length: int | None = None
    content_type: str = "application/octet-stream"
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class StorageObject:
    """Wrapper returned by get_object: descriptor plus a lazily read body."""

    descriptor: ObjectDescriptor
    body: Iterable[bytes]
    on_close: Callable[[], None] | None = None

    def close(self) -> None:
        """Release the underlying response. Safe to call more than once."""
        if self.on_close is not None:
            on_close, self.on_close = self.on_close, None
            on_close()


class ObjectStoreClient(ABC):
    """Backend-agnostic interface for keyed blob reads and writes.

    Implementations are bound to one bucket/container and must be safe to
    share between threads.
    """

    @abstractmethod
    def get_object(self, key: str) -> StorageObject:
        """Open a read stream for *key*. Raises StorageNotFoundError if missing.

        The request is issued eagerly so the descriptor is available before
        any body byte is consumed.
        """

    @abstractmethod
    def put_object(self, key: str, stream: BinaryIO, content_type: str) -> None:
        """Upload *stream* under *key*, reading it sequentially until EOF."""
