"""Object store clients for the remote cache (S3 and Azure Blob Storage)."""

from .base import ObjectDescriptor, ObjectStoreClient, StorageObject
from .exceptions import (
    StorageConnectionError,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)

__all__ = [
    "ObjectDescriptor",
    "ObjectStoreClient",
    "StorageObject",
    "StorageError",
    "StorageNotFoundError",
    "StoragePermissionError",
    "StorageConnectionError",
]
