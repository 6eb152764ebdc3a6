"""
Transport errors raised while moving cache archives to and from a store.

Vendor clients translate boto3 and azure-core failures into these types, so
the cache layer only has to know about one hierarchy. Only
``StorageNotFoundError`` is ever turned into a return value (a cache miss);
the others reach the caller, which owns retry and fallback.
"""


class StorageError(Exception):
    """A store request for a cache archive failed.

    ``key`` is the full object key (prefix included) and ``cause`` the
    vendor exception it was translated from, when there is one.
    """

    def __init__(self, message: str, key: str | None = None, cause: Exception | None = None):
        self.key = key
        self.cause = cause
        super().__init__(message)


class StorageNotFoundError(StorageError):
    """No archive is stored under the key."""


class StoragePermissionError(StorageError):
    """The store rejected the credentials or the bucket/container policy."""


class StorageConnectionError(StorageError):
    """The store endpoint could not be reached or dropped the connection mid-transfer."""
