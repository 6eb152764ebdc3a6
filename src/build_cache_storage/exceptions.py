"""Exceptions raised by the cache layer (pipelines and configuration)."""


class CacheError(Exception):
    """Base exception for cache storage failures that are not transport errors."""


class PipelineError(CacheError):
    """Raised when a transfer pipeline cannot complete."""


class HangTimeoutError(PipelineError):
    """Raised when no data arrived before the hang deadline."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


class BufferOverflowError(PipelineError):
    """Raised when a buffering stage is asked to hold more than its capacity."""

    def __init__(self, message: str, capacity: int):
        self.capacity = capacity
        super().__init__(message)


class ConfigurationError(CacheError):
    """Raised when cache provider options are malformed."""

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)
