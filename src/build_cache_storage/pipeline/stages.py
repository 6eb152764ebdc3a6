"""Pass-through pipeline stages: sponge buffering and hang detection."""

import logging
import tempfile
import threading

from ..exceptions import BufferOverflowError, HangTimeoutError
from .core import Channel, Pipeline, Stage

log = logging.getLogger(__name__)

# Upper bound on what a sponge accepts; an artifact larger than this cannot
# be fetched through a sponged pipeline.
DEFAULT_SPONGE_CAPACITY = 1024 * 1024 * 1024 * 1024
DEFAULT_SPOOL_THRESHOLD = 64 * 1024 * 1024
RELEASE_CHUNK_SIZE = 1024 * 1024


class SpongeStage(Stage):
    """Holds every incoming byte until upstream completes, then releases it.

    Nothing is forwarded while the upstream stream is still open. If
    upstream fails, the pipeline is aborted and the buffered data is
    discarded, so the next stage only ever sees a stream that is known to
    be complete. Data is spooled in memory up to ``spool_threshold`` bytes
    and to a temporary file beyond that.
    """

    name = "sponge"

    def __init__(
        self,
        capacity: int = DEFAULT_SPONGE_CAPACITY,
        spool_threshold: int = DEFAULT_SPOOL_THRESHOLD,
    ):
        if capacity <= 0:
            raise ValueError("sponge capacity must be positive")
        self._capacity = capacity
        self._buffer = tempfile.SpooledTemporaryFile(max_size=spool_threshold)
        self._size = 0

    @property
    def buffered_bytes(self) -> int:
        return self._size

    def transform(self, chunk: bytes, outbox: Channel | None) -> None:
        self._size += len(chunk)
        if self._size > self._capacity:
            raise BufferOverflowError(
                f"Sponge capacity of {self._capacity} bytes exceeded", capacity=self._capacity
            )
        self._buffer.write(chunk)

    def flush(self, outbox: Channel | None) -> None:
        log.debug("Sponge releasing %d buffered bytes", self._size)
        self._buffer.seek(0)
        while True:
            chunk = self._buffer.read(RELEASE_CHUNK_SIZE)
            if not chunk:
                break
            if outbox is not None:
                outbox.put(chunk)

    def close(self) -> None:
        self._buffer.close()


class HangTimeoutStage(Stage):
    """Fails the pipeline if no chunk arrives before a deadline.

    The deadline starts when the stage is constructed. The first chunk
    disarms it for good; later chunks pass through untimed.
    """

    name = "hang-timeout"

    def __init__(self, timeout: float, message: str, key: str | None = None):
        self._message = message
        self._key = key
        self._lock = threading.Lock()
        self._armed = True
        self._expired = False
        self._timer = threading.Timer(timeout, self._expire)
        self._timer.daemon = True
        self._timer.start()

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def expired(self) -> bool:
        return self._expired

    def attach(self, pipeline: Pipeline) -> None:
        with self._lock:
            self._pipeline = pipeline
            expired = self._expired
        if expired:
            pipeline.fail(self._timeout_error())

    def transform(self, chunk: bytes, outbox: Channel | None) -> None:
        if self._armed:
            with self._lock:
                self._armed = False
            self._timer.cancel()
        if outbox is not None:
            outbox.put(chunk)

    def close(self) -> None:
        self._timer.cancel()

    def _expire(self) -> None:
        with self._lock:
            if not self._armed:
                return
            self._expired = True
            pipeline = self._pipeline
        log.debug("Hang timeout expired: %s", self._message)
        if pipeline is not None:
            pipeline.fail(self._timeout_error())

    def _timeout_error(self) -> HangTimeoutError:
        return HangTimeoutError(self._message, key=self._key)
