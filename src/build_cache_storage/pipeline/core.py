"""
Threaded byte pipelines.

A pipeline is a chain of stages, each running on its own worker thread,
joined by bounded channels. A stage pushes chunks into its outbox, the
pipeline closes the outbox when the stage returns (end-of-stream), and any
exception raised by a stage fails the pipeline: every channel is aborted,
every stage is closed and ``Pipeline.run()`` re-raises the first error.

Channels hold a fixed number of chunks, so a slow consumer blocks its
producer instead of letting memory grow.
"""

import io
import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable, Iterator

log = logging.getLogger(__name__)

DEFAULT_CHANNEL_CAPACITY = 16
DEFAULT_JOIN_TIMEOUT = 5.0


class PipelineAborted(Exception):
    """Raised inside a stage when the pipeline it belongs to has failed."""


class Channel:
    """Bounded FIFO of byte chunks between two stages.

    ``put()`` blocks while the channel is full and ``get()`` while it is
    empty. ``close()`` marks end-of-stream; ``abort()`` drops buffered
    chunks and wakes every waiter with PipelineAborted.
    """

    def __init__(self, capacity: int = DEFAULT_CHANNEL_CAPACITY):
        if capacity < 1:
            raise ValueError("channel capacity must be at least 1")
        self._capacity = capacity
        self._items: deque[bytes] = deque()
        self._closed = False
        self._aborted = False
        self._cond = threading.Condition()

    def put(self, chunk: bytes) -> None:
        if not chunk:
            return
        with self._cond:
            while len(self._items) >= self._capacity and not self._aborted:
                self._cond.wait()
            if self._aborted:
                raise PipelineAborted()
            if self._closed:
                raise RuntimeError("put() on a closed channel")
            self._items.append(chunk)
            self._cond.notify_all()

    def get(self) -> bytes | None:
        """Return the next chunk, or None once the channel is closed and drained."""
        with self._cond:
            while not self._items and not self._closed and not self._aborted:
                self._cond.wait()
            if self._aborted:
                raise PipelineAborted()
            if not self._items:
                return None
            chunk = self._items.popleft()
            self._cond.notify_all()
            return chunk

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def abort(self) -> None:
        with self._cond:
            self._aborted = True
            self._items.clear()
            self._cond.notify_all()

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.get()
            if chunk is None:
                return
            yield chunk


class ChannelReader(io.RawIOBase):
    """Blocking file-like view over the receiving end of a channel.

    ``readinto`` fills the whole buffer unless end-of-stream is reached, so
    consumers that treat a short read as EOF (multipart uploaders) see full
    parts.
    """

    def __init__(self, channel: Channel):
        self._channel = channel
        self._pending = b""
        self._offset = 0
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        filled = 0
        while filled < len(view):
            if self._offset >= len(self._pending):
                if self._eof:
                    break
                chunk = self._channel.get()
                if chunk is None:
                    self._eof = True
                    break
                self._pending, self._offset = chunk, 0
            count = min(len(view) - filled, len(self._pending) - self._offset)
            view[filled : filled + count] = self._pending[self._offset : self._offset + count]
            filled += count
            self._offset += count
        return filled


class ChannelWriter(io.RawIOBase):
    """File-like writer that pushes every write into a channel as one chunk."""

    def __init__(self, channel: Channel):
        self._channel = channel

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        chunk = bytes(data)
        self._channel.put(chunk)
        return len(chunk)


class Stage:
    """One step of a pipeline, run on its own worker thread.

    Subclasses override ``transform`` / ``flush`` for chunk-by-chunk
    processing, or ``run`` for full control. The first stage of a pipeline
    receives ``inbox=None`` and the last one ``outbox=None``.
    """

    name = "stage"
    _pipeline: "Pipeline | None" = None

    def attach(self, pipeline: "Pipeline") -> None:
        self._pipeline = pipeline

    def run(self, inbox: Channel | None, outbox: Channel | None) -> None:
        if inbox is not None:
            for chunk in inbox:
                self.transform(chunk, outbox)
        self.flush(outbox)

    def transform(self, chunk: bytes, outbox: Channel | None) -> None:
        if outbox is not None:
            outbox.put(chunk)

    def flush(self, outbox: Channel | None) -> None:
        """Called once after the inbox reached end-of-stream."""

    def close(self) -> None:
        """Release resources. Called at least once when the pipeline ends."""


class IterableSource(Stage):
    """Source stage that pushes the chunks of an iterable."""

    name = "source"

    def __init__(self, chunks: Iterable[bytes], on_close: Callable[[], None] | None = None):
        self._chunks = chunks
        self._on_close = on_close

    def run(self, inbox: Channel | None, outbox: Channel | None) -> None:
        for chunk in self._chunks:
            outbox.put(chunk)

    def close(self) -> None:
        if self._on_close is not None:
            on_close, self._on_close = self._on_close, None
            on_close()


class Pipeline:
    """Runs a source, optional intermediate stages and a sink to completion."""

    def __init__(
        self,
        source: Stage,
        *stages: Stage,
        capacity: int = DEFAULT_CHANNEL_CAPACITY,
        join_timeout: float = DEFAULT_JOIN_TIMEOUT,
    ):
        if not stages:
            raise ValueError("a pipeline needs a source and at least one more stage")
        self._stages: list[Stage] = [source, *stages]
        self._channels = [Channel(capacity) for _ in range(len(self._stages) - 1)]
        self._join_timeout = join_timeout
        self._cond = threading.Condition()
        self._running = 0
        self._error: BaseException | None = None
        self._closed = False

        for stage in self._stages:
            stage.attach(self)

    @property
    def error(self) -> BaseException | None:
        return self._error

    def fail(self, error: BaseException) -> None:
        """Fail the pipeline with *error*. Only the first failure is kept."""
        with self._cond:
            if self._error is not None:
                return
            self._error = error
            self._cond.notify_all()

        log.debug("Pipeline failed: %r", error)
        for channel in self._channels:
            channel.abort()
        self._close_stages()

    def run(self) -> None:
        """Start every stage, wait for completion and re-raise the first failure."""
        threads = []
        for index, stage in enumerate(self._stages):
            inbox = self._channels[index - 1] if index > 0 else None
            outbox = self._channels[index] if index < len(self._channels) else None
            threads.append(
                threading.Thread(
                    target=self._work,
                    args=(stage, inbox, outbox),
                    name=f"pipeline-{stage.name}",
                    daemon=True,
                )
            )

        with self._cond:
            self._running = len(threads)
        for thread in threads:
            thread.start()

        try:
            with self._cond:
                self._cond.wait_for(lambda: self._running == 0 or self._error is not None)

            if self._error is not None:
                for thread in threads:
                    thread.join(timeout=self._join_timeout)
                    if thread.is_alive():
                        log.warning(
                            "Pipeline stage thread %s did not stop after failure", thread.name
                        )
        finally:
            self._close_stages()

        if self._error is not None:
            raise self._error

    def _work(self, stage: Stage, inbox: Channel | None, outbox: Channel | None) -> None:
        try:
            stage.run(inbox, outbox)
            if inbox is not None:
                # a consumer that stopped early must not leave its producer blocked
                for _ in inbox:
                    pass
            if outbox is not None:
                outbox.close()
        except PipelineAborted:
            pass
        except Exception as e:
            self.fail(e)
        finally:
            with self._cond:
                self._running -= 1
                self._cond.notify_all()

    def _close_stages(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
        for stage in self._stages:
            try:
                stage.close()
            except Exception as e:
                log.debug("Error closing pipeline stage %s: %s", stage.name, e)
