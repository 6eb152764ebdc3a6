"""
Tar archive codec stages.

``TarPackSource`` streams a tar archive of a file set as it is written;
``TarExtractSink`` unpacks a tar stream entry by entry as bytes arrive.
"""

import logging
import tarfile
from collections.abc import Sequence
from pathlib import Path

from .paths import resolve_within
from .pipeline.core import Channel, ChannelReader, ChannelWriter, Stage

log = logging.getLogger(__name__)

ARCHIVE_CONTENT_TYPE = "application/x-tar"


class TarPackSource(Stage):
    """Source stage emitting a tar archive of *paths*, relative to *root*."""

    name = "tar-pack"

    def __init__(self, root: str | Path, paths: Sequence[str]):
        self._root = Path(root)
        self._paths = list(paths)

    def run(self, inbox: Channel | None, outbox: Channel | None) -> None:
        with ChannelWriter(outbox) as writer:
            with tarfile.open(fileobj=writer, mode="w|", format=tarfile.PAX_FORMAT) as tar:
                for relative in self._paths:
                    source = resolve_within(self._root, relative)
                    arcname = Path(relative).as_posix()
                    tar.add(source, arcname=arcname)
        log.debug("Packed %d entries from %s", len(self._paths), self._root)


class TarExtractSink(Stage):
    """Sink stage extracting a tar stream into *root*.

    Uses the ``data`` extraction filter: absolute names, ``..`` components
    and links pointing outside *root* are rejected.
    """

    name = "tar-extract"

    def __init__(self, root: str | Path):
        self._root = Path(root)

    def run(self, inbox: Channel | None, outbox: Channel | None) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        reader = ChannelReader(inbox)
        with tarfile.open(fileobj=reader, mode="r|*") as tar:
            tar.extractall(self._root, filter="data")
        log.debug("Extracted archive into %s", self._root)
