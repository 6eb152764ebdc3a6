"""Flow-controlled byte pipelines used to move archives to and from the store."""

from .core import (
    Channel,
    ChannelReader,
    ChannelWriter,
    IterableSource,
    Pipeline,
    PipelineAborted,
    Stage,
)
from .stages import DEFAULT_SPONGE_CAPACITY, HangTimeoutStage, SpongeStage

__all__ = [
    "Channel",
    "ChannelReader",
    "ChannelWriter",
    "IterableSource",
    "Pipeline",
    "PipelineAborted",
    "Stage",
    "SpongeStage",
    "HangTimeoutStage",
    "DEFAULT_SPONGE_CAPACITY",
]
