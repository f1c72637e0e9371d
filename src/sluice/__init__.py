"""sluice — CSP-style pipeline stages over bounded channels.

Independent sequential processes that share nothing but channels:

    from sluice import Channel, run_stage, squash

    await run_stage(squash, "hello*to**the*world")   # -> list("hello*to↑the*world")

Stages compose by handing one stage's output channel to the next as its
input. Close is the end-of-stream signal, and it propagates on its own.
"""

from .channel import (
    EMPTY,
    END_OF_STREAM,
    Channel,
    ChannelStats,
    is_empty_signal,
    is_end_of_stream,
)
from .config import DEFAULT_LINE_LENGTH, FormatConfig
from .conway import conway
from .errors import (
    ChannelClosedError,
    ConfigurationError,
    PrematureEndOfStreamError,
    SluiceError,
    StageFailedError,
)
from .logging import configure_logging
from .metrics import StageMetrics, StageMetricsSnapshot
from .pipeline import Pipeline, PipelineResult
from .process import Process, feed, producer_channel, run_stage, spawn
from .reformat import reformat, reformat_concurrent, reformat_sequential
from .stage import BoundStage, StageConfig, StageFunction, stage
from .transforms import LinePacker, assemble, copy, disassemble, squash, squash_tolerant

__all__ = [
    "DEFAULT_LINE_LENGTH",
    "EMPTY",
    "END_OF_STREAM",
    "BoundStage",
    "Channel",
    "ChannelClosedError",
    "ChannelStats",
    "ConfigurationError",
    "FormatConfig",
    "LinePacker",
    "Pipeline",
    "PipelineResult",
    "PrematureEndOfStreamError",
    "Process",
    "SluiceError",
    "StageConfig",
    "StageFailedError",
    "StageFunction",
    "StageMetrics",
    "StageMetricsSnapshot",
    "assemble",
    "configure_logging",
    "conway",
    "copy",
    "disassemble",
    "feed",
    "is_empty_signal",
    "is_end_of_stream",
    "producer_channel",
    "reformat",
    "reformat_concurrent",
    "reformat_sequential",
    "run_stage",
    "spawn",
    "squash",
    "squash_tolerant",
    "stage",
]

__version__ = "0.1.0"
