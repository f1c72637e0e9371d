"""Per-stage metrics.

A stage only ever touches its two channels, so the channels already know
everything worth counting: how many values the stage took in, how many it
put out. StageMetrics reads those counters and adds wall-clock timing.
"""

import time
from dataclasses import dataclass, field
from typing import Any, TypedDict

from .channel import Channel


class StageMetricsSnapshot(TypedDict):
    """JSON-serializable view of a stage's metrics."""

    stage: str
    items_in: int
    items_out: int
    duration_seconds: float | None
    output_closed: bool


@dataclass
class StageMetrics:
    """Metrics for a single pipeline stage."""

    stage_name: str
    _input_channel: Channel[Any]
    _output_channel: Channel[Any]
    _started_at: float | None = None
    _finished_at: float | None = field(default=None)

    def mark_started(self) -> None:
        self._started_at = time.monotonic()

    def mark_finished(self) -> None:
        self._finished_at = time.monotonic()

    @property
    def items_in(self) -> int:
        return self._input_channel.stats().total_get

    @property
    def items_out(self) -> int:
        return self._output_channel.stats().total_put

    @property
    def duration(self) -> float | None:
        """Seconds the stage ran for, or so far. None if it never started."""
        if self._started_at is None:
            return None
        end = self._finished_at if self._finished_at is not None else time.monotonic()
        return end - self._started_at

    def snapshot(self) -> StageMetricsSnapshot:
        """Return a JSON-serializable snapshot of current metrics."""
        duration = self.duration
        return StageMetricsSnapshot(
            stage=self.stage_name,
            items_in=self.items_in,
            items_out=self.items_out,
            duration_seconds=round(duration, 4) if duration is not None else None,
            output_closed=not self._output_channel.is_open,
        )

    def __repr__(self) -> str:
        return f"<StageMetrics {self.stage_name}: {self.items_in} in, {self.items_out} out>"
