"""Pipeline — stages chained into one process network.

A Pipeline is a builder that wires stages together with channels, then runs
the whole thing:

    Pipeline("cards")
        .source(records)
        .then(squash_tolerant)
        .then(assemble, line_length=80)
        .build()

Once built, `await pipeline.run()`:
1. Creates one channel per hop.
2. Spawns a process per stage, plus a feeder for the source and a collector
   at the end.
3. Waits. The feeder closes the first channel when the source runs out; each
   stage closes its output when its input has drained; the collector sees
   the last channel close.
4. Returns the collected output and per-stage metrics.

Nothing cancels a healthy pipeline: it ends because close propagates, one
hop per stage, behind the data already in flight. The chain is linear, so
there is no cycle of blocked processes to deadlock on.

If a stage fails, the failure is attached to its output channel, the rest of
the network is cancelled, and run() raises the StageFailedError.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Self, TypeAlias

from .channel import Channel
from .config import check_capacity
from .errors import ConfigurationError, StageFailedError
from .logging import configure_logging, get_logger
from .metrics import StageMetricsSnapshot
from .process import Process, feed, spawn
from .runner import StageRunner
from .stage import BoundStage, StageFunction

# Sources can be sync iterables or async iterables
SourceType: TypeAlias = (
    Iterable[Any] | AsyncIterable[Any] | Callable[[], Iterable[Any] | AsyncIterable[Any]]
)


@dataclass(slots=True)
class PipelineResult:
    """Summary of a pipeline run."""

    pipeline_name: str
    duration_seconds: float
    output: list[Any]
    stage_metrics: list[StageMetricsSnapshot]

    def __repr__(self) -> str:
        """Return a compact summary showing duration, output size and stage count."""
        return (
            f"<PipelineResult '{self.pipeline_name}' "
            f"{len(self.output)} items in {self.duration_seconds:.3f}s, "
            f"{len(self.stage_metrics)} stages>"
        )

    def summary(self) -> str:
        """Human-readable summary of the run."""
        lines = [
            f"Pipeline '{self.pipeline_name}' — {len(self.output)} items out",
            f"  Duration: {self.duration_seconds:.3f}s",
            "",
        ]
        for sm in self.stage_metrics:
            duration = sm["duration_seconds"]
            took = f"{duration * 1000:.1f}ms" if duration is not None else "n/a"
            lines.append(f"  {sm['stage']}: {sm['items_in']} in, {sm['items_out']} out, {took}")
        return "\n".join(lines)


class Pipeline:
    """Builder and runtime for a linear chain of stages.

    Usage:
        pipe = (
            Pipeline("reformat", channel_capacity=0)
            .source(["hello", "world"])
            .then(reformat, line_length=4)
            .build()
        )
        result = await pipe.run()
        assert result.output == ["hell", "o wo", "rld "]
    """

    def __init__(
        self,
        name: str,
        channel_capacity: int | None = 1,
        log_level: int = logging.INFO,
        structured_logging: bool = False,
    ) -> None:
        """Initialize a pipeline builder.

        Args:
            name: Human-readable name for logging and metrics.
            channel_capacity: Capacity of every channel between processes.
                0 makes every hop a rendezvous.
            log_level: Python logging level for pipeline logs.
            structured_logging: If True, emit JSON lines instead of human-readable logs.
        """
        self._name = name
        self._channel_capacity = check_capacity(channel_capacity)
        self._log_level = log_level
        self._structured_logging = structured_logging

        # Builder state
        self._source: SourceType | None = None
        self._stages: list[BoundStage] = []
        self._built = False

        # Runtime state (populated by build)
        self._runners: list[StageRunner] = []
        self._channels: list[Channel[Any]] = []

    @property
    def name(self) -> str:
        """The pipeline's name."""
        return self._name

    def source(self, src: SourceType) -> Self:
        """Set the data source.

        Accepts:
        - A sync iterable (list, generator, etc.)
        - An async iterable (async generator, etc.)
        - A callable that returns either of the above
        """
        if self._built:
            raise RuntimeError("Cannot modify a built pipeline")
        self._source = src
        return self

    def then(self, stage_func: StageFunction, **params: Any) -> Self:
        """Append a stage, with its keyword parameters.

        Raises:
            TypeError: If stage_func is not a @stage decorated function.
            ConfigurationError: If params are not valid for the stage.
        """
        if self._built:
            raise RuntimeError("Cannot modify a built pipeline")
        if not isinstance(stage_func, StageFunction):
            raise TypeError(
                f"Expected a @stage decorated function, "
                f"got {type(stage_func).__name__}. "
                f"Did you forget the decorator?"
            )
        self._stages.append(stage_func.bind(**params))
        return self

    def build(self) -> Self:
        """Finalize the pipeline topology. Must be called before run()."""
        if self._built:
            raise RuntimeError("Pipeline already built")
        if self._source is None:
            raise ConfigurationError("Pipeline has no source. Call .source() first.")
        if not self._stages:
            raise ConfigurationError("Pipeline has no stages. Call .then() at least once.")

        self._wire_topology()
        self._built = True
        return self

    def reset(self, new_source: SourceType | None = None) -> Self:
        """Reset the pipeline for re-running with fresh channels.

        Args:
            new_source: Optional new data source. If None, reuses the original source.
        """
        if not self._built:
            raise RuntimeError("Cannot reset a pipeline that hasn't been built yet.")
        if new_source is not None:
            self._source = new_source
        self._wire_topology()
        return self

    def _wire_topology(self) -> None:
        """Create channels and runners from the stage list. Used by build() and reset()."""
        # n stages -> n + 1 channels: source -> first, ..., last -> collector
        self._channels = [
            Channel(capacity=self._channel_capacity, name=f"{self._name}:{s.name}:in")
            for s in self._stages
        ]
        self._channels.append(Channel(capacity=self._channel_capacity, name=f"{self._name}:out"))

        self._runners = [
            StageRunner(
                bound_stage=bound,
                input_channel=self._channels[i],
                output_channel=self._channels[i + 1],
                pipeline_name=self._name,
            )
            for i, bound in enumerate(self._stages)
        ]

    async def run(self) -> PipelineResult:
        """Run the pipeline until the last channel closes.

        Returns a PipelineResult with the collected output and metrics.

        Raises:
            StageFailedError: If any stage (or the source) fails.
        """
        if not self._built:
            raise RuntimeError("Pipeline not built. Call .build() first.")
        if not self._channels[0].is_open:
            raise RuntimeError("Pipeline already ran. Call .reset() first.")

        configure_logging(level=self._log_level, structured=self._structured_logging)
        log = get_logger(self._name)

        log.info("Pipeline '%s' starting (%d stages)", self._name, len(self._runners))
        t0 = time.monotonic()

        feeder = spawn(self._feed_source, name=f"{self._name}-source")
        for runner in self._runners:
            runner.start()
        collector = spawn(self._channels[-1].drain, name=f"{self._name}-collector")

        processes = [feeder, *(r.process for r in self._runners), collector]
        try:
            await self._wait_all(processes)
        except StageFailedError as e:
            log.error("Pipeline '%s' failed: %s", self._name, e)
            raise
        finally:
            pending = [p for p in processes if not p.done]
            for process in pending:
                process.cancel()
            if pending:
                await asyncio.gather(*(p.task for p in pending), return_exceptions=True)

        result = PipelineResult(
            pipeline_name=self._name,
            duration_seconds=round(time.monotonic() - t0, 3),
            output=collector.task.result(),
            stage_metrics=[r.metrics.snapshot() for r in self._runners],
        )
        log.info("\n%s", result.summary())
        return result

    async def _wait_all(self, processes: list[Process]) -> None:
        """Wait for every process, raising the most upstream failure as soon as one fails."""
        tasks = [p.task for p in processes]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for process in processes:
            task = process.task
            if task in done and not task.cancelled() and task.exception() is not None:
                raise StageFailedError.wrap(process.name, task.exception())  # type: ignore[arg-type]

    async def _feed_source(self) -> int:
        """Feed items from the source into the first channel, then close it."""
        source = self._source

        # If source is callable, call it to get the iterable
        if (
            callable(source)
            and not hasattr(source, "__aiter__")
            and not hasattr(source, "__iter__")
        ):
            source = source()

        first = self._channels[0]
        try:
            count = await feed(source, first)  # type: ignore[arg-type]
        except Exception as e:
            if first.is_open:
                first.close(error=StageFailedError.wrap("source", e))
            raise
        get_logger(self._name).info("Source exhausted after %d items.", count)
        return count

    # ── Introspection ──

    @property
    def stage_names(self) -> list[str]:
        """Ordered list of stage names in the pipeline."""
        return [s.name for s in self._stages]

    @property
    def topology(self) -> str:
        """Return a human-readable description of the pipeline topology."""
        if not self._built:
            return f"Pipeline '{self._name}' (not built)"

        parts = [f"Pipeline '{self._name}':"]
        parts.append(f"  source → [{self._channels[0].name}]")
        for i, runner in enumerate(self._runners):
            closer = "stage" if runner.bound_stage.closes_output else "runner"
            parts.append(
                f"  → {runner.name}(closed by {closer}) → [{self._channels[i + 1].name}]"
            )
        parts.append("  → (collect)")
        return "\n".join(parts)
