"""Stage runner — one stage, one process, two channels.

The runner owns the close of its stage's output channel whenever the stage
doesn't close it itself. It also decides what the next stage sees when this
one dies: the output channel is closed with a StageFailedError attached, so
the failure travels downstream the same way end-of-stream does, and the
next stage doesn't sit waiting for a value that will never come.
"""

import asyncio
from typing import Any

from .channel import Channel
from .errors import StageFailedError
from .logging import PipelineLoggerAdapter, get_logger
from .metrics import StageMetrics
from .process import Process, spawn
from .stage import BoundStage


class StageRunner:
    """Runs a bound stage between its input and output channels.

    Users don't create StageRunners directly; the Pipeline builds them.
    """

    def __init__(
        self,
        bound_stage: BoundStage,
        input_channel: Channel[Any],
        output_channel: Channel[Any],
        pipeline_name: str,
    ) -> None:
        self.bound_stage = bound_stage
        self.input_channel = input_channel
        self.output_channel = output_channel
        self.metrics = StageMetrics(
            stage_name=bound_stage.name,
            _input_channel=input_channel,
            _output_channel=output_channel,
        )
        self.logger: PipelineLoggerAdapter = get_logger(pipeline_name, bound_stage.name)
        self._process: Process | None = None

    @property
    def name(self) -> str:
        """The name of the underlying stage function."""
        return self.bound_stage.name

    @property
    def process(self) -> Process:
        if self._process is None:
            raise RuntimeError(f"Stage '{self.name}' has not been started")
        return self._process

    def start(self) -> Process:
        """Launch the stage as a process."""
        self.logger.info(
            "Starting stage '%s' (%s -> %s)",
            self.name,
            self.input_channel.name,
            self.output_channel.name,
        )
        self._process = spawn(self._run, name=f"{self.name}-process")
        return self._process

    async def wait(self) -> None:
        """Wait for the stage to finish. Re-raises its failure."""
        await self.process.join()

    async def _run(self) -> None:
        self.metrics.mark_started()
        try:
            await self.bound_stage(self.input_channel, self.output_channel)
        except asyncio.CancelledError:
            self.logger.warning("Stage '%s' cancelled", self.name)
            raise
        except Exception as e:
            failure = StageFailedError.wrap(self.name, e)
            if failure is e:
                self.logger.info("Stage '%s' stopping on upstream failure", self.name)
            else:
                self.logger.error("Stage '%s' failed: %s", self.name, e, exc_info=True)
            if self.output_channel.is_open:
                self.output_channel.close(error=failure)
            if failure is e:
                raise
            raise failure from e
        finally:
            self.metrics.mark_finished()

        if not self.bound_stage.closes_output:
            self.output_channel.close()
        self.logger.info(
            "Stage '%s' finished: %d in, %d out",
            self.name,
            self.metrics.items_in,
            self.metrics.items_out,
        )
