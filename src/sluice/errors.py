"""Faults — what can go wrong when processes talk over channels.

There are no retries in sluice. Every stage is a single pass over a stream,
so a failure is either a wiring bug (sending on a closed channel), a stream
that ended where a value was required, or a bad parameter. All of them
propagate to whoever started the pipeline.

The one piece of machinery here is StageFailedError: when a stage dies, its
output channel is closed *with* the failure attached, so the next stage sees
the error instead of a clean end-of-stream and the fault travels downstream
the same way close does.
"""


class SluiceError(Exception):
    """Base class for every error raised by sluice."""


class ChannelClosedError(SluiceError):
    """Raised when sending on a closed channel, or closing it a second time."""


class PrematureEndOfStreamError(SluiceError):
    """Raised when a value was required but the channel is closed and drained."""


class ConfigurationError(SluiceError, ValueError):
    """Raised for invalid stage or channel parameters, before any data moves."""


class StageFailedError(SluiceError):
    """A stage stopped with an exception.

    Attached to the stage's output channel on close, re-raised by receivers
    once they drain it, and finally raised out of Pipeline.run().
    """

    def __init__(self, stage_name: str, error: BaseException) -> None:
        """Initialize the failure.

        Args:
            stage_name: Name of the stage (or process) that failed.
            error: The exception the stage raised.
        """
        self.stage_name = stage_name
        self.error = error
        super().__init__(f"Stage '{stage_name}' failed: {type(error).__name__}: {error}")

    @classmethod
    def wrap(cls, stage_name: str, error: BaseException) -> "StageFailedError":
        """Wrap an error, passing through failures that already came from upstream."""
        if isinstance(error, StageFailedError):
            return error
        return cls(stage_name, error)
