"""Stage — one sequential process between two channels.

A stage is an async function that takes an inbound channel, an outbound
channel, and keyword parameters:

    @stage(closes_output=True)
    async def copy(inbound, outbound):
        async for item in inbound:
            await outbound.send(item)
        outbound.close()

The decorator records one fact about the function: whether it closes its own
output when it is done. Stages that do (copy, squash) are the end of their
channel's story. Stages that don't (disassemble, assemble) leave closing to
whoever owns the output channel, which is how several of them can write into
one channel in turn.

Calling a decorated stage still just runs it, after its parameters have been
checked. Binding it with parameters gives the Pipeline something it can run
later, with the checks done at bind time rather than mid-stream.
"""

import functools
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from .channel import Channel
from .config import validate_params
from .errors import ConfigurationError

StageCallable: TypeAlias = Callable[..., Awaitable[None]]


@dataclass(frozen=True, slots=True)
class StageConfig:
    """Configuration attached to a stage function by the @stage decorator."""

    closes_output: bool = True


class StageFunction:
    """A decorated stage function with its configuration.

    Calling it directly runs the underlying function with no framework
    machinery beyond parameter validation. This is important for testing.
    """

    def __init__(self, func: StageCallable, config: StageConfig) -> None:
        self.func = func
        self.config = config
        self.name = func.__name__
        self._signature = inspect.signature(func)
        functools.update_wrapper(self, func)

    @property
    def closes_output(self) -> bool:
        """Whether the stage closes its outbound channel itself."""
        return self.config.closes_output

    async def __call__(self, *args: Any, **kwargs: Any) -> None:
        self._check(*args, **kwargs)
        await self.func(*args, **kwargs)

    def bind(self, **params: Any) -> "BoundStage":
        """Fix the stage's keyword parameters, validating them now.

        Raises:
            ConfigurationError: If a parameter is unknown or has an invalid value.
        """
        self._check(None, None, **params)
        return BoundStage(self, params)

    def _check(self, *args: Any, **kwargs: Any) -> None:
        try:
            bound = self._signature.bind(*args, **kwargs)
        except TypeError as e:
            raise ConfigurationError(f"Stage '{self.name}': {e}") from e
        validate_params(bound.arguments)

    def __repr__(self) -> str:
        return f"<Stage '{self.name}' closes_output={self.closes_output}>"


@dataclass(frozen=True, slots=True)
class BoundStage:
    """A stage with its parameters fixed, ready to be wired between two channels."""

    stage_func: StageFunction
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.stage_func.name

    @property
    def closes_output(self) -> bool:
        return self.stage_func.closes_output

    async def __call__(self, inbound: Channel[Any], outbound: Channel[Any]) -> None:
        await self.stage_func(inbound, outbound, **self.params)

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v!r}" for k, v in self.params.items())
        return f"<BoundStage {self.name}({params})>"


def stage(closes_output: bool = True) -> Callable[[StageCallable], StageFunction]:
    """Decorator to declare an async function as a pipeline stage.

    Args:
        closes_output: True if the function closes its outbound channel before
            returning. False if closing belongs to the channel's owner.

    Usage:
        @stage(closes_output=False)
        async def disassemble(inbound, outbound, *, separator=" "):
            ...
    """

    def decorator(func: StageCallable) -> StageFunction:
        return StageFunction(func, StageConfig(closes_output=closes_output))

    return decorator
