"""Processes — running stages side by side.

sluice does not schedule anything itself. A process is an asyncio task, and
the event loop is the scheduler. This module is the thin layer tests and
composite stages use to start processes and wire them up:

- spawn(): run a coroutine function as an independent process
- producer_channel(): a channel whose producer is spawned with it, and which
  is closed when that producer finishes or is stopped
- feed(): a source process that sends a sequence and closes
- run_stage(): run one stage over canned input and collect what it emits
"""

import asyncio
import logging
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
from typing import Any

from .channel import Channel
from .errors import StageFailedError

logger = logging.getLogger("sluice.process")

# The event loop only keeps weak references to tasks.
_running: set[asyncio.Task[Any]] = set()


class Process:
    """Handle on a spawned process.

    Failures are logged as soon as the process ends, so one that nobody joins
    never fails silently. join() still re-raises them.
    """

    def __init__(self, coro: Awaitable[Any], name: str) -> None:
        self.name = name
        self._task: asyncio.Task[Any] = asyncio.ensure_future(coro)
        self._task.set_name(name)
        _running.add(self._task)
        self._task.add_done_callback(_running.discard)
        self._task.add_done_callback(self._log_failure)

    @property
    def done(self) -> bool:
        """Whether the process has finished, failed or been cancelled."""
        return self._task.done()

    @property
    def task(self) -> asyncio.Task[Any]:
        return self._task

    async def join(self) -> Any:
        """Wait for the process to finish and return its result.

        Re-raises whatever the process raised.
        """
        return await self._task

    def cancel(self) -> None:
        """Request cancellation. Does nothing if the process already finished."""
        self._task.cancel()

    async def stop(self) -> None:
        """Cancel the process and wait until it has finished."""
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)

    def _log_failure(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            logger.debug("Process '%s' cancelled", self.name)
            return
        error = task.exception()
        if isinstance(error, StageFailedError):
            # Already reported where it was raised.
            logger.debug("Process '%s' stopped by %s", self.name, error)
        elif error is not None:
            logger.error("Process '%s' failed: %s", self.name, error)

    def __repr__(self) -> str:
        state = "done" if self.done else "running"
        return f"<Process '{self.name}' {state}>"


def _callable_name(func: Callable[..., Any]) -> str:
    return getattr(func, "name", None) or getattr(func, "__name__", "process")


def spawn(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    name: str | None = None,
    **kwargs: Any,
) -> Process:
    """Start func(*args, **kwargs) as a concurrent process and return its handle.

    Must be called from inside a running event loop.
    """
    return Process(func(*args, **kwargs), name=name or _callable_name(func))


def producer_channel(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    capacity: int | None = 0,
    name: str | None = None,
    **kwargs: Any,
) -> tuple[Channel[Any], Process]:
    """Create a channel and spawn its producer, func(*args, channel, **kwargs).

    Returns the channel and the producer's process. A consumer that stops
    before the channel closes should stop() the producer, which is otherwise
    left waiting on a send nobody will take.

    The channel is closed once the producer returns, unless the producer
    closed it itself. If the producer fails, the channel is closed with a
    StageFailedError, which the consumer gets after draining what was sent.
    """
    producer_name = name or _callable_name(func)
    channel: Channel[Any] = Channel(capacity=capacity, name=f"{producer_name}:out")

    async def run_then_close() -> None:
        try:
            await func(*args, channel, **kwargs)
        except asyncio.CancelledError:
            if channel.is_open:
                channel.close()
            raise
        except Exception as e:
            logger.error("Producer '%s' failed: %s", producer_name, e)
            if channel.is_open:
                channel.close(error=StageFailedError.wrap(producer_name, e))
            return
        if channel.is_open:
            channel.close()

    return channel, spawn(run_then_close, name=producer_name)


async def feed(values: Iterable[Any] | AsyncIterable[Any], outbound: Channel[Any]) -> int:
    """Send every value to outbound, then close it. Returns the number sent.

    Handles both sync and async iterables.
    """
    count = 0
    if isinstance(values, AsyncIterable):
        async for item in values:
            await outbound.send(item)
            count += 1
    else:
        for item in values:
            await outbound.send(item)
            count += 1
    outbound.close()
    return count


async def run_stage(
    stage_func: Callable[..., Awaitable[Any]],
    values: Iterable[Any],
    **params: Any,
) -> list[Any]:
    """Run one stage to completion over canned input and return its output.

    The input is a pre-loaded, closed channel; the output is unbounded so the
    stage never waits on it. The output is closed afterwards if the stage left
    that to its owner.
    """
    inbound: Channel[Any] = Channel.of(values, name="run_stage:in")
    outbound: Channel[Any] = Channel(capacity=None, name="run_stage:out")
    await stage_func(inbound, outbound, **params)
    if outbound.is_open:
        outbound.close()
    return await outbound.drain()
