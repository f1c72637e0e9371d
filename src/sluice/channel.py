"""Channels — the only thing processes share.

A Channel is a FIFO with a closed flag and a capacity:

- capacity 0 is a rendezvous: send returns once a receiver has taken the value
- capacity n buffers up to n values, then send waits
- capacity None never makes send wait

Close is the end-of-stream signal. Values sent before close stay receivable;
once they are gone, receive returns END_OF_STREAM instead of waiting forever.
That is what lets a chain of stages shut down on its own: each stage sees its
input drain, finishes, and closes its output for the next one.

Everything runs on one event loop, so there is no lock. A blocked process
parks a future in the channel and re-checks its condition when woken.
"""

import asyncio
from collections import deque
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Generic, Self, TypeVar

from .config import check_capacity
from .errors import (
    ChannelClosedError,
    ConfigurationError,
    PrematureEndOfStreamError,
    StageFailedError,
)


class _Signal(Enum):
    """Non-value results of a receive."""

    END_OF_STREAM = auto()
    EMPTY = auto()


END_OF_STREAM = _Signal.END_OF_STREAM
EMPTY = _Signal.EMPTY


def is_end_of_stream(item: object) -> bool:
    """Check whether a receive result means the channel is closed and drained."""
    return item is END_OF_STREAM


def is_empty_signal(item: object) -> bool:
    """Check whether a try_receive result means the receive would have blocked."""
    return item is EMPTY


@dataclass(slots=True)
class ChannelStats:
    """Observable state of a channel."""

    capacity: int | None
    current_depth: int
    total_put: int
    total_get: int
    closed: bool

    @property
    def utilization(self) -> float:
        """Buffer utilization from 0.0 (empty) to 1.0 (full). Always 0.0 when unbounded."""
        if not self.capacity:
            return 0.0
        return self.current_depth / self.capacity


T = TypeVar("T")


class Channel(Generic[T]):
    """A point-to-point channel between two sequential processes.

    One process sends, one process receives. Values arrive in send order.

    Args:
        capacity: 0 for rendezvous, a positive int for a bounded buffer,
                  None for unbounded.
        name: Optional name for logging/debugging.
    """

    def __init__(self, capacity: int | None = 0, name: str | None = None) -> None:
        """Initialize an open, empty channel.

        Raises:
            ConfigurationError: If capacity is negative or not an int.
        """
        self._capacity = check_capacity(capacity)
        self._name = name or "channel"
        self._buffer: deque[T] = deque()
        self._waiters: list[asyncio.Future[None]] = []
        self._closed = False
        self._error: StageFailedError | None = None
        self._total_put = 0
        self._total_get = 0

    @classmethod
    def of(
        cls,
        values: Iterable[T],
        capacity: int | None = None,
        name: str | None = None,
    ) -> Self:
        """Build a channel pre-loaded with values and already closed.

        Raises:
            ConfigurationError: If the values do not fit in capacity.
        """
        channel = cls(capacity=capacity, name=name)
        items = list(values)
        if channel._capacity is not None and len(items) > channel._capacity:
            raise ConfigurationError(
                f"Cannot pre-load {len(items)} values into channel "
                f"'{channel.name}' with capacity {channel._capacity}"
            )
        channel._buffer.extend(items)
        channel._total_put = len(items)
        channel._closed = True
        return channel

    @property
    def name(self) -> str:
        """The channel's display name."""
        return self._name

    @property
    def capacity(self) -> int | None:
        """Buffer size; 0 for rendezvous, None for unbounded."""
        return self._capacity

    @property
    def depth(self) -> int:
        """Number of values sent but not yet received."""
        return len(self._buffer)

    @property
    def is_open(self) -> bool:
        """Whether values may still be sent."""
        return not self._closed

    @property
    def is_ready(self) -> bool:
        """Whether a receive would return a value without waiting."""
        return bool(self._buffer)

    @property
    def is_full(self) -> bool:
        """Whether a send would have to wait for room."""
        if self._capacity is None:
            return False
        return len(self._buffer) >= max(self._capacity, 1)

    async def send(self, item: T) -> None:
        """Send a value. Waits while the channel is full.

        On a rendezvous channel, also waits until a receiver has taken it.

        Raises:
            ChannelClosedError: If the channel is closed, before or while waiting.
        """
        self._check_open()
        while self.is_full:
            await self._wait()
            self._check_open()
        self._buffer.append(item)
        self._total_put += 1
        ticket = self._total_put
        self._notify()
        if self._capacity == 0:
            while self._total_get < ticket:
                await self._wait()

    async def receive(self) -> T | _Signal:
        """Receive the next value. Waits while the channel is empty and open.

        Returns END_OF_STREAM, never a value, once the channel is closed and drained.

        Raises:
            StageFailedError: If the channel was closed because its producer failed.
        """
        while not self._buffer:
            if self._closed:
                return self._end_of_stream()
            await self._wait()
        return self._pop()

    async def take(self) -> T:
        """Receive a value that must exist.

        Raises:
            PrematureEndOfStreamError: If the channel is closed and drained.
        """
        item = await self.receive()
        if item is END_OF_STREAM:
            raise PrematureEndOfStreamError(
                f"Channel '{self._name}' ended where another value was required"
            )
        return item  # type: ignore[return-value]

    def try_receive(self) -> T | _Signal:
        """Receive without waiting.

        Returns a value, EMPTY if a receive would block, or END_OF_STREAM if the
        channel is closed and drained.
        """
        if self._buffer:
            return self._pop()
        if self._closed:
            return self._end_of_stream()
        return EMPTY

    def close(self, error: StageFailedError | None = None) -> None:
        """Close the channel. No more values may be sent.

        Args:
            error: Upstream failure to hand to the receiver once it has drained
                   the values already queued.

        Raises:
            ChannelClosedError: If the channel is already closed.
        """
        if self._closed:
            raise ChannelClosedError(f"Channel '{self._name}' is already closed")
        self._closed = True
        self._error = error
        self._notify()

    async def drain(self) -> list[T]:
        """Receive every remaining value until end-of-stream."""
        return [item async for item in self]

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            item = await self.receive()
            if item is END_OF_STREAM:
                return
            yield item  # type: ignore[misc]

    def stats(self) -> ChannelStats:
        """Return a snapshot of the channel's observable state."""
        return ChannelStats(
            capacity=self._capacity,
            current_depth=self.depth,
            total_put=self._total_put,
            total_get=self._total_get,
            closed=self._closed,
        )

    def _pop(self) -> T:
        item = self._buffer.popleft()
        self._total_get += 1
        self._notify()
        return item

    def _end_of_stream(self) -> _Signal:
        if self._error is not None:
            raise self._error
        return END_OF_STREAM

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelClosedError(f"Cannot send into closed channel '{self._name}'")

    async def _wait(self) -> None:
        """Park until the channel's state changes."""
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def _notify(self) -> None:
        """Wake every parked process so it can re-check its condition."""
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def __repr__(self) -> str:
        """Return a human-readable representation showing depth, capacity, and state."""
        capacity = "∞" if self._capacity is None else self._capacity
        state = "open" if self.is_open else "closed"
        return f"<Channel '{self._name}' {self.depth}/{capacity} {state}>"
