"""The basic stages: copy, squash, disassemble, assemble.

Each one is a single sequential loop over its inbound channel. None of them
knows anything about its neighbours; they only see values arrive, values
leave, and eventually the inbound channel run dry.

Closing differs on purpose. copy and both squash variants close their output
when their input ends. disassemble and assemble never do: they are the
halves of a composition, and the owner of the channel between them decides
when it ends.
"""

import logging
from typing import Any

from .channel import END_OF_STREAM, Channel
from .config import (
    COLLAPSED,
    DEFAULT_LINE_LENGTH,
    MARKER,
    PAD,
    SEPARATOR,
    check_line_length,
    check_symbol,
)
from .stage import stage

logger = logging.getLogger("sluice.transforms")


@stage(closes_output=True)
async def copy(inbound: Channel[Any], outbound: Channel[Any]) -> None:
    """Forward every value unchanged, then close outbound.

    Never returns if inbound is never closed.
    """
    async for item in inbound:
        await outbound.send(item)
    outbound.close()


@stage(closes_output=True)
async def squash(
    inbound: Channel[str],
    outbound: Channel[str],
    *,
    marker: str = MARKER,
    collapsed: str = COLLAPSED,
) -> None:
    """Replace every pair of consecutive markers with one collapsed value.

    The input must not end on an unpaired marker: the read for its partner
    raises PrematureEndOfStreamError, and outbound is left open.
    """
    async for c in inbound:
        if c != marker:
            await outbound.send(c)
            continue
        following = await inbound.take()
        if following == marker:
            await outbound.send(collapsed)
        else:
            await outbound.send(c)
            await outbound.send(following)
    outbound.close()


@stage(closes_output=True)
async def squash_tolerant(
    inbound: Channel[str],
    outbound: Channel[str],
    *,
    marker: str = MARKER,
    collapsed: str = COLLAPSED,
) -> None:
    """Like squash, but an input ending on an odd number of markers is fine.

    The trailing unpaired marker is forwarded as it is. The read after a
    marker waits for the next value or end of stream instead of peeking
    without blocking, so a pair split across two slow sends still collapses.
    """
    async for c in inbound:
        if c != marker:
            await outbound.send(c)
            continue
        following = await inbound.receive()
        if following is END_OF_STREAM:
            logger.debug("Trailing unpaired %r on '%s' forwarded", marker, inbound.name)
            await outbound.send(c)
            break
        if following == marker:
            await outbound.send(collapsed)
        else:
            await outbound.send(c)
            await outbound.send(following)  # type: ignore[arg-type]
    outbound.close()


@stage(closes_output=False)
async def disassemble(
    inbound: Channel[str],
    outbound: Channel[str],
    *,
    separator: str = SEPARATOR,
) -> None:
    """Emit the characters of every inbound record, each record followed by separator."""
    async for record in inbound:
        for c in record:
            await outbound.send(c)
        await outbound.send(separator)


class LinePacker:
    """Packing buffer for fixed-width records.

    add() returns a finished record whenever the buffer fills. flush() pads
    whatever is pending out to full width, or returns None if nothing is.
    """

    def __init__(self, line_length: int = DEFAULT_LINE_LENGTH, pad: str = PAD) -> None:
        self.line_length = check_line_length(line_length)
        self.pad = check_symbol("pad", pad)
        self._pending: list[str] = []

    @property
    def pending(self) -> int:
        """Number of characters waiting for the current line to fill."""
        return len(self._pending)

    def add(self, c: str) -> str | None:
        """Append one character. Returns the finished line if this one filled it."""
        self._pending.append(c)
        if len(self._pending) == self.line_length:
            return self._emit()
        return None

    def flush(self) -> str | None:
        """Pad and return the partial line, or None if nothing is pending."""
        if not self._pending:
            return None
        self._pending.extend(self.pad * (self.line_length - len(self._pending)))
        return self._emit()

    def _emit(self) -> str:
        line = "".join(self._pending)
        self._pending.clear()
        return line


@stage(closes_output=False)
async def assemble(
    inbound: Channel[str],
    outbound: Channel[str],
    line_length: int = DEFAULT_LINE_LENGTH,
    *,
    pad: str = PAD,
) -> None:
    """Pack inbound characters into records of exactly line_length characters.

    A short final record is padded. If the input ends on a line boundary,
    no extra blank record is emitted.
    """
    packer = LinePacker(line_length, pad)
    async for c in inbound:
        line = packer.add(c)
        if line is not None:
            await outbound.send(line)
    line = packer.flush()
    if line is not None:
        await outbound.send(line)
