"""Conway's problem — reformat with squashing, and a line break rule.

Records are taken apart into characters, every marker pair is collapsed into
one value, and the result is packed into fixed-width lines. On top of that,
a collapsed value always starts a line of its own: when a pair is found, any
partly filled line is padded out and emitted first.

The packing loop is a two-state machine:

    NORMAL          pack characters as they come
    AFTER_COLLAPSE  a pair was just found; flush the pending line (if any)
                    before accepting the next character, then back to NORMAL

An empty line is never flushed, so the rule never produces blank lines.
"""

import enum
import logging

from .channel import END_OF_STREAM, Channel
from .config import COLLAPSED, DEFAULT_LINE_LENGTH, MARKER, PAD, SEPARATOR
from .process import producer_channel
from .stage import stage
from .transforms import LinePacker, disassemble

logger = logging.getLogger("sluice.conway")


class PackState(enum.Enum):
    NORMAL = enum.auto()
    AFTER_COLLAPSE = enum.auto()


@stage(closes_output=False)
async def conway(
    inbound: Channel[str],
    outbound: Channel[str],
    line_length: int = DEFAULT_LINE_LENGTH,
    *,
    marker: str = MARKER,
    collapsed: str = COLLAPSED,
    separator: str = SEPARATOR,
    pad: str = PAD,
) -> None:
    """Disassemble, squash and re-pack inbound records into line_length lines.

    An odd marker at the very end of the stream is kept as it is.
    """
    packer = LinePacker(line_length, pad)
    state = PackState.NORMAL

    async def pack(c: str) -> None:
        nonlocal state
        if state is PackState.AFTER_COLLAPSE:
            pending = packer.flush()
            if pending is not None:
                logger.debug("Line broken early before %r", c)
                await outbound.send(pending)
            state = PackState.NORMAL
        line = packer.add(c)
        if line is not None:
            await outbound.send(line)

    chars, producer = producer_channel(
        disassemble, inbound, separator=separator, name="disassemble"
    )
    try:
        async for c in chars:
            if c != marker:
                await pack(c)
                continue
            following = await chars.receive()
            if following is END_OF_STREAM:
                await pack(c)
                break
            if following == marker:
                state = PackState.AFTER_COLLAPSE
                await pack(collapsed)
            else:
                await pack(c)
                await pack(following)  # type: ignore[arg-type]

        line = packer.flush()
        if line is not None:
            await outbound.send(line)
    except BaseException:
        await producer.stop()
        raise
