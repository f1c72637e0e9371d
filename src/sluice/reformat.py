"""Reformat — change the width of a stream of records.

Disassemble the records into characters, then assemble the characters into
records of a new width. The same job, three ways:

- reformat(): the two stages joined by a channel that closes itself when
  disassemble finishes
- reformat_concurrent(): the same wiring done by hand, with an explicit
  close of the intermediate channel
- reformat_sequential(): no channels, no processes. One loop with the
  packing state kept by hand

All three produce the same records. The third is here to show what the
channel buys you: without it, the "pack into lines" loop has to be threaded
through the "take apart records" loop manually.
"""

import logging
from collections.abc import Iterable

from .channel import Channel
from .config import DEFAULT_LINE_LENGTH, PAD, SEPARATOR, check_line_length, check_symbol
from .errors import StageFailedError
from .process import producer_channel, spawn
from .stage import stage
from .transforms import assemble, disassemble

logger = logging.getLogger("sluice.reformat")


@stage(closes_output=False)
async def reformat(
    inbound: Channel[str],
    outbound: Channel[str],
    line_length: int = DEFAULT_LINE_LENGTH,
    *,
    separator: str = SEPARATOR,
    pad: str = PAD,
) -> None:
    """Re-pack inbound records into records of line_length characters."""
    chars, producer = producer_channel(
        disassemble, inbound, separator=separator, name="disassemble"
    )
    try:
        await assemble(chars, outbound, line_length, pad=pad)
    except BaseException:
        await producer.stop()
        raise


@stage(closes_output=False)
async def reformat_concurrent(
    inbound: Channel[str],
    outbound: Channel[str],
    line_length: int = DEFAULT_LINE_LENGTH,
    *,
    capacity: int | None = 0,
    separator: str = SEPARATOR,
    pad: str = PAD,
) -> None:
    """Re-pack inbound records, running disassemble as a separate process.

    Args:
        capacity: Capacity of the character channel between the two halves.
    """
    chars: Channel[str] = Channel(capacity=capacity, name="reformat:chars")

    async def disassemble_then_close() -> None:
        try:
            await disassemble(inbound, chars, separator=separator)
        except Exception as e:
            chars.close(error=StageFailedError.wrap("disassemble", e))
            raise
        chars.close()

    producer = spawn(disassemble_then_close, name="disassemble")
    try:
        await assemble(chars, outbound, line_length, pad=pad)
    except BaseException:
        await producer.stop()
        raise
    await producer.join()


def reformat_sequential(
    records: Iterable[str],
    line_length: int = DEFAULT_LINE_LENGTH,
    *,
    separator: str = SEPARATOR,
    pad: str = PAD,
) -> list[str]:
    """Re-pack records into lines of line_length characters, without concurrency."""
    check_line_length(line_length)
    check_symbol("separator", separator)
    check_symbol("pad", pad)

    lines: list[str] = []
    line: list[str] = []
    for record in records:
        for c in [*record, separator]:
            line.append(c)
            if len(line) == line_length:
                lines.append("".join(line))
                line = []
    if line:
        line.extend(pad * (line_length - len(line)))
        lines.append("".join(line))
    logger.debug("Reformatted into %d lines of %d", len(lines), line_length)
    return lines
