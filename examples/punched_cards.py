"""Example: Reformatting a deck of punched cards

A deck of 80-column cards is read, pairs of asterisks are collapsed into an
upward arrow, and the text is printed on a 40-column line printer. The same
deck goes through three process networks:

- one conway stage, which starts a new line at every arrow
- disassemble -> squash_tolerant -> assemble, each its own process, which
  squashes the same way but packs the arrows in wherever they fall
- the plain reformat, for comparison (no squashing)

Run with:
    python -m examples.punched_cards
"""

import asyncio
import logging

from sluice import (
    FormatConfig,
    Pipeline,
    assemble,
    conway,
    disassemble,
    reformat,
    squash_tolerant,
)

# ── Source Data ──

DECK = [
    "**PROGRAM CONWAY",
    "READ CARDS, SQUASH ** PAIRS,",
    "PRINT FIXED-WIDTH LINES.",
    "END OF DECK**",
]


def punch(deck: list[str], columns: int = 80) -> list[str]:
    """Pad every card out to a fixed number of columns, like a real card."""
    return [card.ljust(columns)[:columns] for card in deck]


# ── Main ──


async def main() -> None:
    printer = FormatConfig(line_length=40)
    cards = punch(DECK)

    single = (
        Pipeline("conway", channel_capacity=0, log_level=logging.WARNING)
        .source(cards)
        .then(conway, **printer.params_for(conway))
        .build()
    )
    chained = (
        Pipeline("conway-chained", channel_capacity=0, log_level=logging.WARNING)
        .source(cards)
        .then(disassemble, **printer.params_for(disassemble))
        .then(squash_tolerant, **printer.params_for(squash_tolerant))
        .then(assemble, **printer.params_for(assemble))
        .build()
    )
    plain = (
        Pipeline("reformat", channel_capacity=1, log_level=logging.WARNING)
        .source(cards)
        .then(reformat, **printer.params_for(reformat))
        .build()
    )

    print(f"\nTopology:\n{chained.topology}\n")

    for pipe in (single, chained, plain):
        result = await pipe.run()
        print(f"── {result.pipeline_name} ──")
        for line in result.output:
            print(f"|{line}|")
        print(f"\n{result.summary()}\n")


if __name__ == "__main__":
    asyncio.run(main())
