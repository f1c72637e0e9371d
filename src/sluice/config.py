"""Stage parameters and their validation.

The five knobs every text stage shares live here, along with the checks that
reject bad values up front. A non-positive line length should blow up when
the stage is bound or called, not three thousand characters into a stream.
"""

import inspect
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from .errors import ConfigurationError

DEFAULT_LINE_LENGTH = 125
MARKER = "*"
COLLAPSED = "↑"
SEPARATOR = " "
PAD = " "

SYMBOL_PARAMS = frozenset({"marker", "collapsed", "separator", "pad"})


def check_line_length(line_length: object) -> int:
    """Return line_length if it is a positive integer, else raise ConfigurationError."""
    if isinstance(line_length, bool) or not isinstance(line_length, int):
        raise ConfigurationError(
            f"line_length must be an int, got {type(line_length).__name__}"
        )
    if line_length < 1:
        raise ConfigurationError(f"line_length must be >= 1, got {line_length}")
    return line_length


def check_symbol(name: str, value: object) -> str:
    """Return value if it is a single-character string, else raise ConfigurationError."""
    if not isinstance(value, str) or len(value) != 1:
        raise ConfigurationError(f"{name} must be a single character, got {value!r}")
    return value


def check_capacity(capacity: object) -> int | None:
    """Return capacity if it is None (unbounded) or an int >= 0."""
    if capacity is None:
        return None
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise ConfigurationError(
            f"Channel capacity must be an int or None, got {type(capacity).__name__}"
        )
    if capacity < 0:
        raise ConfigurationError(f"Channel capacity must be >= 0, got {capacity}")
    return capacity


def validate_params(params: Mapping[str, Any]) -> None:
    """Check every recognised stage parameter in params. Unknown names are ignored."""
    for name, value in params.items():
        if name == "line_length":
            check_line_length(value)
        elif name == "capacity":
            check_capacity(value)
        elif name in SYMBOL_PARAMS:
            check_symbol(name, value)


@dataclass(frozen=True, slots=True)
class FormatConfig:
    """The text-formatting parameters shared by the stages.

    Args:
        line_length: Width of every assembled record.
        marker: Value whose doubling gets collapsed.
        collapsed: Value emitted in place of a marker pair.
        separator: Value appended after each disassembled record.
        pad: Value used to fill a short final record.
    """

    line_length: int = DEFAULT_LINE_LENGTH
    marker: str = MARKER
    collapsed: str = COLLAPSED
    separator: str = SEPARATOR
    pad: str = PAD

    def __post_init__(self) -> None:
        validate_params(asdict(self))

    def params_for(self, stage_func: Callable[..., Any]) -> dict[str, Any]:
        """Return the subset of this config that stage_func accepts as keywords."""
        func = getattr(stage_func, "func", stage_func)
        accepted = inspect.signature(func).parameters
        return {name: value for name, value in asdict(self).items() if name in accepted}
