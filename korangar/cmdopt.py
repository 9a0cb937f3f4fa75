"""Matching of command-line options against a compact option pattern.

A pattern lists option names, each followed by the number of values it
takes in square brackets, for example ``"s[1]v[0]integrator[1]"``.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

__all__ = ["OptionMatch", "Param", "match_option", "get_option"]


@dataclass(frozen=True)
class OptionMatch:
    """The pattern entry an argument matched and its declared value count.

    ``arg_count`` is -1 when the entry carries no ``[n]`` suffix.
    """

    option: str
    arg_count: int

    @property
    def length(self) -> int:
        return len(self.option)


@dataclass(frozen=True)
class Param:
    """An option found on the command line.

    ``values`` starts at the option itself and runs to the end of the
    argument list; ``param_count`` is how many values the option takes.
    """

    values: tuple[str, ...]
    param_count: int

    @property
    def option(self) -> str:
        return self.values[0]

    @property
    def arguments(self) -> tuple[str, ...]:
        """The values that follow the option, up to its declared count."""
        return self.values[1 : 1 + self.param_count]


def _segments(pattern: str) -> Iterator[tuple[str, int]]:
    """Yield ``(name, count)`` pairs from a pattern string."""
    pos = 0
    size = len(pattern)
    while pos < size:
        bracket = pattern.find("[", pos)
        if bracket < 0:
            yield pattern[pos:], -1
            return
        count_char = pattern[bracket + 1 : bracket + 2]
        count = ord(count_char) - ord("0") if count_char else -ord("0")
        yield pattern[pos:bracket], count
        close = pattern.find("]", pos)
        if close < 0:
            return
        pos = close + 1


def match_option(arg: str, pattern: str) -> OptionMatch | None:
    """Return the first pattern entry that ``arg`` starts with, or None.

    One leading dash is ignored. Entries are tried in pattern order and
    compared as prefixes, so an earlier short name wins over a longer one.
    """
    if arg.startswith("-"):
        arg = arg[1:]
    for name, count in _segments(pattern):
        if arg.startswith(name):
            return OptionMatch(name, count)
    return None


def get_option(argv: Sequence[str], pattern: str, arg: str) -> Param | None:
    """Look up option ``arg`` in ``argv``, whose first item is the program name.

    Returns None when ``arg`` is not in ``pattern`` or does not appear on
    the command line.
    """
    option = match_option(arg, pattern)
    if option is None:
        return None
    for index, value in enumerate(argv[1:], start=1):
        if match_option(value, arg) is not None:
            return Param(tuple(argv[index:]), max(option.arg_count, 0))
    return None