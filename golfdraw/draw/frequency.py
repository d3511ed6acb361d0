"""Frequency analysis and winning combination selection."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from .errors import InsufficientDiversityError

RARE_COUNT = 3
COMMON_COUNT = 2
COMBINATION_SIZE = RARE_COUNT + COMMON_COUNT


@dataclass(frozen=True)
class WinningCombination:
    """Five distinct winning values tagged by how they were chosen.

    Attributes
    ----------
    rare : tuple[int, ...]
        The three least frequent values, in selection order.
    common : tuple[int, ...]
        The two most frequent remaining values, in selection order.
    """

    rare: tuple[int, ...]
    common: tuple[int, ...]

    @property
    def numbers(self) -> tuple[int, ...]:
        """All five values in ascending order."""
        return tuple(sorted(self.rare + self.common))

    def as_set(self) -> frozenset[int]:
        return frozenset(self.rare + self.common)


def count_frequencies(values: Iterable[int], range_min: int, range_max: int) -> Counter:
    """Count occurrences of each value within ``range_min``..``range_max``."""
    return Counter(v for v in values if range_min <= v <= range_max)


def select_winning_combination(
    values: Iterable[int], range_min: int, range_max: int
) -> WinningCombination:
    """Derive the winning combination from a multiset of score values.

    Values are ranked by ascending count (ties broken by ascending value) and
    the first three become the rare group. From the values that remain the
    two with the highest count (ties broken by descending value) become the
    common group. The result depends only on the input multiset and range.

    Parameters
    ----------
    values : Iterable[int]
        Every submitted score value; duplicates are significant.
    range_min, range_max : int
        Inclusive range; values outside it are ignored.

    Returns
    -------
    WinningCombination
        Three rare and two common values, all distinct.

    Raises
    ------
    InsufficientDiversityError
        If fewer than five distinct values fall within the range.
    """
    counts = count_frequencies(values, range_min, range_max)
    if len(counts) < COMBINATION_SIZE:
        raise InsufficientDiversityError(len(counts), range_min, range_max)

    by_rarity = sorted(counts.items(), key=lambda item: (item[1], item[0]))
    rare = tuple(value for value, _ in by_rarity[:RARE_COUNT])

    remaining = [item for item in counts.items() if item[0] not in rare]
    by_popularity = sorted(remaining, key=lambda item: (-item[1], -item[0]))
    common = tuple(value for value, _ in by_popularity[:COMMON_COUNT])

    return WinningCombination(rare=rare, common=common)


__all__ = [
    "COMBINATION_SIZE",
    "WinningCombination",
    "count_frequencies",
    "select_winning_combination",
]
