"""Match evaluation of participant score sets against a winning combination."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from .frequency import WinningCombination

MIN_QUALIFYING_MATCHES = 3


@dataclass(frozen=True)
class MatchResult:
    participant_id: int
    tier: int
    matched: tuple[int, ...]
    scores: tuple[int, ...]


def count_matches(scores: Iterable[int], combination: Iterable[int]) -> int:
    """Number of distinct values in ``scores`` that are in ``combination``."""
    return len(set(scores) & set(combination))


def classify_tier(match_count: int) -> Optional[int]:
    """Map a match count to tier 5, 4 or 3, or ``None`` below three matches."""
    if match_count >= 5:
        return 5
    if match_count >= MIN_QUALIFYING_MATCHES:
        return match_count
    return None


def evaluate_entries(
    entries: Mapping[int, Iterable[int]], combination: WinningCombination
) -> list[MatchResult]:
    """Classify every participant's score set.

    Only qualifying participants are returned, ordered by participant id so
    repeated evaluations produce identical output.
    """
    winning = combination.as_set()
    results: list[MatchResult] = []
    for participant_id in sorted(entries):
        scores = frozenset(entries[participant_id])
        matched = scores & winning
        tier = classify_tier(len(matched))
        if tier is None:
            continue
        results.append(
            MatchResult(
                participant_id=participant_id,
                tier=tier,
                matched=tuple(sorted(matched)),
                scores=tuple(sorted(scores)),
            )
        )
    return results


def winner_counts(results: Iterable[MatchResult]) -> dict[int, int]:
    """Count winners per tier, always including tiers 5, 4 and 3."""
    counts = {5: 0, 4: 0, 3: 0}
    for result in results:
        counts[result.tier] += 1
    return counts


__all__ = [
    "MatchResult",
    "classify_tier",
    "count_matches",
    "evaluate_entries",
    "winner_counts",
]
