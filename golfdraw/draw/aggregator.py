"""Collect score data for a draw as of a cutoff instant."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..accounts.directory import AccountDirectory, ParticipantStanding
from ..models.score import ENTRIES_PER_PARTICIPANT, SCORE_MAX, SCORE_MIN, ScoreEntry
from .errors import InvalidScoreRangeError, NoScoreDataError


@dataclass(frozen=True)
class ScorePool:
    """Score data feeding one draw computation.

    Attributes
    ----------
    values : tuple[int, ...]
        Every in-range score value of every participant; used for frequency
        statistics only.
    entries : Mapping[int, frozenset[int]]
        Deduplicated in-range score sets of eligible participants, keyed by
        participant id.
    standings : Mapping[int, ParticipantStanding]
        Standing of each participant that contributed scores.
    participant_count : int
        Participants with at least one score before the cutoff.
    eligible_count : int
        Eligible subscribers counted toward the prize pool.
    """

    values: tuple[int, ...]
    entries: Mapping[int, frozenset[int]]
    standings: Mapping[int, ParticipantStanding] = field(default_factory=dict)
    participant_count: int = 0
    eligible_count: int = 0


def validate_range(range_min: int, range_max: int) -> None:
    if not (SCORE_MIN <= range_min <= range_max <= SCORE_MAX):
        raise InvalidScoreRangeError(
            f"Score range must satisfy {SCORE_MIN} <= min <= max <= {SCORE_MAX}, "
            f"got {range_min}-{range_max}"
        )


def load_score_sets(session: Session, cutoff: datetime) -> dict[int, list[int]]:
    """Return each participant's distinct current values at ``cutoff``, newest first."""
    stmt = (
        select(ScoreEntry.participant_id, ScoreEntry.value)
        .where(*ScoreEntry.active_at(cutoff))
        .order_by(
            ScoreEntry.participant_id,
            ScoreEntry.entered_at.desc(),
            ScoreEntry.id.desc(),
        )
    )
    sets: dict[int, list[int]] = {}
    for participant_id, value in session.execute(stmt):
        values = sets.setdefault(participant_id, [])
        if value not in values and len(values) < ENTRIES_PER_PARTICIPANT:
            values.append(value)
    return sets


def aggregate_scores(
    session: Session,
    cutoff: datetime,
    range_min: int,
    range_max: int,
    directory: AccountDirectory,
) -> ScorePool:
    """Build the :class:`ScorePool` for a draw.

    Raises
    ------
    InvalidScoreRangeError
        If the range is empty or outside the score bounds.
    NoScoreDataError
        If nobody had submitted a score by ``cutoff``.
    """
    validate_range(range_min, range_max)

    sets = load_score_sets(session, cutoff)
    if not sets:
        raise NoScoreDataError(f"No scores were submitted before {cutoff.isoformat()}")

    standings = directory.standings(sets.keys(), cutoff)

    values: list[int] = []
    entries: dict[int, frozenset[int]] = {}
    for participant_id in sorted(sets):
        in_range = [v for v in sets[participant_id] if range_min <= v <= range_max]
        values.extend(in_range)
        standing = standings.get(participant_id)
        if standing is not None and standing.eligible and in_range:
            entries[participant_id] = frozenset(in_range)

    return ScorePool(
        values=tuple(values),
        entries=entries,
        standings=standings,
        participant_count=len(sets),
        eligible_count=directory.eligible_subscriber_count(cutoff),
    )


__all__ = ["ScorePool", "aggregate_scores", "load_score_sets", "validate_range"]
