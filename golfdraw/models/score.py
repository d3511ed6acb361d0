"""Score entries submitted by participants."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, or_, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .participant import Participant

SCORE_MIN = 1
SCORE_MAX = 45
ENTRIES_PER_PARTICIPANT = 5


class ScoreEntry(Base):
    """A single Stableford score held by a participant.

    Entries are never edited. A newer entry *supersedes* an older one by
    stamping ``superseded_at``; the participant's set at any instant is the
    entries entered before it and not yet superseded at it.
    """

    __tablename__ = "score_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    participant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
    )
    """Owner of the score."""

    value: Mapped[int] = mapped_column(Integer, nullable=False)
    """Score value within ``SCORE_MIN``..``SCORE_MAX``."""

    played_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    """Date of the round the score came from."""

    label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Free-form provenance, e.g. the competition name."""

    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """When the score was submitted."""

    superseded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """When a later entry replaced this one; ``None`` while current."""

    participant: Mapped["Participant"] = relationship(back_populates="scores")

    __table_args__ = (
        Index("ix_score_entries_participant_entered", "participant_id", "entered_at"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<ScoreEntry(id={id}, participant_id={pid}, value={value})>".format(
            id=self.id, pid=self.participant_id, value=self.value
        )

    @classmethod
    def active_at(cls, as_of: datetime):
        """SQL criteria selecting entries that were current at ``as_of``."""
        return (
            cls.entered_at <= as_of,
            or_(cls.superseded_at.is_(None), cls.superseded_at > as_of),
        )

    @classmethod
    def record(
        cls,
        session: Session,
        participant: "Participant",
        value: int,
        *,
        played_on: Optional[date] = None,
        label: Optional[str] = None,
        entered_at: Optional[datetime] = None,
    ) -> "ScoreEntry":
        """Submit a new score for ``participant``.

        An active entry with the same value is superseded so the participant
        never holds duplicate values, and when the participant would hold more
        than :data:`ENTRIES_PER_PARTICIPANT` entries the oldest is superseded.

        Raises
        ------
        ValueError
            If ``value`` is outside ``SCORE_MIN``..``SCORE_MAX`` or the
            participant is not persisted.
        """
        if participant.id is None:
            raise ValueError("Participant must be persisted before recording scores")
        if not isinstance(value, int) or not SCORE_MIN <= value <= SCORE_MAX:
            raise ValueError(f"score must be an integer between {SCORE_MIN} and {SCORE_MAX}")

        now = entered_at or datetime.now(timezone.utc)
        current = list(
            session.scalars(
                select(cls)
                .where(cls.participant_id == participant.id, cls.superseded_at.is_(None))
                .order_by(cls.entered_at.desc(), cls.id.desc())
            ).all()
        )

        kept = []
        for entry in current:
            if entry.value == value:
                entry.superseded_at = now
            else:
                kept.append(entry)
        for entry in kept[ENTRIES_PER_PARTICIPANT - 1 :]:
            entry.superseded_at = now

        entry = cls(
            participant_id=participant.id,
            value=value,
            played_on=played_on,
            label=label,
            entered_at=now,
        )
        session.add(entry)
        session.flush()
        return entry

    @classmethod
    def current_values(
        cls, session: Session, participant_id: int, as_of: datetime
    ) -> list[int]:
        """Return the participant's distinct score values current at ``as_of``.

        Values are ordered newest first and capped at
        :data:`ENTRIES_PER_PARTICIPANT`.
        """
        stmt = (
            select(cls.value)
            .where(cls.participant_id == participant_id, *cls.active_at(as_of))
            .order_by(cls.entered_at.desc(), cls.id.desc())
        )
        values: list[int] = []
        for value in session.scalars(stmt):
            if value not in values:
                values.append(value)
            if len(values) == ENTRIES_PER_PARTICIPANT:
                break
        return values
