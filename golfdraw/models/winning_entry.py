"""Database model for the winner verification and payout ledger."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .admin import Admin
    from .cycle import DrawCycle
    from .participant import Charity, Participant


class LedgerStatus(str, enum.Enum):
    """Verification and payout state of a :class:`WinningEntry`."""

    PENDING = "pending"
    VERIFIED = "verified"
    PAID = "paid"


class WinningEntry(Base):
    """A participant's qualifying result in one cycle.

    Rows are created when a cycle is run and replaced wholesale if the cycle
    is run again before publication. After publication the row only moves
    forward through :class:`LedgerStatus`.
    """

    __tablename__ = "winning_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    cycle_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draw_cycles.id", ondelete="CASCADE"), nullable=False
    )
    participant_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("participants.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    match_tier: Mapped[int] = mapped_column(Integer, nullable=False)
    """Number of matched values: 3, 4 or 5."""

    scores: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    """The participant's score set used for the cycle."""

    matched_numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    """Values shared with the winning combination."""

    gross_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    """Per-winner share of the tier pool."""

    donation_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    """Donation election copied from the participant at run time."""

    donation_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    net_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    charity_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("charities.id", ondelete="SET NULL"), nullable=True
    )
    """Charity receiving the donation, copied at run time."""

    status: Mapped[LedgerStatus] = mapped_column(
        Enum(
            LedgerStatus,
            name="ledger_status",
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=LedgerStatus.PENDING,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    """Row version used for optimistic concurrency."""

    verified_by_admin_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by_admin_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    cycle: Mapped["DrawCycle"] = relationship(back_populates="winning_entries")
    participant: Mapped["Participant"] = relationship(back_populates="winning_entries")
    charity: Mapped[Optional["Charity"]] = relationship()
    verified_by: Mapped[Optional["Admin"]] = relationship(foreign_keys=[verified_by_admin_id])
    paid_by: Mapped[Optional["Admin"]] = relationship(foreign_keys=[paid_by_admin_id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("cycle_id", "participant_id", name="uq_winning_entry_per_cycle"),
        CheckConstraint("match_tier IN (3, 4, 5)", name="match_tier_enum"),
        CheckConstraint("gross_cents = donation_cents + net_cents", name="net_balance"),
        Index("ix_winning_entries_cycle_tier", "cycle_id", "match_tier"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            "<WinningEntry(id={id}, cycle_id={cycle}, participant_id={pid}, "
            "tier={tier}, status={status})>"
        ).format(
            id=self.id,
            cycle=self.cycle_id,
            pid=self.participant_id,
            tier=self.match_tier,
            status=self.status.value if self.status else None,
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "participant_id": self.participant_id,
            "match_tier": self.match_tier,
            "scores": self.scores,
            "matched_numbers": self.matched_numbers,
            "gross_cents": self.gross_cents,
            "donation_percentage": self.donation_percentage,
            "donation_cents": self.donation_cents,
            "net_cents": self.net_cents,
            "charity_id": self.charity_id,
            "status": self.status.value if self.status else None,
            "verified_by_admin_id": self.verified_by_admin_id,
            "verified_at": dt_iso(self.verified_at),
            "paid_by_admin_id": self.paid_by_admin_id,
            "paid_at": dt_iso(self.paid_at),
            "payment_reference": self.payment_reference,
        }


__all__ = ["LedgerStatus", "WinningEntry"]
