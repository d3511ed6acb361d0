"""Database model for monthly draw cycles."""

from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .winning_entry import WinningEntry

TIERS = (5, 4, 3)
"""Match tiers, highest first."""


class DrawStatus(str, enum.Enum):
    """Lifecycle states of a :class:`DrawCycle`."""

    OPEN = "open"
    COMPLETED = "completed"
    PUBLISHED = "published"


class DrawCycle(Base):
    """One monthly draw with its winning combination and prize figures.

    Figures are only written by the draw engine. Once the cycle is
    ``published`` they are authoritative and never change again.
    """

    __tablename__ = "draw_cycles"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    label: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    """Human readable month label, e.g. ``"October 2026"``."""

    period_start: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    """First day of the month the cycle covers."""

    status: Mapped[DrawStatus] = mapped_column(
        Enum(
            DrawStatus,
            name="draw_status",
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=DrawStatus.OPEN,
    )
    """Current lifecycle state."""

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    """Row version used for optimistic concurrency."""

    range_min: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    range_max: Mapped[int] = mapped_column(Integer, nullable=False, default=45)
    """Score value range used by the last run."""

    winning_numbers: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    """The five winning values in ascending order."""

    rare_numbers: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    """The three least common values of the combination."""

    common_numbers: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    """The two most common values of the combination."""

    participant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Participants whose scores fed the frequency pool."""

    eligible_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Eligible subscribers counted toward the prize pool."""

    cutoff_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    """Instant at which scores were read for the last run."""

    # Configuration snapshot taken at computation time.
    tier_config_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    contribution_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tier5_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tier4_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    tier3_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    jackpot_cap_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    base_pool_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rollover_in_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    carry_in_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Previous cycle carry, split across the tier-4 and tier-3 pools."""

    cap_diversion_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    jackpot_cap_reached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    tier5_pool_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier4_pool_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier3_pool_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier5_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier4_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier3_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier5_payout_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier4_payout_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tier3_payout_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    remainder_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Undistributable cents from per-winner division."""

    rollover_out_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Unclaimed tier-5 pool carried into the next jackpot; never above the cap."""

    carry_out_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Unclaimed tier-4/3 pools plus the remainder, carried into the next cycle."""

    drawn_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    winning_entries: Mapped[list["WinningEntry"]] = relationship(
        back_populates="cycle",
        cascade="all, delete-orphan",
        order_by="WinningEntry.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        # At most one cycle accepts entries at a time.
        Index(
            "uq_draw_cycles_single_open",
            "status",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
        Index("ix_draw_cycles_status", "status"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawCycle(id={id}, label={label}, status={status}, version={version})>".format(
            id=self.id,
            label=self.label,
            status=self.status.value if self.status else None,
            version=self.version,
        )

    # -------- tier accessors --------
    def tier_pool_cents(self, tier: int) -> int:
        return getattr(self, f"tier{_check_tier(tier)}_pool_cents")

    def tier_winners(self, tier: int) -> int:
        return getattr(self, f"tier{_check_tier(tier)}_winners")

    def tier_payout_cents(self, tier: int) -> int:
        return getattr(self, f"tier{_check_tier(tier)}_payout_cents")

    def set_tier_figures(self, tier: int, *, pool: int, winners: int, payout: int) -> None:
        tier = _check_tier(tier)
        setattr(self, f"tier{tier}_pool_cents", pool)
        setattr(self, f"tier{tier}_winners", winners)
        setattr(self, f"tier{tier}_payout_cents", payout)

    @property
    def total_pool_cents(self) -> int:
        """Base pool plus everything carried in from the previous cycle."""
        return self.base_pool_cents + self.rollover_in_cents + self.carry_in_cents

    def clear_results(self) -> None:
        """Forget the combination and every computed figure."""
        self.winning_numbers = None
        self.rare_numbers = None
        self.common_numbers = None
        self.participant_count = 0
        self.eligible_count = 0
        self.cutoff_at = None
        self.tier_config_version = None
        self.contribution_cents = None
        self.tier5_percent = None
        self.tier4_percent = None
        self.tier3_percent = None
        self.jackpot_cap_cents = None
        self.base_pool_cents = 0
        self.rollover_in_cents = 0
        self.carry_in_cents = 0
        self.cap_diversion_cents = 0
        self.jackpot_cap_reached = False
        for tier in TIERS:
            self.set_tier_figures(tier, pool=0, winners=0, payout=0)
        self.remainder_cents = 0
        self.rollover_out_cents = 0
        self.carry_out_cents = 0
        self.drawn_at = None

    # -------- lookups --------
    @classmethod
    def get_by_label(cls, session: Session, label: str) -> Optional["DrawCycle"]:
        return session.scalar(select(cls).where(cls.label == label))

    @classmethod
    def get_by_period(cls, session: Session, period_start: date) -> Optional["DrawCycle"]:
        return session.scalar(select(cls).where(cls.period_start == period_start))

    @classmethod
    def open_cycle(cls, session: Session) -> Optional["DrawCycle"]:
        """Return the cycle currently accepting entries, if any."""
        return session.scalar(select(cls).where(cls.status == DrawStatus.OPEN))

    @classmethod
    def current(cls, session: Session) -> Optional["DrawCycle"]:
        """Return the most recent cycle that has not been published yet."""
        stmt = (
            select(cls)
            .where(cls.status != DrawStatus.PUBLISHED)
            .order_by(cls.period_start.desc())
        )
        return session.scalars(stmt).first()

    @classmethod
    def latest_published(
        cls, session: Session, before: Optional[date] = None
    ) -> Optional["DrawCycle"]:
        """Return the newest published cycle, optionally strictly before ``before``."""
        stmt = select(cls).where(cls.status == DrawStatus.PUBLISHED)
        if before is not None:
            stmt = stmt.where(cls.period_start < before)
        return session.scalars(stmt.order_by(cls.period_start.desc())).first()

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "status": self.status.value if self.status else None,
            "version": self.version,
            "range": {"min": self.range_min, "max": self.range_max},
            "winning_numbers": self.winning_numbers,
            "rare_numbers": self.rare_numbers,
            "common_numbers": self.common_numbers,
            "participant_count": self.participant_count,
            "eligible_count": self.eligible_count,
            "base_pool_cents": self.base_pool_cents,
            "rollover_in_cents": self.rollover_in_cents,
            "carry_in_cents": self.carry_in_cents,
            "jackpot_cap_reached": self.jackpot_cap_reached,
            "cap_diversion_cents": self.cap_diversion_cents,
            "tiers": {
                str(tier): {
                    "pool_cents": self.tier_pool_cents(tier),
                    "winners": self.tier_winners(tier),
                    "payout_cents": self.tier_payout_cents(tier),
                }
                for tier in TIERS
            },
            "remainder_cents": self.remainder_cents,
            "rollover_out_cents": self.rollover_out_cents,
            "carry_out_cents": self.carry_out_cents,
            "drawn_at": dt_iso(self.drawn_at),
            "published_at": dt_iso(self.published_at),
        }


def _check_tier(tier: int) -> int:
    if tier not in TIERS:
        raise ValueError(f"tier must be one of {TIERS}, got {tier!r}")
    return tier


__all__ = ["DrawCycle", "DrawStatus", "TIERS"]
