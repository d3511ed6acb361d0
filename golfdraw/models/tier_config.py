"""Versioned prize configuration."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from ..draw.allocation import TierSettings

DEFAULT_CONTRIBUTION_CENTS = 500
DEFAULT_TIER_PERCENTAGES = (40, 35, 25)
DEFAULT_JACKPOT_CAP_CENTS = 25_000_000


class TierConfiguration(Base):
    """Prize settings in effect from ``created_at`` until the next version.

    Rows are append-only: changing the settings inserts a new row with the
    next ``version``, so every computed cycle can point at the exact values
    it used.
    """

    __tablename__ = "tier_configurations"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    contribution_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    tier5_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    tier4_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    tier3_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    jackpot_cap_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by_admin_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<TierConfiguration(version={self.version}, contribution_cents={self.contribution_cents}, "
            f"split={self.tier5_percent}/{self.tier4_percent}/{self.tier3_percent})>"
        )

    @classmethod
    def latest(cls, session: Session) -> Optional["TierConfiguration"]:
        return session.scalars(select(cls).order_by(cls.version.desc())).first()

    @classmethod
    def current(cls, session: Session) -> "TierSettings":
        """Return the settings in effect, falling back to the defaults."""
        from ..draw.allocation import TierSettings

        row = cls.latest(session)
        if row is None:
            tier5, tier4, tier3 = DEFAULT_TIER_PERCENTAGES
            return TierSettings(
                contribution_cents=DEFAULT_CONTRIBUTION_CENTS,
                tier5_percent=tier5,
                tier4_percent=tier4,
                tier3_percent=tier3,
                jackpot_cap_cents=DEFAULT_JACKPOT_CAP_CENTS,
                version=0,
            )
        return row.to_settings()

    @classmethod
    def publish_new_version(
        cls,
        session: Session,
        *,
        contribution_cents: int,
        tier5_percent: int,
        tier4_percent: int,
        tier3_percent: int,
        jackpot_cap_cents: int,
        admin_id: Optional[int] = None,
    ) -> "TierConfiguration":
        """Validate and append a new configuration version.

        Raises
        ------
        InvalidTierConfigurationError
            If the percentages do not sum to 100 or an amount is negative.
        """
        from ..draw.allocation import TierSettings

        current_version = session.scalar(select(func.max(cls.version))) or 0
        # Constructing the settings value runs the validation.
        TierSettings(
            contribution_cents=contribution_cents,
            tier5_percent=tier5_percent,
            tier4_percent=tier4_percent,
            tier3_percent=tier3_percent,
            jackpot_cap_cents=jackpot_cap_cents,
            version=current_version + 1,
        )
        row = cls(
            version=current_version + 1,
            contribution_cents=contribution_cents,
            tier5_percent=tier5_percent,
            tier4_percent=tier4_percent,
            tier3_percent=tier3_percent,
            jackpot_cap_cents=jackpot_cap_cents,
            created_by_admin_id=admin_id,
        )
        session.add(row)
        session.flush()
        return row

    def to_settings(self) -> "TierSettings":
        from ..draw.allocation import TierSettings

        return TierSettings(
            contribution_cents=self.contribution_cents,
            tier5_percent=self.tier5_percent,
            tier4_percent=self.tier4_percent,
            tier3_percent=self.tier3_percent,
            jackpot_cap_cents=self.jackpot_cap_cents,
            version=self.version,
        )
