from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from .base import ID_TYPE, Base
from ..db.utils import as_utc, dt_iso

if TYPE_CHECKING:
    from .score import ScoreEntry
    from .winning_entry import WinningEntry

DEFAULT_DONATION_PERCENTAGE = 10
"""Share of gross winnings donated when a participant has not made an election."""

PAYING_SUBSCRIPTION_STATUSES = ("active", "trialing")


class Charity(Base):
    """A charity participants can direct their prize donations to."""

    __tablename__ = "charities"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    supporters: Mapped[list["Participant"]] = relationship(back_populates="charity")

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Charity(id={self.id}, name='{self.name}')>"

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["Charity"]:
        return session.scalar(select(cls).where(cls.name == name))


class Participant(Base):
    """A member whose golf scores are entered into the monthly draw."""

    def __init__(
        self,
        email: str,
        full_name: Optional[str] = None,
        status: str = "active",
        role: str = "player",
        subscription_status: Optional[str] = None,
        subscription_plan: Optional[str] = None,
        subscription_period_end: Optional[datetime] = None,
        donation_percentage: Optional[int] = None,
        charity: Optional[Charity] = None,
        charity_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
    ):
        """Create a new :class:`Participant` record.

        Parameters
        ----------
        email : str
            Login and contact address; stored lower-cased.
        full_name : str, optional
            Display name used on winner exports.
        status : str, default: "active"
            Account standing, ``"active"`` or ``"suspended"``.
        role : str, default: "player"
            ``"player"`` or ``"admin"``. Admin accounts never enter draws.
        subscription_status : str, optional
            Billing status mirrored from the subscription provider
            (``"active"``, ``"trialing"``, ``"past_due"``, ``"cancelled"``).
        subscription_plan : str, optional
            ``"monthly"`` or ``"annual"``.
        subscription_period_end : datetime, optional
            End of the currently paid period; ``None`` means open-ended.
        donation_percentage : int, optional
            Standing charity election (0-100). ``None`` falls back to
            :data:`DEFAULT_DONATION_PERCENTAGE`.
        charity : Charity, optional
            Selected charity.
        charity_id : int, optional
            Selected charity primary key.
        created_at : datetime, optional
            Explicit creation timestamp.
        """

        self.email = email
        self.full_name = full_name
        self.status = status
        self.role = role
        self.subscription_status = subscription_status
        self.subscription_plan = subscription_plan
        self.subscription_period_end = subscription_period_end
        self.donation_percentage = donation_percentage
        if charity is not None:
            self.charity = charity
        if charity_id is not None:
            self.charity_id = charity_id
        if created_at is not None:
            self.created_at = created_at

    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="player")
    subscription_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    subscription_plan: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    subscription_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    donation_percentage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    charity_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("charities.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # relationships
    charity: Mapped[Optional[Charity]] = relationship(back_populates="supporters")
    scores: Mapped[list["ScoreEntry"]] = relationship(
        back_populates="participant", cascade="all, delete-orphan"
    )
    winning_entries: Mapped[list["WinningEntry"]] = relationship(
        back_populates="participant"
    )

    __table_args__ = (
        CheckConstraint("status IN ('active','suspended')", name="status_enum"),
        CheckConstraint(
            "donation_percentage IS NULL OR "
            "(donation_percentage >= 0 AND donation_percentage <= 100)",
            name="donation_percentage_range",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Participant(id={self.id}, email='{self.email}', status='{self.status}', "
            f"subscription_status='{self.subscription_status}')>"
        )

    @validates("email")
    def _normalize_email(self, _key: str, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("email must not be empty")
        return normalized

    @classmethod
    def get_by_email(cls, session: Session, email: str) -> Optional["Participant"]:
        """Retrieve a participant by email address."""

        return session.scalar(select(cls).where(cls.email == email.strip().lower()))

    @property
    def effective_donation_percentage(self) -> int:
        """The donation election applied to winnings."""
        if self.donation_percentage is None:
            return DEFAULT_DONATION_PERCENTAGE
        return self.donation_percentage

    def is_eligible(self, at: datetime) -> bool:
        """Whether the participant may win a draw whose scores lock at ``at``.

        Eligible participants are active (not suspended), are not admins, and
        hold a paid or trialing subscription that has not lapsed by ``at``.
        """
        if self.status != "active" or self.role == "admin":
            return False
        if self.subscription_status not in PAYING_SUBSCRIPTION_STATUSES:
            return False
        period_end = as_utc(self.subscription_period_end)
        if period_end is not None and self.subscription_plan != "annual":
            return period_end >= as_utc(at)
        return True

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "status": self.status,
            "subscription_status": self.subscription_status,
            "subscription_plan": self.subscription_plan,
            "subscription_period_end": dt_iso(self.subscription_period_end),
            "donation_percentage": self.effective_donation_percentage,
            "charity_id": self.charity_id,
        }
