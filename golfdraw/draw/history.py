"""Jackpot movement across draw cycles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import DrawCycle, DrawStatus


@dataclass(frozen=True)
class JackpotMovement:
    """Tier-5 figures of one computed cycle."""

    cycle_id: int
    label: str
    status: str
    rollover_in_cents: int
    tier5_pool_cents: int
    tier5_winners: int
    rollover_out_cents: int
    jackpot_cap_reached: bool
    cap_diversion_cents: int
    carry_out_cents: int

    @property
    def won(self) -> bool:
        return self.tier5_winners > 0

    def to_json(self) -> dict:
        return {
            "cycle_id": self.cycle_id,
            "label": self.label,
            "status": self.status,
            "rollover_in_cents": self.rollover_in_cents,
            "tier5_pool_cents": self.tier5_pool_cents,
            "tier5_winners": self.tier5_winners,
            "rollover_out_cents": self.rollover_out_cents,
            "jackpot_cap_reached": self.jackpot_cap_reached,
            "cap_diversion_cents": self.cap_diversion_cents,
            "carry_out_cents": self.carry_out_cents,
        }


@dataclass
class JackpotHistory:
    """Jackpot movements oldest first, plus what the next draw starts from.

    ``current_cents`` and ``current_carry_cents`` come from the newest
    published cycle only; a completed but unpublished cycle can still be
    reset, so its figures are shown but not carried.
    """

    movements: list[JackpotMovement] = field(default_factory=list)
    current_cents: int = 0
    current_carry_cents: int = 0
    as_of: Optional[str] = None

    def to_json(self) -> dict:
        return {
            "movements": [m.to_json() for m in self.movements],
            "current_cents": self.current_cents,
            "current_carry_cents": self.current_carry_cents,
            "as_of": self.as_of,
        }


def jackpot_history(session: Session, limit: Optional[int] = None) -> JackpotHistory:
    """Return tier-5 movements of completed and published cycles.

    Parameters
    ----------
    session : Session
        Active session.
    limit : Optional[int], default: None
        Keep only the newest ``limit`` cycles.
    """
    stmt = (
        select(DrawCycle)
        .where(DrawCycle.status.in_((DrawStatus.COMPLETED, DrawStatus.PUBLISHED)))
        .order_by(DrawCycle.period_start.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    cycles = list(session.scalars(stmt))

    history = JackpotHistory()
    for cycle in reversed(cycles):
        history.movements.append(
            JackpotMovement(
                cycle_id=cycle.id,
                label=cycle.label,
                status=cycle.status.value,
                rollover_in_cents=cycle.rollover_in_cents,
                tier5_pool_cents=cycle.tier5_pool_cents,
                tier5_winners=cycle.tier5_winners,
                rollover_out_cents=cycle.rollover_out_cents,
                jackpot_cap_reached=cycle.jackpot_cap_reached,
                cap_diversion_cents=cycle.cap_diversion_cents,
                carry_out_cents=cycle.carry_out_cents,
            )
        )

    latest = DrawCycle.latest_published(session)
    if latest is not None:
        history.current_cents = latest.rollover_out_cents
        history.current_carry_cents = latest.carry_out_cents
        history.as_of = latest.label
    return history


__all__ = ["JackpotHistory", "JackpotMovement", "jackpot_history"]
