"""Winner verification and payout ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Admin, AuditLog, DrawCycle, DrawStatus, LedgerStatus, WinningEntry
from .errors import InvalidTransitionError, NotFoundError, PreconditionError
from .store import store_errors

logger = logging.getLogger(__name__)

MANUAL_PAYMENT_REFERENCE = "MANUAL_PAYMENT"

LEDGER_TRANSITIONS: dict[LedgerStatus, tuple[LedgerStatus, ...]] = {
    LedgerStatus.PENDING: (LedgerStatus.VERIFIED, LedgerStatus.PAID),
    LedgerStatus.VERIFIED: (LedgerStatus.PAID,),
    LedgerStatus.PAID: (),
}


def ensure_ledger_transition(current: LedgerStatus, target: LedgerStatus) -> None:
    """Raise :class:`InvalidTransitionError` unless ``current -> target`` moves forward."""
    if target not in LEDGER_TRANSITIONS[LedgerStatus(current)]:
        raise InvalidTransitionError(
            f"Winning entry cannot move from {LedgerStatus(current).value} "
            f"to {LedgerStatus(target).value}",
            current=LedgerStatus(current).value,
            action=LedgerStatus(target).value,
        )


def _load_entry(session: Session, entry_id: int) -> WinningEntry:
    entry = session.get(WinningEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"Winning entry {entry_id} does not exist")
    return entry


def _require_operator(session: Session, operator_id: Optional[int]) -> Admin:
    if operator_id is None:
        raise PreconditionError("An acting operator is required")
    admin = session.get(Admin, operator_id)
    if admin is None:
        raise NotFoundError(f"Operator {operator_id} does not exist")
    return admin


def _require_published(entry: WinningEntry) -> None:
    if entry.cycle.status != DrawStatus.PUBLISHED:
        raise InvalidTransitionError(
            f"Winners of {entry.cycle.label} cannot be actioned before the draw is published",
            current=entry.cycle.status.value,
        )


def verify_winner(
    session: Session,
    entry_id: int,
    operator_id: int,
    *,
    at: Optional[datetime] = None,
) -> WinningEntry:
    """Mark a pending winning entry as verified by ``operator_id``.

    Raises
    ------
    NotFoundError
        If the entry or operator does not exist.
    InvalidTransitionError
        If the draw is unpublished or the entry is no longer pending.
    ConcurrencyConflictError
        If the entry changed since it was loaded.
    """
    now = at or datetime.now(timezone.utc)
    with store_errors("verify winner"):
        entry = _load_entry(session, entry_id)
        admin = _require_operator(session, operator_id)
        _require_published(entry)
        ensure_ledger_transition(entry.status, LedgerStatus.VERIFIED)

        entry.status = LedgerStatus.VERIFIED
        entry.verified_by_admin_id = admin.id
        entry.verified_at = now
        AuditLog.record(
            session,
            "winner_verified",
            WinningEntry.__tablename__,
            entry.id,
            admin_id=admin.id,
            details={"cycle": entry.cycle.label, "tier": entry.match_tier},
            occurred_at=now,
        )
        session.flush()
    logger.info(f"Winning entry {entry.id} verified by admin {admin.id}")
    return entry


def mark_paid(
    session: Session,
    entry_id: int,
    operator_id: int,
    reference: Optional[str] = None,
    *,
    at: Optional[datetime] = None,
) -> WinningEntry:
    """Record the external payout of a winning entry.

    ``reference`` defaults to :data:`MANUAL_PAYMENT_REFERENCE`. Pending
    entries may be paid directly; paid entries are final.
    """
    reference = (reference or "").strip() or MANUAL_PAYMENT_REFERENCE
    now = at or datetime.now(timezone.utc)
    with store_errors("mark winner paid"):
        entry = _load_entry(session, entry_id)
        admin = _require_operator(session, operator_id)
        _require_published(entry)
        ensure_ledger_transition(entry.status, LedgerStatus.PAID)

        entry.status = LedgerStatus.PAID
        entry.payment_reference = reference
        entry.paid_by_admin_id = admin.id
        entry.paid_at = now
        AuditLog.record(
            session,
            "winner_paid",
            WinningEntry.__tablename__,
            entry.id,
            admin_id=admin.id,
            details={
                "cycle": entry.cycle.label,
                "net_cents": entry.net_cents,
                "reference": reference,
            },
            occurred_at=now,
        )
        session.flush()
    logger.info(f"Winning entry {entry.id} paid by admin {admin.id} ({reference})")
    return entry


@dataclass
class BatchPayoutResult:
    """Outcome of :func:`mark_paid_batch`.

    Attributes
    ----------
    settled : list[WinningEntry]
        Entries recorded as paid, in request order.
    failed : dict[int, str]
        Reason per entry id that could not be paid.
    """

    settled: list[WinningEntry] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.settled) + len(self.failed)

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def settled_net_cents(self) -> int:
        return sum(e.net_cents for e in self.settled)


def mark_paid_batch(
    session: Session,
    entry_ids: Iterable[int],
    operator_id: int,
    reference: Optional[str] = None,
    *,
    at: Optional[datetime] = None,
) -> BatchPayoutResult:
    """Record one external payout run covering several winning entries.

    Each entry is checked before anything is written for it, so an entry that
    is missing, unpublished or already paid is reported in
    :attr:`BatchPayoutResult.failed` and the rest still settle. Duplicate ids
    are processed once.

    Raises
    ------
    PreconditionError, NotFoundError
        If the operator is missing; nothing is written.
    ConcurrencyConflictError, UpstreamUnavailableError
        Data store failures abort the whole batch; the caller rolls back.
    """
    now = at or datetime.now(timezone.utc)
    with store_errors("mark winners paid"):
        _require_operator(session, operator_id)

    result = BatchPayoutResult()
    for entry_id in dict.fromkeys(entry_ids):
        try:
            entry = mark_paid(session, entry_id, operator_id, reference, at=now)
        except (NotFoundError, InvalidTransitionError) as e:
            result.failed[entry_id] = str(e)
            continue
        result.settled.append(entry)

    if result.failed:
        logger.warning(
            f"Payout batch settled {len(result.settled)} of {result.total} entries; "
            f"failed: {sorted(result.failed)}"
        )
    else:
        logger.info(f"Payout batch settled {len(result.settled)} entries")
    return result


@dataclass
class PayableCycle:
    """Verified, unpaid winners of one published cycle."""

    cycle_id: int
    label: str
    entries: list[WinningEntry] = field(default_factory=list)

    @property
    def total_net_cents(self) -> int:
        return sum(e.net_cents for e in self.entries)

    @property
    def total_donation_cents(self) -> int:
        return sum(e.donation_cents for e in self.entries)


def payable_winners_by_cycle(session: Session) -> list[PayableCycle]:
    """Group verified, unpaid winners of published cycles, newest cycle first."""
    stmt = (
        select(WinningEntry)
        .join(WinningEntry.cycle)
        .where(
            DrawCycle.status == DrawStatus.PUBLISHED,
            WinningEntry.status == LedgerStatus.VERIFIED,
        )
        .order_by(DrawCycle.period_start.desc(), WinningEntry.id)
    )
    groups: dict[int, PayableCycle] = {}
    for entry in session.scalars(stmt):
        group = groups.get(entry.cycle_id)
        if group is None:
            group = groups[entry.cycle_id] = PayableCycle(entry.cycle_id, entry.cycle.label)
        group.entries.append(entry)
    return list(groups.values())


__all__ = [
    "BatchPayoutResult",
    "LEDGER_TRANSITIONS",
    "MANUAL_PAYMENT_REFERENCE",
    "PayableCycle",
    "ensure_ledger_transition",
    "mark_paid",
    "mark_paid_batch",
    "payable_winners_by_cycle",
    "verify_winner",
]
