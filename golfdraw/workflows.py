from datetime import date, datetime, timezone
from typing import IO, TYPE_CHECKING, Iterable, Optional

from sqlalchemy.orm import Session

from .draw.engine import DrawEngine, DrawOutcome, DrawPreview, PublishOutcome
from .draw.export import WINNER_AUDIT_FIELDS, write_winners_csv
from .draw.history import JackpotHistory
from .draw.ledger import BatchPayoutResult, PayableCycle, payable_winners_by_cycle
from .draw.schedule import resolve_range_preset
from .draw.store import store_errors
from .models import AuditLog, DrawCycle, Participant, ScoreEntry, TierConfiguration, WinningEntry

if TYPE_CHECKING:
    from .accounts.directory import AccountDirectory


def _engine(session: Session, directory: Optional["AccountDirectory"]) -> DrawEngine:
    return DrawEngine(session, directory=directory)


def _range(
    range_min: Optional[int], range_max: Optional[int], preset: Optional[str]
) -> tuple[int, int]:
    if preset is not None:
        if range_min is not None or range_max is not None:
            raise ValueError("Pass either a range preset or explicit bounds, not both.")
        return resolve_range_preset(preset)
    return (range_min if range_min is not None else 1, range_max if range_max is not None else 45)


def record_score(
    session: Session,
    participant: Participant,
    value: int,
    played_on: Optional[date] = None,
    label: Optional[str] = None,
) -> ScoreEntry:
    """Submit a score for ``participant`` and return the new entry.

    Older entries are superseded as described in :meth:`ScoreEntry.record`.
    """
    with store_errors("record score"):
        return ScoreEntry.record(
            session, participant, value, played_on=played_on, label=label
        )


def simulate_draw(
    session: Session,
    range_min: Optional[int] = None,
    range_max: Optional[int] = None,
    preset: Optional[str] = None,
    directory: Optional["AccountDirectory"] = None,
) -> DrawPreview:
    """Preview the open draw under a score range without persisting anything.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    range_min, range_max : Optional[int]
        Inclusive range bounds; default to the full 1-45 range.
    preset : Optional[str]
        Name of a range preset (``"full"``, ``"common"``, ``"typical"``,
        ``"conservative"``, ``"narrow"``) used instead of explicit bounds.
    directory : Optional[AccountDirectory]
        Source of subscriber standing; defaults to the local database.

    Returns
    -------
    DrawPreview
        The projected combination and tier figures.
    """
    lo, hi = _range(range_min, range_max, preset)
    return _engine(session, directory).simulate(lo, hi)


def run_draw(
    session: Session,
    cycle: Optional[DrawCycle] = None,
    range_min: Optional[int] = None,
    range_max: Optional[int] = None,
    preset: Optional[str] = None,
    operator_id: Optional[int] = None,
    directory: Optional["AccountDirectory"] = None,
    expected_version: Optional[int] = None,
) -> DrawOutcome:
    """Run and persist the draw for ``cycle`` (or the current cycle).

    ``expected_version`` is the cycle version the operator last saw, e.g. on
    a previous request; when it no longer matches, the run is rejected with
    :class:`ConcurrencyConflictError` instead of overwriting the newer state.
    """
    lo, hi = _range(range_min, range_max, preset)
    return _engine(session, directory).run(
        cycle.id if cycle is not None else None,
        lo,
        hi,
        expected_version=expected_version,
        operator_id=operator_id,
    )


def publish_draw(
    session: Session,
    cycle: DrawCycle,
    operator_id: Optional[int] = None,
    expected_version: Optional[int] = None,
) -> PublishOutcome:
    """Publish ``cycle`` and open the next month's cycle.

    A stale ``expected_version`` is rejected; see :func:`run_draw`.
    """
    if cycle.id is None:
        raise ValueError("Draw cycle must be persisted before publishing")
    return DrawEngine(session).publish(
        cycle.id, expected_version=expected_version, operator_id=operator_id
    )


def reset_draw(
    session: Session,
    cycle: DrawCycle,
    operator_id: Optional[int] = None,
    expected_version: Optional[int] = None,
) -> DrawCycle:
    """Discard the results of a completed, unpublished cycle."""
    if cycle.id is None:
        raise ValueError("Draw cycle must be persisted before resetting")
    return DrawEngine(session).reset(
        cycle.id, expected_version=expected_version, operator_id=operator_id
    )


def export_winners(session: Session, cycle: DrawCycle, fp: Optional[IO[str]] = None) -> list[dict]:
    """Return the winner rows of ``cycle``, also writing them as CSV to ``fp`` if given."""
    rows = DrawEngine(session).export_winners(cycle.id)
    if fp is not None:
        write_winners_csv(rows, fp)
    return rows


def verify_winner(session: Session, entry: WinningEntry, operator_id: int) -> WinningEntry:
    return DrawEngine(session).verify_winner(entry.id, operator_id)


def mark_winner_paid(
    session: Session,
    entry: WinningEntry,
    operator_id: int,
    reference: Optional[str] = None,
) -> WinningEntry:
    return DrawEngine(session).mark_paid(entry.id, operator_id, reference)


def mark_winners_paid(
    session: Session,
    entry_ids: Iterable[int],
    operator_id: int,
    reference: Optional[str] = None,
) -> BatchPayoutResult:
    """Record one payout run; entries that cannot be paid are reported, not raised."""
    return DrawEngine(session).mark_paid_batch(entry_ids, operator_id, reference)


def list_payable_winners(session: Session) -> list[PayableCycle]:
    return payable_winners_by_cycle(session)


def jackpot_history(session: Session, limit: Optional[int] = None) -> JackpotHistory:
    return DrawEngine(session).jackpot_history(limit)


def winner_audit_report(
    session: Session,
    participant_id: Optional[int] = None,
    fp: Optional[IO[str]] = None,
) -> list[dict]:
    """Return winners of every cycle, also writing them as CSV to ``fp`` if given."""
    rows = DrawEngine(session).winner_audit_report(participant_id)
    if fp is not None:
        write_winners_csv(rows, fp, WINNER_AUDIT_FIELDS)
    return rows


def update_tier_configuration(
    session: Session,
    contribution_cents: int,
    tier5_percent: int,
    tier4_percent: int,
    tier3_percent: int,
    jackpot_cap_cents: int,
    operator_id: Optional[int] = None,
) -> TierConfiguration:
    """Append a new prize configuration version.

    Cycles already computed keep the snapshot they were computed with.

    Raises
    ------
    InvalidTierConfigurationError
        If the percentages do not sum to 100 or an amount is invalid.
    """
    with store_errors("update tier configuration"):
        row = TierConfiguration.publish_new_version(
            session,
            contribution_cents=contribution_cents,
            tier5_percent=tier5_percent,
            tier4_percent=tier4_percent,
            tier3_percent=tier3_percent,
            jackpot_cap_cents=jackpot_cap_cents,
            admin_id=operator_id,
        )
        AuditLog.record(
            session,
            "settings_updated",
            TierConfiguration.__tablename__,
            row.id,
            admin_id=operator_id,
            details={
                "version": row.version,
                "contribution_cents": contribution_cents,
                "split": [tier5_percent, tier4_percent, tier3_percent],
                "jackpot_cap_cents": jackpot_cap_cents,
            },
            occurred_at=datetime.now(timezone.utc),
        )
        session.flush()
    return row
