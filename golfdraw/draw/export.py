"""Winner export rows and their delimited-text rendering."""

from __future__ import annotations

import csv
from typing import IO, Iterable, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..models import DrawCycle, WinningEntry

WINNER_EXPORT_FIELDS = (
    "Name",
    "Email",
    "Match Tier",
    "Gross Prize",
    "Charity Name",
    "Charity Donation",
    "Net Payout",
    "Verification Status",
    "Payment Reference",
)


def format_cents(cents: int) -> str:
    """Render cents as a decimal amount, e.g. ``12345 -> "123.45"``."""
    sign = "-" if cents < 0 else ""
    units, rest = divmod(abs(cents), 100)
    return f"{sign}{units}.{rest:02d}"


def winner_rows(session: Session, cycle_id: int) -> list[dict[str, str]]:
    """Return one export row per winning entry of ``cycle_id``, highest tier first."""
    stmt = (
        select(WinningEntry)
        .where(WinningEntry.cycle_id == cycle_id)
        .options(selectinload(WinningEntry.participant), selectinload(WinningEntry.charity))
        .order_by(WinningEntry.match_tier.desc(), WinningEntry.id)
    )
    rows = []
    for entry in session.scalars(stmt):
        participant = entry.participant
        rows.append(
            {
                "Name": participant.full_name or "",
                "Email": participant.email,
                "Match Tier": f"{entry.match_tier}-Match",
                "Gross Prize": format_cents(entry.gross_cents),
                "Charity Name": entry.charity.name if entry.charity else "",
                "Charity Donation": format_cents(entry.donation_cents),
                "Net Payout": format_cents(entry.net_cents),
                "Verification Status": entry.status.value,
                "Payment Reference": entry.payment_reference or "",
            }
        )
    return rows


WINNER_AUDIT_FIELDS = (
    "Draw",
    "Draw Status",
    "Entry ID",
    "Name",
    "Email",
    "Match Tier",
    "Matched Numbers",
    "Gross Prize",
    "Charity Name",
    "Charity Donation",
    "Net Payout",
    "Verification Status",
    "Verified At",
    "Paid At",
    "Payment Reference",
)


def _iso(value) -> str:
    return value.isoformat() if value is not None else ""


def winner_audit_rows(
    session: Session, participant_id: Optional[int] = None
) -> list[dict[str, str]]:
    """Every winning entry across cycles, newest cycle first.

    Parameters
    ----------
    session : Session
        Active session.
    participant_id : Optional[int], default: None
        Restrict the report to one participant's wins.
    """
    stmt = (
        select(WinningEntry)
        .join(WinningEntry.cycle)
        .options(
            selectinload(WinningEntry.participant),
            selectinload(WinningEntry.charity),
            selectinload(WinningEntry.cycle),
        )
        .order_by(DrawCycle.period_start.desc(), WinningEntry.match_tier.desc(), WinningEntry.id)
    )
    if participant_id is not None:
        stmt = stmt.where(WinningEntry.participant_id == participant_id)
    rows = []
    for entry in session.scalars(stmt):
        rows.append(
            {
                "Draw": entry.cycle.label,
                "Draw Status": entry.cycle.status.value,
                "Entry ID": str(entry.id),
                "Name": entry.participant.full_name or "",
                "Email": entry.participant.email,
                "Match Tier": f"{entry.match_tier}-Match",
                "Matched Numbers": " ".join(str(n) for n in entry.matched_numbers),
                "Gross Prize": format_cents(entry.gross_cents),
                "Charity Name": entry.charity.name if entry.charity else "",
                "Charity Donation": format_cents(entry.donation_cents),
                "Net Payout": format_cents(entry.net_cents),
                "Verification Status": entry.status.value,
                "Verified At": _iso(entry.verified_at),
                "Paid At": _iso(entry.paid_at),
                "Payment Reference": entry.payment_reference or "",
            }
        )
    return rows


def write_winners_csv(
    rows: Iterable[Mapping[str, str]],
    fp: IO[str],
    fieldnames: Sequence[str] = WINNER_EXPORT_FIELDS,
) -> int:
    """Write ``rows`` as CSV with a header line; return the number of rows."""
    writer = csv.DictWriter(fp, fieldnames=fieldnames)
    writer.writeheader()
    count = 0
    for row in rows:
        writer.writerow(row)
        count += 1
    return count


__all__ = [
    "WINNER_AUDIT_FIELDS",
    "WINNER_EXPORT_FIELDS",
    "format_cents",
    "winner_audit_rows",
    "winner_rows",
    "write_winners_csv",
]
