"""Account-management view used by the draw engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.participant import (
    DEFAULT_DONATION_PERCENTAGE,
    PAYING_SUBSCRIPTION_STATUSES,
    Participant,
)


@dataclass(frozen=True)
class ParticipantStanding:
    """Eligibility and donation election of one participant at an instant."""

    participant_id: int
    eligible: bool
    donation_percentage: int = DEFAULT_DONATION_PERCENTAGE
    charity_id: Optional[int] = None
    full_name: Optional[str] = None
    email: Optional[str] = None


class AccountDirectory(Protocol):
    """Source of subscriber standing consumed by the draw engine."""

    def eligible_subscriber_count(self, at: datetime) -> int:
        ...

    def standings(
        self, participant_ids: Iterable[int], at: datetime
    ) -> dict[int, ParticipantStanding]:
        ...


class LocalAccountDirectory:
    """:class:`AccountDirectory` reading participants from the local database."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def eligible_subscriber_count(self, at: datetime) -> int:
        # Subscription lapse is checked per row; it depends on the plan.
        stmt = select(Participant).where(
            Participant.status == "active",
            Participant.role != "admin",
            Participant.subscription_status.in_(PAYING_SUBSCRIPTION_STATUSES),
        )
        return sum(1 for p in self._session.scalars(stmt) if p.is_eligible(at))

    def standings(
        self, participant_ids: Iterable[int], at: datetime
    ) -> dict[int, ParticipantStanding]:
        ids = list(participant_ids)
        if not ids:
            return {}
        stmt = select(Participant).where(Participant.id.in_(ids))
        return {p.id: standing_of(p, at) for p in self._session.scalars(stmt)}


def standing_of(participant: Participant, at: datetime) -> ParticipantStanding:
    return ParticipantStanding(
        participant_id=participant.id,
        eligible=participant.is_eligible(at),
        donation_percentage=participant.effective_donation_percentage,
        charity_id=participant.charity_id,
        full_name=participant.full_name,
        email=participant.email,
    )
