"""Draw engine orchestrating the monthly draw lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..accounts.directory import AccountDirectory, LocalAccountDirectory
from ..db.utils import as_utc
from ..models import AuditLog, DrawCycle, DrawStatus, LedgerStatus, TierConfiguration, WinningEntry
from ..models.cycle import TIERS
from . import ledger
from .aggregator import ScorePool, aggregate_scores
from .allocation import Allocation, TierSettings, allocate_prize_pool, split_donation
from .errors import ConcurrencyConflictError, InsufficientDiversityError, NotFoundError
from .export import winner_audit_rows, winner_rows
from .frequency import WinningCombination, select_winning_combination
from .history import JackpotHistory, jackpot_history
from .lifecycle import DrawAction, next_status
from .matching import MatchResult, evaluate_entries, winner_counts
from .schedule import cycle_label, next_period_start, score_cutoff_for, upcoming_period_start
from .store import store_errors

logger = logging.getLogger(__name__)

DEFAULT_RANGE = (1, 45)


@dataclass
class DrawPreview:
    """Read-only result of :meth:`DrawEngine.simulate`.

    Attributes
    ----------
    label : str
        Label of the cycle the preview was computed for.
    range_min, range_max : int
        Score range analysed.
    combination : Optional[WinningCombination]
        ``None`` when ``insufficient_diversity`` is set.
    insufficient_diversity : bool
        ``True`` if fewer than five distinct values were in range.
    allocation : Allocation
        Projected prize figures; with no combination every tier has zero
        winners.
    winners : list[MatchResult]
        Qualifying participants.
    participant_count, eligible_count : int
        Counts at the cutoff.
    cutoff : datetime
        Instant the scores were read at.
    """

    label: str
    range_min: int
    range_max: int
    combination: Optional[WinningCombination]
    insufficient_diversity: bool
    allocation: Allocation
    winners: list[MatchResult] = field(default_factory=list)
    participant_count: int = 0
    eligible_count: int = 0
    cutoff: Optional[datetime] = None

    @property
    def per_tier_counts(self) -> dict[int, int]:
        return {tier: self.allocation.tiers[tier].winners for tier in TIERS}

    @property
    def per_tier_payout(self) -> dict[int, int]:
        return {tier: self.allocation.tiers[tier].payout_cents for tier in TIERS}

    @property
    def projected_rollover_out(self) -> int:
        return self.allocation.rollover_out_cents

    @property
    def projected_carry_out(self) -> int:
        return self.allocation.carry_out_cents

    def to_json(self) -> dict:
        return {
            "label": self.label,
            "range": {"min": self.range_min, "max": self.range_max},
            "combination": list(self.combination.numbers) if self.combination else None,
            "rare_numbers": list(self.combination.rare) if self.combination else None,
            "common_numbers": list(self.combination.common) if self.combination else None,
            "insufficient_diversity": self.insufficient_diversity,
            "participant_count": self.participant_count,
            "eligible_count": self.eligible_count,
            "per_tier_counts": {str(t): c for t, c in self.per_tier_counts.items()},
            "per_tier_payout": {str(t): p for t, p in self.per_tier_payout.items()},
            "projected_rollover_out": self.projected_rollover_out,
            "projected_carry_out": self.projected_carry_out,
            "allocation": self.allocation.to_json(),
        }


@dataclass
class DrawOutcome:
    """Persisted result of :meth:`DrawEngine.run`."""

    cycle: DrawCycle
    combination: WinningCombination
    allocation: Allocation
    entries: list[WinningEntry] = field(default_factory=list)

    @property
    def per_tier_counts(self) -> dict[int, int]:
        return {tier: self.allocation.tiers[tier].winners for tier in TIERS}

    @property
    def per_tier_payout(self) -> dict[int, int]:
        return {tier: self.allocation.tiers[tier].payout_cents for tier in TIERS}

    @property
    def total_pool_cents(self) -> int:
        return self.allocation.total_pool_cents


@dataclass
class PublishOutcome:
    published: DrawCycle
    next_cycle: DrawCycle


@dataclass
class _Computation:
    pool: ScorePool
    combination: WinningCombination
    matches: list[MatchResult]
    allocation: Allocation
    settings: TierSettings
    cutoff: datetime


class DrawEngine:
    """Engine that computes, persists and publishes monthly draws."""

    def __init__(
        self,
        session: Session,
        *,
        directory: Optional[AccountDirectory] = None,
        settings: Optional[TierSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Create a draw engine bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active session. The engine only flushes; committing or rolling
            back is left to the caller.
        directory : Optional[AccountDirectory], default: None
            Source of subscriber standing. Defaults to
            :class:`LocalAccountDirectory` over ``session``.
        settings : Optional[TierSettings], default: None
            Prize configuration to use instead of the latest
            :class:`TierConfiguration` version.
        clock : Optional[Callable[[], datetime]], default: None
            Returns the current aware datetime. Defaults to UTC wall clock.
        """

        self._session = session
        self._directory = directory or LocalAccountDirectory(session)
        self._settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # -------- helpers --------
    def _now(self) -> datetime:
        return as_utc(self._clock())

    def _current_settings(self) -> TierSettings:
        if self._settings is not None:
            return self._settings
        return TierConfiguration.current(self._session)

    def _get_cycle(self, cycle_id: int) -> DrawCycle:
        cycle = self._session.get(DrawCycle, cycle_id)
        if cycle is None:
            raise NotFoundError(f"Draw cycle {cycle_id} does not exist")
        return cycle

    def _default_period(self) -> date:
        latest = DrawCycle.latest_published(self._session)
        if latest is not None:
            return next_period_start(latest.period_start)
        return upcoming_period_start(self._now())

    def _create_cycle(
        self, period_start: date, operator_id: Optional[int] = None
    ) -> DrawCycle:
        cycle = DrawCycle(
            label=cycle_label(period_start),
            period_start=period_start,
            status=DrawStatus.OPEN,
        )
        self._session.add(cycle)
        self._session.flush()
        AuditLog.record(
            self._session,
            "draw_created",
            DrawCycle.__tablename__,
            cycle.id,
            admin_id=operator_id,
            details={"label": cycle.label},
        )
        logger.info(f"Opened draw cycle {cycle.label} (id={cycle.id})")
        return cycle

    def _check_version(self, cycle: DrawCycle, expected_version: Optional[int]) -> None:
        if expected_version is not None and cycle.version != expected_version:
            raise ConcurrencyConflictError(
                f"Draw {cycle.label} is at version {cycle.version}, "
                f"expected {expected_version}; reload and retry"
            )

    def _cutoff(self, period_start: date) -> datetime:
        return min(self._now(), score_cutoff_for(period_start))

    def _carried_in(self, period_start: date) -> tuple[int, int]:
        """``(rollover, carry)`` left by the last published cycle before ``period_start``."""
        previous = DrawCycle.latest_published(self._session, before=period_start)
        if previous is None:
            return 0, 0
        return previous.rollover_out_cents, previous.carry_out_cents

    def _allocate(
        self, period_start: date, settings: TierSettings, pool: ScorePool, counts: dict[int, int]
    ) -> Allocation:
        rollover, carry = self._carried_in(period_start)
        return allocate_prize_pool(
            pool.eligible_count, settings, rollover, counts, carry_in_cents=carry
        )

    def _aggregate(
        self, period_start: date, range_min: int, range_max: int
    ) -> tuple[datetime, ScorePool]:
        cutoff = self._cutoff(period_start)
        pool = aggregate_scores(self._session, cutoff, range_min, range_max, self._directory)
        return cutoff, pool

    def _evaluate(
        self,
        period_start: date,
        cutoff: datetime,
        pool: ScorePool,
        range_min: int,
        range_max: int,
    ) -> _Computation:
        settings = self._current_settings()
        combination = select_winning_combination(pool.values, range_min, range_max)
        matches = evaluate_entries(pool.entries, combination)
        allocation = self._allocate(period_start, settings, pool, winner_counts(matches))
        return _Computation(pool, combination, matches, allocation, settings, cutoff)

    def _compute(
        self, period_start: date, range_min: int, range_max: int
    ) -> _Computation:
        cutoff, pool = self._aggregate(period_start, range_min, range_max)
        return self._evaluate(period_start, cutoff, pool, range_min, range_max)

    # -------- lookups --------
    def current_cycle(self) -> Optional[DrawCycle]:
        """Return the newest unpublished cycle, if any."""
        return DrawCycle.current(self._session)

    def ensure_current_cycle(self, operator_id: Optional[int] = None) -> DrawCycle:
        """Return the newest unpublished cycle, opening one on cold start."""
        with store_errors("open draw"):
            cycle = DrawCycle.current(self._session)
            if cycle is None:
                cycle = self._create_cycle(self._default_period(), operator_id)
        return cycle

    # -------- actions --------
    def simulate(
        self,
        range_min: int = DEFAULT_RANGE[0],
        range_max: int = DEFAULT_RANGE[1],
        *,
        cycle_id: Optional[int] = None,
    ) -> DrawPreview:
        """Preview the draw for the open cycle without writing anything.

        Parameters
        ----------
        range_min, range_max : int
            Inclusive score range to analyse.
        cycle_id : Optional[int], default: None
            Cycle to preview. Defaults to the open cycle, or the period that
            would be opened on cold start.

        Returns
        -------
        DrawPreview
            Combination and projected figures. Fewer than five distinct
            values yields a preview flagged ``insufficient_diversity``.

        Raises
        ------
        InvalidTransitionError
            If the cycle is not open.
        NoScoreDataError
            If nobody submitted scores.
        """
        with store_errors("simulate draw"):
            if cycle_id is not None:
                cycle = self._get_cycle(cycle_id)
            else:
                cycle = DrawCycle.current(self._session)
            if cycle is not None:
                next_status(cycle.status, DrawAction.SIMULATE)
                period_start, label = cycle.period_start, cycle.label
            else:
                period_start = self._default_period()
                label = cycle_label(period_start)

            cutoff, pool = self._aggregate(period_start, range_min, range_max)
            try:
                computation = self._evaluate(period_start, cutoff, pool, range_min, range_max)
            except InsufficientDiversityError:
                allocation = self._allocate(period_start, self._current_settings(), pool, {})
                logger.info(f"Simulation for {label}: insufficient score diversity")
                return DrawPreview(
                    label=label,
                    range_min=range_min,
                    range_max=range_max,
                    combination=None,
                    insufficient_diversity=True,
                    allocation=allocation,
                    participant_count=pool.participant_count,
                    eligible_count=pool.eligible_count,
                    cutoff=cutoff,
                )

        logger.debug(
            f"Simulation for {label}: combination {computation.combination.numbers}"
        )
        return DrawPreview(
            label=label,
            range_min=range_min,
            range_max=range_max,
            combination=computation.combination,
            insufficient_diversity=False,
            allocation=computation.allocation,
            winners=computation.matches,
            participant_count=computation.pool.participant_count,
            eligible_count=computation.pool.eligible_count,
            cutoff=computation.cutoff,
        )

    def run(
        self,
        cycle_id: Optional[int] = None,
        range_min: int = DEFAULT_RANGE[0],
        range_max: int = DEFAULT_RANGE[1],
        *,
        expected_version: Optional[int] = None,
        operator_id: Optional[int] = None,
    ) -> DrawOutcome:
        """Compute and persist the draw, moving the cycle to ``completed``.

        Running a completed cycle again replaces its combination, figures and
        winning entries. Every figure is computed before the first write.

        Parameters
        ----------
        cycle_id : Optional[int], default: None
            Cycle to run. Defaults to the current cycle, which is opened
            first on cold start.
        range_min, range_max : int
            Inclusive score range to analyse.
        expected_version : Optional[int], default: None
            Cycle version the caller last saw; a mismatch is rejected.
        operator_id : Optional[int], default: None
            Acting admin, recorded in the audit trail.

        Raises
        ------
        InsufficientDiversityError, NoScoreDataError, InvalidScoreRangeError
            Precondition failures; nothing is written.
        InvalidTransitionError
            If the cycle is already published.
        ConcurrencyConflictError
            If the cycle changed since it was read.
        """
        with store_errors("run draw"):
            if cycle_id is not None:
                cycle: Optional[DrawCycle] = self._get_cycle(cycle_id)
            else:
                cycle = DrawCycle.current(self._session)

            if cycle is not None:
                self._check_version(cycle, expected_version)
                next_status(cycle.status, DrawAction.RUN)
                period_start = cycle.period_start
            else:
                period_start = self._default_period()

            computation = self._compute(period_start, range_min, range_max)

            if cycle is None:
                cycle = self._create_cycle(period_start, operator_id)

            # Old entries must be gone before new rows reuse (cycle, participant).
            cycle.winning_entries.clear()
            self._session.flush()

            self._write_figures(cycle, computation, range_min, range_max)
            entries = self._build_entries(cycle, computation)
            cycle.status = next_status(cycle.status, DrawAction.RUN)
            AuditLog.record(
                self._session,
                "draw_completed",
                DrawCycle.__tablename__,
                cycle.id,
                admin_id=operator_id,
                details={
                    "winning_numbers": list(computation.combination.numbers),
                    "range": [range_min, range_max],
                    "winners": {str(t): c for t, c in winner_counts(computation.matches).items()},
                    "tier_config_version": computation.settings.version,
                },
            )
            self._session.flush()

        logger.info(
            f"Draw {cycle.label} completed: numbers={list(computation.combination.numbers)} "
            f"winners={winner_counts(computation.matches)} "
            f"rollover_out={computation.allocation.rollover_out_cents} "
            f"carry_out={computation.allocation.carry_out_cents}"
        )
        return DrawOutcome(cycle, computation.combination, computation.allocation, entries)

    def _write_figures(
        self, cycle: DrawCycle, computation: _Computation, range_min: int, range_max: int
    ) -> None:
        combination = computation.combination
        allocation = computation.allocation
        settings = computation.settings

        cycle.range_min = range_min
        cycle.range_max = range_max
        cycle.winning_numbers = list(combination.numbers)
        cycle.rare_numbers = list(combination.rare)
        cycle.common_numbers = list(combination.common)
        cycle.participant_count = computation.pool.participant_count
        cycle.eligible_count = computation.pool.eligible_count
        cycle.cutoff_at = computation.cutoff

        cycle.tier_config_version = settings.version
        cycle.contribution_cents = settings.contribution_cents
        cycle.tier5_percent = settings.tier5_percent
        cycle.tier4_percent = settings.tier4_percent
        cycle.tier3_percent = settings.tier3_percent
        cycle.jackpot_cap_cents = settings.jackpot_cap_cents

        cycle.base_pool_cents = allocation.base_pool_cents
        cycle.rollover_in_cents = allocation.rollover_in_cents
        cycle.carry_in_cents = allocation.carry_in_cents
        cycle.cap_diversion_cents = allocation.cap_diversion_cents
        cycle.jackpot_cap_reached = allocation.jackpot_cap_reached
        for tier, figures in allocation.tiers.items():
            cycle.set_tier_figures(
                tier,
                pool=figures.pool_cents,
                winners=figures.winners,
                payout=figures.payout_cents,
            )
        cycle.remainder_cents = allocation.remainder_cents
        cycle.rollover_out_cents = allocation.rollover_out_cents
        cycle.carry_out_cents = allocation.carry_out_cents
        cycle.drawn_at = self._now()

    def _build_entries(self, cycle: DrawCycle, computation: _Computation) -> list[WinningEntry]:
        entries = []
        for match in computation.matches:
            standing = computation.pool.standings[match.participant_id]
            gross = computation.allocation.tiers[match.tier].payout_cents
            donation, net = split_donation(gross, standing.donation_percentage)
            entry = WinningEntry(
                participant_id=match.participant_id,
                match_tier=match.tier,
                scores=list(match.scores),
                matched_numbers=list(match.matched),
                gross_cents=gross,
                donation_percentage=standing.donation_percentage,
                donation_cents=donation,
                net_cents=net,
                charity_id=standing.charity_id,
                status=LedgerStatus.PENDING,
            )
            cycle.winning_entries.append(entry)
            entries.append(entry)
        return entries

    def publish(
        self,
        cycle_id: Optional[int] = None,
        *,
        expected_version: Optional[int] = None,
        operator_id: Optional[int] = None,
    ) -> PublishOutcome:
        """Publish a completed cycle and open the next month's cycle.

        Raises
        ------
        InvalidTransitionError
            If the cycle is open or already published. Nothing changes and
            no further cycle is created.
        ConcurrencyConflictError
            If the cycle changed since it was read.
        """
        with store_errors("publish draw"):
            if cycle_id is not None:
                cycle = self._get_cycle(cycle_id)
            else:
                cycle = self.ensure_current_cycle(operator_id)
            self._check_version(cycle, expected_version)
            cycle.status = next_status(cycle.status, DrawAction.PUBLISH)
            cycle.published_at = self._now()
            AuditLog.record(
                self._session,
                "draw_published",
                DrawCycle.__tablename__,
                cycle.id,
                admin_id=operator_id,
                details={
                    "winning_numbers": cycle.winning_numbers,
                    "rollover_out_cents": cycle.rollover_out_cents,
                    "carry_out_cents": cycle.carry_out_cents,
                },
            )
            self._session.flush()

            following = next_period_start(cycle.period_start)
            next_cycle = DrawCycle.get_by_period(self._session, following)
            if next_cycle is None:
                next_cycle = self._create_cycle(following, operator_id)
            self._session.flush()

        logger.info(f"Draw {cycle.label} published; next cycle {next_cycle.label}")
        return PublishOutcome(cycle, next_cycle)

    def reset(
        self,
        cycle_id: int,
        *,
        expected_version: Optional[int] = None,
        operator_id: Optional[int] = None,
    ) -> DrawCycle:
        """Return a completed cycle to ``open``, discarding its results."""
        with store_errors("reset draw"):
            cycle = self._get_cycle(cycle_id)
            self._check_version(cycle, expected_version)
            status = next_status(cycle.status, DrawAction.RESET)
            cycle.winning_entries.clear()
            cycle.clear_results()
            cycle.status = status
            AuditLog.record(
                self._session,
                "draw_reset",
                DrawCycle.__tablename__,
                cycle.id,
                admin_id=operator_id,
            )
            self._session.flush()
        logger.info(f"Draw {cycle.label} reset to open")
        return cycle

    # -------- reporting --------
    def export_winners(self, cycle_id: int) -> list[dict[str, str]]:
        """Tabular winner rows for ``cycle_id``; see :func:`write_winners_csv`."""
        with store_errors("export winners"):
            self._get_cycle(cycle_id)
            return winner_rows(self._session, cycle_id)

    def cycle_report(self, cycle_id: int) -> dict:
        """Summary of a computed cycle: figures, winners per tier and totals."""
        with store_errors("cycle report"):
            cycle = self._get_cycle(cycle_id)
            totals = self._session.execute(
                select(
                    func.count(WinningEntry.id),
                    func.coalesce(func.sum(WinningEntry.gross_cents), 0),
                    func.coalesce(func.sum(WinningEntry.donation_cents), 0),
                    func.coalesce(func.sum(WinningEntry.net_cents), 0),
                ).where(WinningEntry.cycle_id == cycle.id)
            ).one()
            paid = self._session.scalar(
                select(func.count(WinningEntry.id)).where(
                    WinningEntry.cycle_id == cycle.id,
                    WinningEntry.status == LedgerStatus.PAID,
                )
            )
        winners, gross, donations, net = totals
        report = cycle.to_json()
        report.update(
            {
                "total_pool_cents": cycle.total_pool_cents,
                "winner_count": winners,
                "paid_count": paid,
                "total_gross_cents": gross,
                "total_donation_cents": donations,
                "total_net_cents": net,
                "tier_config_version": cycle.tier_config_version,
            }
        )
        return report

    # -------- ledger --------
    def verify_winner(self, entry_id: int, operator_id: int) -> WinningEntry:
        return ledger.verify_winner(self._session, entry_id, operator_id, at=self._now())

    def mark_paid(
        self, entry_id: int, operator_id: int, reference: Optional[str] = None
    ) -> WinningEntry:
        return ledger.mark_paid(
            self._session, entry_id, operator_id, reference, at=self._now()
        )

    def mark_paid_batch(
        self, entry_ids: Iterable[int], operator_id: int, reference: Optional[str] = None
    ) -> ledger.BatchPayoutResult:
        return ledger.mark_paid_batch(
            self._session, entry_ids, operator_id, reference, at=self._now()
        )

    # -------- history --------
    def jackpot_history(self, limit: Optional[int] = None) -> JackpotHistory:
        """Tier-5 movements of computed cycles and the jackpot the next draw starts from."""
        with store_errors("jackpot history"):
            return jackpot_history(self._session, limit)

    def winner_audit_report(self, participant_id: Optional[int] = None) -> list[dict[str, str]]:
        """Winning entries of every cycle; see :func:`winner_audit_rows`."""
        with store_errors("winner audit report"):
            return winner_audit_rows(self._session, participant_id)


__all__ = ["DrawEngine", "DrawOutcome", "DrawPreview", "PublishOutcome"]
