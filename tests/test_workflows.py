from __future__ import annotations

import io
import unittest
from unittest import mock
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from golfdraw.accounts.directory import ParticipantStanding
from golfdraw.draw.errors import (
    ConcurrencyConflictError,
    InvalidTierConfigurationError,
    UpstreamUnavailableError,
)
from golfdraw.models import (
    Admin,
    AuditLog,
    Base,
    DrawStatus,
    LedgerStatus,
    Participant,
    ScoreEntry,
    TierConfiguration,
)
from golfdraw.workflows import (
    export_winners,
    jackpot_history,
    list_payable_winners,
    mark_winner_paid,
    mark_winners_paid,
    publish_draw,
    record_score,
    reset_draw,
    run_draw,
    simulate_draw,
    update_tier_configuration,
    verify_winner,
    winner_audit_report,
)


LONG_AGO = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Rarest 1, 2, 3 and most common 30, 31; the last player holds only four scores.
SETS = [
    [1, 2, 3, 30, 31],
    [1, 2, 20, 30, 31],
    [3, 20, 21, 30, 31],
    [20, 21, 30, 31],
]


class UnreachableDirectory:
    def eligible_subscriber_count(self, at):
        raise UpstreamUnavailableError("account service unavailable")

    def standings(self, participant_ids, at):
        raise UpstreamUnavailableError("account service unavailable")


class StaticDirectory:
    def __init__(self, standings, eligible_count):
        self._standings = standings
        self._eligible_count = eligible_count

    def eligible_subscriber_count(self, at):
        return self._eligible_count

    def standings(self, participant_ids, at):
        return {pid: self._standings[pid] for pid in participant_ids if pid in self._standings}


class WorkflowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self) -> None:
        self.engine.dispose()

    def _seed(self, session):
        admin = Admin(email="ops@example.com", password_hash="x")
        players = [
            Participant(
                email=f"p{i}@example.com", full_name=f"P{i}", subscription_status="active"
            )
            for i in range(len(SETS))
        ]
        session.add(admin)
        session.add_all(players)
        session.flush()
        for player, scores in zip(players, SETS):
            for offset, value in enumerate(scores):
                ScoreEntry.record(
                    session, player, value, entered_at=LONG_AGO + timedelta(hours=offset)
                )
        return admin, players

    def test_record_score(self) -> None:
        with self.Session.begin() as session:
            player = Participant(email="new@example.com")
            session.add(player)
            session.flush()
            entry = record_score(session, player, 36, label="Monthly medal")
            self.assertIsNotNone(entry.id)
            self.assertEqual(entry.label, "Monthly medal")
            self.assertIsNone(entry.superseded_at)

    def test_record_score_reports_store_outage(self) -> None:
        with self.Session.begin() as session:
            player = Participant(email="new@example.com")
            session.add(player)
            session.flush()
            outage = OperationalError("SELECT", {}, Exception("connection refused"))
            with mock.patch.object(session, "scalars", side_effect=outage):
                with self.assertRaises(UpstreamUnavailableError):
                    record_score(session, player, 36)

    def test_full_cycle(self) -> None:
        with self.Session.begin() as session:
            admin, players = self._seed(session)

            preview = simulate_draw(session, preset="full")
            self.assertEqual(preview.combination.numbers, (1, 2, 3, 30, 31))
            self.assertEqual(preview.per_tier_counts, {5: 1, 4: 1, 3: 1})

            outcome = run_draw(session, operator_id=admin.id)
            self.assertEqual(outcome.combination, preview.combination)
            cycle = outcome.cycle
            self.assertEqual(cycle.status, DrawStatus.COMPLETED)
            # Default configuration: 500 cents from each of the four subscribers.
            self.assertEqual(cycle.base_pool_cents, 2_000)
            self.assertEqual(cycle.tier5_payout_cents, 800)

            published = publish_draw(session, cycle, operator_id=admin.id)
            self.assertEqual(published.published.status, DrawStatus.PUBLISHED)
            self.assertEqual(published.next_cycle.status, DrawStatus.OPEN)

            buffer = io.StringIO()
            rows = export_winners(session, cycle, buffer)
            self.assertEqual([r["Match Tier"] for r in rows], ["5-Match", "4-Match", "3-Match"])
            self.assertIn("P0", buffer.getvalue())

            top = next(e for e in outcome.entries if e.match_tier == 5)
            verify_winner(session, top, admin.id)
            self.assertEqual(len(list_payable_winners(session)), 1)
            mark_winner_paid(session, top, admin.id, "REF-1")
            self.assertEqual(top.status, LedgerStatus.PAID)
            self.assertEqual(list_payable_winners(session), [])

    def test_run_then_reset(self) -> None:
        with self.Session.begin() as session:
            admin, _ = self._seed(session)
            cycle = run_draw(session, range_min=1, range_max=45).cycle
            reset_draw(session, cycle, operator_id=admin.id)
            self.assertEqual(cycle.status, DrawStatus.OPEN)
            actions = [r.action for r in AuditLog.for_subject(session, "draw_cycles", cycle.id)]
            self.assertEqual(actions[-1], "draw_reset")

    def test_stale_expected_version_is_rejected(self) -> None:
        with self.Session.begin() as session:
            admin, _ = self._seed(session)
            cycle = run_draw(session, operator_id=admin.id).cycle
            seen = cycle.version

            # Another operator reruns the draw after this one read it.
            run_draw(session, cycle, range_min=1, range_max=31, expected_version=seen)
            self.assertGreater(cycle.version, seen)

            with self.assertRaises(ConcurrencyConflictError):
                publish_draw(session, cycle, admin.id, expected_version=seen)
            with self.assertRaises(ConcurrencyConflictError):
                reset_draw(session, cycle, admin.id, expected_version=seen)
            with self.assertRaises(ConcurrencyConflictError):
                run_draw(session, cycle, expected_version=seen)
            self.assertEqual(cycle.status, DrawStatus.COMPLETED)
            self.assertEqual(cycle.range_max, 31)

            publish_draw(session, cycle, admin.id, expected_version=cycle.version)
            self.assertEqual(cycle.status, DrawStatus.PUBLISHED)

    def test_batch_payout_and_reports(self) -> None:
        with self.Session.begin() as session:
            admin, _ = self._seed(session)
            outcome = run_draw(session, operator_id=admin.id)
            publish_draw(session, outcome.cycle, admin.id)

            ids = [e.id for e in outcome.entries]
            result = mark_winners_paid(session, ids, admin.id, "RUN-1")
            self.assertTrue(result.success)
            self.assertEqual(len(result.settled), 3)

            history = jackpot_history(session)
            self.assertEqual(len(history.movements), 1)
            self.assertEqual(history.current_cents, 0)

            buffer = io.StringIO()
            rows = winner_audit_report(session, fp=buffer)
            self.assertEqual({r["Payment Reference"] for r in rows}, {"RUN-1"})
            self.assertEqual(len(buffer.getvalue().splitlines()), 4)

    def test_preset_and_bounds_are_exclusive(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(ValueError):
                simulate_draw(session, range_min=5, preset="full")

    def test_directory_override(self) -> None:
        with self.Session.begin() as session:
            _, players = self._seed(session)
            standings = {
                p.id: ParticipantStanding(p.id, eligible=(i != 0), donation_percentage=50)
                for i, p in enumerate(players)
            }
            outcome = run_draw(session, directory=StaticDirectory(standings, eligible_count=10))
            self.assertEqual(outcome.cycle.eligible_count, 10)
            self.assertEqual(outcome.per_tier_counts, {5: 0, 4: 1, 3: 1})
            entry = outcome.entries[0]
            self.assertEqual(entry.donation_percentage, 50)
            self.assertEqual(entry.donation_cents * 2, entry.gross_cents)

    def test_unreachable_directory_is_reported(self) -> None:
        with self.Session.begin() as session:
            self._seed(session)
            with self.assertRaises(UpstreamUnavailableError):
                run_draw(session, directory=UnreachableDirectory())

    def test_update_tier_configuration(self) -> None:
        with self.Session.begin() as session:
            admin = Admin(email="ops@example.com", password_hash="x")
            session.add(admin)
            session.flush()

            row = update_tier_configuration(session, 1000, 50, 30, 20, 500_000, operator_id=admin.id)
            self.assertEqual(row.version, 1)
            self.assertEqual(TierConfiguration.current(session).tier5_percent, 50)

            log = session.scalars(
                select(AuditLog).where(AuditLog.action == "settings_updated")
            ).one()
            self.assertEqual(log.actor_admin_id, admin.id)
            self.assertEqual(log.details["split"], [50, 30, 20])

            with self.assertRaises(InvalidTierConfigurationError):
                update_tier_configuration(session, 1000, 50, 30, 30, 500_000)

    def test_update_tier_configuration_reports_store_outage(self) -> None:
        with self.Session.begin() as session:
            outage = OperationalError("SELECT", {}, Exception("connection refused"))
            with mock.patch.object(session, "scalar", side_effect=outage):
                with self.assertRaises(UpstreamUnavailableError):
                    update_tier_configuration(session, 1000, 50, 30, 20, 500_000)


if __name__ == "__main__":
    unittest.main()
