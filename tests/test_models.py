import unittest
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from golfdraw.accounts.directory import LocalAccountDirectory
from golfdraw.draw.errors import InvalidTierConfigurationError
from golfdraw.models import (
    AuditLog,
    Base,
    Charity,
    DrawCycle,
    DrawStatus,
    Participant,
    ScoreEntry,
    TierConfiguration,
)


T0 = datetime(2026, 9, 1, 12, 0, tzinfo=timezone.utc)


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self):
        self.engine.dispose()


class ScoreEntryTests(DBTestCase):
    def _participant(self, session) -> Participant:
        participant = Participant(email="Golfer@Example.com", subscription_status="active")
        session.add(participant)
        session.flush()
        return participant

    def test_keeps_five_most_recent_entries(self):
        with self.Session.begin() as session:
            participant = self._participant(session)
            for offset, value in enumerate([10, 20, 30, 40, 41, 42]):
                ScoreEntry.record(
                    session, participant, value, entered_at=T0 + timedelta(days=offset)
                )

            as_of = T0 + timedelta(days=30)
            self.assertEqual(
                ScoreEntry.current_values(session, participant.id, as_of),
                [42, 41, 40, 30, 20],
            )
            active = session.scalar(
                select(func.count(ScoreEntry.id)).where(
                    ScoreEntry.participant_id == participant.id,
                    ScoreEntry.superseded_at.is_(None),
                )
            )
            self.assertEqual(active, 5)

    def test_same_value_supersedes_previous_entry(self):
        with self.Session.begin() as session:
            participant = self._participant(session)
            first = ScoreEntry.record(session, participant, 33, entered_at=T0, label="Club medal")
            ScoreEntry.record(session, participant, 12, entered_at=T0 + timedelta(days=1))
            ScoreEntry.record(session, participant, 33, entered_at=T0 + timedelta(days=2))

            self.assertIsNotNone(first.superseded_at)
            self.assertEqual(
                ScoreEntry.current_values(session, participant.id, T0 + timedelta(days=3)),
                [33, 12],
            )

    def test_set_is_frozen_at_an_earlier_instant(self):
        with self.Session.begin() as session:
            participant = self._participant(session)
            for offset, value in enumerate([1, 2, 3, 4, 5]):
                ScoreEntry.record(session, participant, value, entered_at=T0 + timedelta(days=offset))
            ScoreEntry.record(session, participant, 6, entered_at=T0 + timedelta(days=10))

            before = ScoreEntry.current_values(session, participant.id, T0 + timedelta(days=5))
            after = ScoreEntry.current_values(session, participant.id, T0 + timedelta(days=11))
            self.assertEqual(before, [5, 4, 3, 2, 1])
            self.assertEqual(after, [6, 5, 4, 3, 2])

    def test_rejects_out_of_range_values(self):
        with self.Session.begin() as session:
            participant = self._participant(session)
            for value in (0, 46, 4.5):
                with self.subTest(value=value):
                    with self.assertRaises(ValueError):
                        ScoreEntry.record(session, participant, value)


class ParticipantTests(DBTestCase):
    def test_email_normalized_and_lookup(self):
        with self.Session.begin() as session:
            charity = Charity(name="Junior Golf Trust")
            session.add(Participant(email="  Ann@Example.COM ", charity=charity))
            session.flush()
            found = Participant.get_by_email(session, "ann@example.com")
            self.assertIsNotNone(found)
            self.assertEqual(found.charity.name, "Junior Golf Trust")
            self.assertIs(Charity.get_by_name(session, "Junior Golf Trust"), charity)

    def test_default_donation_percentage(self):
        self.assertEqual(Participant(email="a@example.com").effective_donation_percentage, 10)
        self.assertEqual(
            Participant(email="b@example.com", donation_percentage=0).effective_donation_percentage,
            0,
        )

    def test_eligibility(self):
        at = T0
        cases = {
            "active": (Participant(email="1@x.io", subscription_status="active"), True),
            "trialing": (Participant(email="2@x.io", subscription_status="trialing"), True),
            "suspended": (
                Participant(email="3@x.io", status="suspended", subscription_status="active"),
                False,
            ),
            "cancelled": (Participant(email="4@x.io", subscription_status="cancelled"), False),
            "lapsed monthly": (
                Participant(
                    email="5@x.io",
                    subscription_status="active",
                    subscription_plan="monthly",
                    subscription_period_end=at - timedelta(days=1),
                ),
                False,
            ),
            "annual": (
                Participant(
                    email="6@x.io",
                    subscription_status="active",
                    subscription_plan="annual",
                    subscription_period_end=at - timedelta(days=1),
                ),
                True,
            ),
            "admin": (
                Participant(email="7@x.io", role="admin", subscription_status="active"),
                False,
            ),
        }
        for name, (participant, expected) in cases.items():
            with self.subTest(name=name):
                self.assertEqual(participant.is_eligible(at), expected)

    def test_directory_counts_only_eligible_subscribers(self):
        at = T0
        with self.Session.begin() as session:
            session.add_all(
                [
                    Participant(email="1@x.io", subscription_status="active"),
                    Participant(email="2@x.io", subscription_status="trialing"),
                    Participant(email="3@x.io", status="suspended", subscription_status="active"),
                    Participant(email="4@x.io", subscription_status="cancelled"),
                    Participant(email="5@x.io"),
                    Participant(
                        email="6@x.io",
                        subscription_status="active",
                        subscription_plan="monthly",
                        subscription_period_end=at - timedelta(days=1),
                    ),
                    Participant(
                        email="7@x.io",
                        subscription_status="active",
                        subscription_plan="annual",
                        subscription_period_end=at - timedelta(days=1),
                    ),
                    Participant(email="8@x.io", role="admin", subscription_status="active"),
                ]
            )
            session.flush()

            directory = LocalAccountDirectory(session)
            self.assertEqual(directory.eligible_subscriber_count(at), 3)
            self.assertEqual(directory.eligible_subscriber_count(at - timedelta(days=2)), 4)

    def test_donation_percentage_constraint(self):
        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.add(Participant(email="c@example.com", donation_percentage=150))
                session.flush()


class TierConfigurationTests(DBTestCase):
    def test_defaults_when_empty(self):
        with self.Session() as session:
            settings = TierConfiguration.current(session)
        self.assertEqual(settings.version, 0)
        self.assertEqual(settings.contribution_cents, 500)
        self.assertEqual(
            (settings.tier5_percent, settings.tier4_percent, settings.tier3_percent),
            (40, 35, 25),
        )
        self.assertEqual(settings.jackpot_cap_cents, 25_000_000)

    def test_versions_are_appended(self):
        with self.Session.begin() as session:
            first = TierConfiguration.publish_new_version(
                session,
                contribution_cents=1000,
                tier5_percent=50,
                tier4_percent=30,
                tier3_percent=20,
                jackpot_cap_cents=100_000,
            )
            second = TierConfiguration.publish_new_version(
                session,
                contribution_cents=800,
                tier5_percent=40,
                tier4_percent=35,
                tier3_percent=25,
                jackpot_cap_cents=100_000,
            )
            self.assertEqual((first.version, second.version), (1, 2))
            current = TierConfiguration.current(session)
            self.assertEqual(current.version, 2)
            self.assertEqual(current.contribution_cents, 800)

    def test_invalid_split_is_not_stored(self):
        with self.Session.begin() as session:
            with self.assertRaises(InvalidTierConfigurationError):
                TierConfiguration.publish_new_version(
                    session,
                    contribution_cents=1000,
                    tier5_percent=50,
                    tier4_percent=30,
                    tier3_percent=10,
                    jackpot_cap_cents=100_000,
                )
            self.assertIsNone(TierConfiguration.latest(session))


class DrawCycleTests(DBTestCase):
    def test_only_one_open_cycle(self):
        with self.assertRaises(IntegrityError):
            with self.Session.begin() as session:
                session.add(
                    DrawCycle(label="October 2026", period_start=date(2026, 10, 1), status=DrawStatus.OPEN)
                )
                session.add(
                    DrawCycle(label="November 2026", period_start=date(2026, 11, 1), status=DrawStatus.OPEN)
                )
                session.flush()

    def test_lookups_and_json(self):
        with self.Session.begin() as session:
            published = DrawCycle(
                label="September 2026",
                period_start=date(2026, 9, 1),
                status=DrawStatus.PUBLISHED,
                rollover_out_cents=1234,
            )
            current = DrawCycle(
                label="October 2026", period_start=date(2026, 10, 1), status=DrawStatus.OPEN
            )
            session.add_all([published, current])
            session.flush()

            self.assertEqual(published.version, 1)
            self.assertIs(DrawCycle.open_cycle(session), current)
            self.assertIs(DrawCycle.current(session), current)
            self.assertIs(DrawCycle.latest_published(session), published)
            self.assertIsNone(DrawCycle.latest_published(session, before=date(2026, 9, 1)))
            self.assertIs(DrawCycle.get_by_label(session, "September 2026"), published)

            current.set_tier_figures(4, pool=35_000, winners=2, payout=17_500)
            data = current.to_json()
            self.assertEqual(data["status"], "open")
            self.assertEqual(data["tiers"]["4"], {"pool_cents": 35_000, "winners": 2, "payout_cents": 17_500})
            with self.assertRaises(ValueError):
                current.tier_pool_cents(2)


class AuditLogTests(DBTestCase):
    def test_record_and_for_subject(self):
        with self.Session.begin() as session:
            AuditLog.record(session, "draw_created", "draw_cycles", 7, details={"label": "October 2026"})
            AuditLog.record(session, "draw_reset", "draw_cycles", 7)
            session.flush()
            rows = AuditLog.for_subject(session, "draw_cycles", 7)
            self.assertEqual([r.action for r in rows], ["draw_created", "draw_reset"])
            self.assertEqual(rows[0].actor_type, "system")
            self.assertEqual(rows[0].details, {"label": "October 2026"})
            self.assertIsNone(rows[1].details)


if __name__ == "__main__":
    unittest.main()
