import random
from datetime import date, datetime, timedelta, timezone

from golfdraw.db.engine import get_sessionmaker, make_engine
from golfdraw.models import Admin, Base, Charity, Participant, ScoreEntry, TierConfiguration

PLAYER_COUNT = 40
SCORES_PER_PLAYER = 5


def main() -> None:
    """Seed the development database with sample data."""
    engine = make_engine()

    # SQLite refuses to drop tables referenced by live foreign keys, so turn
    # the checks off for the reset.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    now = datetime.now(timezone.utc)
    rng = random.Random(2026)

    with Session.begin() as session:
        admin = Admin(
            email="admin@example.com",
            password_hash="dev-hash",
            name="draw_admin",
            role="superuser",
            created_at=now,
            updated_at=now,
        )
        charities = [
            Charity(name="Junior Golf Foundation"),
            Charity(name="Greenkeepers Benevolent Fund"),
            Charity(name="Hospice Open"),
        ]
        session.add(admin)
        session.add_all(charities)
        session.flush()

        TierConfiguration.publish_new_version(
            session,
            contribution_cents=500,
            tier5_percent=40,
            tier4_percent=35,
            tier3_percent=25,
            jackpot_cap_cents=25_000_000,
            admin_id=admin.id,
        )

        players = []
        for i in range(PLAYER_COUNT):
            lapsed = i % 10 == 9
            players.append(
                Participant(
                    email=f"player{i:02d}@example.com",
                    full_name=f"Player {i:02d}",
                    subscription_status="cancelled" if lapsed else "active",
                    subscription_plan="annual" if i % 3 == 0 else "monthly",
                    subscription_period_end=now + timedelta(days=30),
                    donation_percentage=rng.choice([None, 10, 15, 25, 50]),
                    charity=charities[i % len(charities)],
                )
            )
        session.add_all(players)
        session.flush()

        # Stableford-style scores clustered in the high twenties and thirties.
        for player in players:
            for n in range(SCORES_PER_PLAYER):
                played = date.today() - timedelta(days=7 * (SCORES_PER_PLAYER - n))
                ScoreEntry.record(
                    session,
                    player,
                    max(1, min(45, int(rng.gauss(31, 6)))),
                    played_on=played,
                    label="Weekly medal",
                    entered_at=now - timedelta(days=40) + timedelta(hours=n),
                )

    print("Development database seeded.")


if __name__ == "__main__":
    main()
