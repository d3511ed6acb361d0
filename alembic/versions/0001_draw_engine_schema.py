"""draw engine schema

Revision ID: 0001
Revises:
Create Date: 2026-10-12 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
STATUS = sa.String(length=20)


def upgrade() -> None:
    op.create_table(
        "admins",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=100), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=True),
        sa.Column("role", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_admins")),
    )
    op.create_index(op.f("ix_admins_email"), "admins", ["email"], unique=True)
    op.create_index(op.f("ix_admins_id"), "admins", ["id"], unique=False)

    op.create_table(
        "charities",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_charities")),
        sa.UniqueConstraint("name", name=op.f("uq_charities_name")),
    )

    op.create_table(
        "participants",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=100), nullable=False),
        sa.Column("full_name", sa.String(length=100), nullable=True),
        sa.Column("status", STATUS, nullable=False),
        sa.Column("role", STATUS, nullable=False),
        sa.Column("subscription_status", STATUS, nullable=True),
        sa.Column("subscription_plan", STATUS, nullable=True),
        sa.Column("subscription_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("donation_percentage", sa.Integer(), nullable=True),
        sa.Column("charity_id", ID, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False
        ),
        sa.CheckConstraint("status IN ('active','suspended')", name=op.f("ck_participants_status_enum")),
        sa.CheckConstraint(
            "donation_percentage IS NULL OR (donation_percentage >= 0 AND donation_percentage <= 100)",
            name=op.f("ck_participants_donation_percentage_range"),
        ),
        sa.ForeignKeyConstraint(
            ["charity_id"], ["charities.id"], name=op.f("fk_participants_charity_id_charities"), ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_participants")),
        sa.UniqueConstraint("email", name=op.f("uq_participants_email")),
    )

    op.create_table(
        "score_entries",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("participant_id", ID, nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("played_on", sa.Date(), nullable=True),
        sa.Column("label", sa.String(length=255), nullable=True),
        sa.Column("entered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["participant_id"],
            ["participants.id"],
            name=op.f("fk_score_entries_participant_id_participants"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_score_entries")),
    )
    op.create_index(
        "ix_score_entries_participant_entered", "score_entries", ["participant_id", "entered_at"], unique=False
    )

    op.create_table(
        "tier_configurations",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("contribution_cents", sa.Integer(), nullable=False),
        sa.Column("tier5_percent", sa.Integer(), nullable=False),
        sa.Column("tier4_percent", sa.Integer(), nullable=False),
        sa.Column("tier3_percent", sa.Integer(), nullable=False),
        sa.Column("jackpot_cap_cents", sa.Integer(), nullable=False),
        sa.Column("created_by_admin_id", ID, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["created_by_admin_id"],
            ["admins.id"],
            name=op.f("fk_tier_configurations_created_by_admin_id_admins"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tier_configurations")),
        sa.UniqueConstraint("version", name=op.f("uq_tier_configurations_version")),
    )

    op.create_table(
        "draw_cycles",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("label", sa.String(length=32), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("status", STATUS, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("range_min", sa.Integer(), nullable=False),
        sa.Column("range_max", sa.Integer(), nullable=False),
        sa.Column("winning_numbers", sa.JSON(), nullable=True),
        sa.Column("rare_numbers", sa.JSON(), nullable=True),
        sa.Column("common_numbers", sa.JSON(), nullable=True),
        sa.Column("participant_count", sa.Integer(), nullable=False),
        sa.Column("eligible_count", sa.Integer(), nullable=False),
        sa.Column("cutoff_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tier_config_version", sa.Integer(), nullable=True),
        sa.Column("contribution_cents", sa.Integer(), nullable=True),
        sa.Column("tier5_percent", sa.Integer(), nullable=True),
        sa.Column("tier4_percent", sa.Integer(), nullable=True),
        sa.Column("tier3_percent", sa.Integer(), nullable=True),
        sa.Column("jackpot_cap_cents", sa.Integer(), nullable=True),
        sa.Column("base_pool_cents", sa.Integer(), nullable=False),
        sa.Column("rollover_in_cents", sa.Integer(), nullable=False),
        sa.Column("carry_in_cents", sa.Integer(), nullable=False),
        sa.Column("cap_diversion_cents", sa.Integer(), nullable=False),
        sa.Column("jackpot_cap_reached", sa.Boolean(), nullable=False),
        sa.Column("tier5_pool_cents", sa.Integer(), nullable=False),
        sa.Column("tier4_pool_cents", sa.Integer(), nullable=False),
        sa.Column("tier3_pool_cents", sa.Integer(), nullable=False),
        sa.Column("tier5_winners", sa.Integer(), nullable=False),
        sa.Column("tier4_winners", sa.Integer(), nullable=False),
        sa.Column("tier3_winners", sa.Integer(), nullable=False),
        sa.Column("tier5_payout_cents", sa.Integer(), nullable=False),
        sa.Column("tier4_payout_cents", sa.Integer(), nullable=False),
        sa.Column("tier3_payout_cents", sa.Integer(), nullable=False),
        sa.Column("remainder_cents", sa.Integer(), nullable=False),
        sa.Column("rollover_out_cents", sa.Integer(), nullable=False),
        sa.Column("carry_out_cents", sa.Integer(), nullable=False),
        sa.Column("drawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draw_cycles")),
        sa.UniqueConstraint("label", name=op.f("uq_draw_cycles_label")),
        sa.UniqueConstraint("period_start", name=op.f("uq_draw_cycles_period_start")),
    )
    op.create_index("ix_draw_cycles_status", "draw_cycles", ["status"], unique=False)
    op.create_index(
        "uq_draw_cycles_single_open",
        "draw_cycles",
        ["status"],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    op.create_table(
        "winning_entries",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("cycle_id", ID, nullable=False),
        sa.Column("participant_id", ID, nullable=False),
        sa.Column("match_tier", sa.Integer(), nullable=False),
        sa.Column("scores", sa.JSON(), nullable=False),
        sa.Column("matched_numbers", sa.JSON(), nullable=False),
        sa.Column("gross_cents", sa.Integer(), nullable=False),
        sa.Column("donation_percentage", sa.Integer(), nullable=False),
        sa.Column("donation_cents", sa.Integer(), nullable=False),
        sa.Column("net_cents", sa.Integer(), nullable=False),
        sa.Column("charity_id", ID, nullable=True),
        sa.Column("status", STATUS, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("verified_by_admin_id", ID, nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_by_admin_id", ID, nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("match_tier IN (3, 4, 5)", name=op.f("ck_winning_entries_match_tier_enum")),
        sa.CheckConstraint(
            "gross_cents = donation_cents + net_cents", name=op.f("ck_winning_entries_net_balance")
        ),
        sa.ForeignKeyConstraint(
            ["charity_id"], ["charities.id"], name=op.f("fk_winning_entries_charity_id_charities"), ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["cycle_id"], ["draw_cycles.id"], name=op.f("fk_winning_entries_cycle_id_draw_cycles"), ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["paid_by_admin_id"],
            ["admins.id"],
            name=op.f("fk_winning_entries_paid_by_admin_id_admins"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["participant_id"],
            ["participants.id"],
            name=op.f("fk_winning_entries_participant_id_participants"),
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["verified_by_admin_id"],
            ["admins.id"],
            name=op.f("fk_winning_entries_verified_by_admin_id_admins"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_winning_entries")),
        sa.UniqueConstraint("cycle_id", "participant_id", name="uq_winning_entry_per_cycle"),
    )
    op.create_index("ix_winning_entries_cycle_tier", "winning_entries", ["cycle_id", "match_tier"], unique=False)
    op.create_index(
        op.f("ix_winning_entries_participant_id"), "winning_entries", ["participant_id"], unique=False
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("actor_type", STATUS, nullable=False),
        sa.Column("actor_admin_id", ID, nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("subject_table", sa.String(length=50), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=True),
        sa.Column("details_json", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("actor_type IN ('system','admin')", name=op.f("ck_audit_logs_actor_type_enum")),
        sa.ForeignKeyConstraint(
            ["actor_admin_id"], ["admins.id"], name=op.f("fk_audit_logs_actor_admin_id_admins"), ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_logs")),
    )
    op.create_index(op.f("ix_audit_logs_action"), "audit_logs", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_audit_logs_action"), table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index(op.f("ix_winning_entries_participant_id"), table_name="winning_entries")
    op.drop_index("ix_winning_entries_cycle_tier", table_name="winning_entries")
    op.drop_table("winning_entries")
    op.drop_index("uq_draw_cycles_single_open", table_name="draw_cycles")
    op.drop_index("ix_draw_cycles_status", table_name="draw_cycles")
    op.drop_table("draw_cycles")
    op.drop_table("tier_configurations")
    op.drop_index("ix_score_entries_participant_entered", table_name="score_entries")
    op.drop_table("score_entries")
    op.drop_table("participants")
    op.drop_table("charities")
    op.drop_index(op.f("ix_admins_id"), table_name="admins")
    op.drop_index(op.f("ix_admins_email"), table_name="admins")
    op.drop_table("admins")
