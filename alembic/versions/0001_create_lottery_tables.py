"""create lottery tables

Revision ID: 0001_create_lottery_tables
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_create_lottery_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "lottery_rounds",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("internal_name", sa.String(length=100), nullable=False),
        sa.Column("phase", sa.String(length=20), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("last_draw_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("prize_pool", sa.String(length=78), nullable=False),
        sa.Column("fee_pool", sa.String(length=78), nullable=False),
        sa.Column("last_winner", sa.String(length=100), nullable=True),
        sa.Column("last_payout", sa.String(length=78), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "phase IN ('open','drawing')", name=op.f("ck_lottery_rounds_phase_enum")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_rounds")),
        sa.UniqueConstraint("internal_name", name="lottery_rounds_internal_name_key"),
    )

    op.create_table(
        "lottery_entrants",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("identity", sa.String(length=100), nullable=False),
        sa.Column("prediction", sa.JSON(), nullable=False),
        sa.Column("paid_value", sa.String(length=78), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_lottery_entrants_round_id_lottery_rounds"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_entrants")),
        sa.UniqueConstraint(
            "round_id", "position", name="uq_lottery_entrant_position"
        ),
    )
    op.create_index(
        op.f("ix_lottery_entrants_round_id"),
        "lottery_entrants",
        ["round_id"],
        unique=False,
    )

    op.create_table(
        "lottery_registration_flags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("identity", sa.String(length=100), nullable=False),
        sa.Column("registered", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_lottery_registration_flags_round_id_lottery_rounds"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_registration_flags")),
        sa.UniqueConstraint("round_id", "identity", name="uq_lottery_flag_identity"),
    )
    op.create_index(
        op.f("ix_lottery_registration_flags_round_id"),
        "lottery_registration_flags",
        ["round_id"],
        unique=False,
    )

    op.create_table(
        "lottery_draw_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.String(length=78), nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("random_words", sa.JSON(), nullable=True),
        sa.Column("requested_at", sa.BigInteger(), nullable=False),
        sa.Column("fulfilled_at", sa.BigInteger(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','fulfilled')",
            name=op.f("ck_lottery_draw_requests_status_enum"),
        ),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_lottery_draw_requests_round_id_lottery_rounds"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_draw_requests")),
        sa.UniqueConstraint("request_id", name="uq_lottery_draw_request_id"),
    )
    op.create_index(
        op.f("ix_lottery_draw_requests_round_id"),
        "lottery_draw_requests",
        ["round_id"],
        unique=False,
    )
    op.create_index(
        "ix_lottery_draw_requests_status",
        "lottery_draw_requests",
        ["status"],
        unique=False,
    )

    op.create_table(
        "lottery_draw_outcomes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.String(length=78), nullable=False),
        sa.Column("winning_numbers", sa.JSON(), nullable=False),
        sa.Column("entrant_count", sa.Integer(), nullable=False),
        sa.Column("winner_count", sa.Integer(), nullable=False),
        sa.Column("pool_before", sa.String(length=78), nullable=False),
        sa.Column("share", sa.String(length=78), nullable=False),
        sa.Column("rolled_over", sa.Boolean(), nullable=False),
        sa.Column("settled_at", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_lottery_draw_outcomes_round_id_lottery_rounds"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_draw_outcomes")),
    )
    op.create_index(
        op.f("ix_lottery_draw_outcomes_round_id"),
        "lottery_draw_outcomes",
        ["round_id"],
        unique=False,
    )

    op.create_table(
        "lottery_payouts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("draw_request_id", sa.Integer(), nullable=False),
        sa.Column("outcome_id", sa.Integer(), nullable=True),
        sa.Column("identity", sa.String(length=100), nullable=False),
        sa.Column("amount", sa.String(length=78), nullable=False),
        sa.Column("match_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("sent_at", sa.BigInteger(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','sent')", name=op.f("ck_lottery_payouts_status_enum")
        ),
        sa.ForeignKeyConstraint(
            ["draw_request_id"],
            ["lottery_draw_requests.id"],
            name=op.f("fk_lottery_payouts_draw_request_id_lottery_draw_requests"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["outcome_id"],
            ["lottery_draw_outcomes.id"],
            name=op.f("fk_lottery_payouts_outcome_id_lottery_draw_outcomes"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_payouts")),
        sa.UniqueConstraint(
            "draw_request_id",
            "identity",
            name="uq_lottery_payout_request_identity",
        ),
    )
    op.create_index(
        op.f("ix_lottery_payouts_draw_request_id"),
        "lottery_payouts",
        ["draw_request_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_lottery_payouts_outcome_id"),
        "lottery_payouts",
        ["outcome_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_lottery_payouts_identity"),
        "lottery_payouts",
        ["identity"],
        unique=False,
    )

    op.create_table(
        "lottery_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_lottery_events_round_id_lottery_rounds"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_events")),
    )
    op.create_index(
        "ix_lottery_events_round_name",
        "lottery_events",
        ["round_id", "name"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_lottery_events_round_name", table_name="lottery_events")
    op.drop_table("lottery_events")
    op.drop_index(op.f("ix_lottery_payouts_identity"), table_name="lottery_payouts")
    op.drop_index(op.f("ix_lottery_payouts_outcome_id"), table_name="lottery_payouts")
    op.drop_index(
        op.f("ix_lottery_payouts_draw_request_id"), table_name="lottery_payouts"
    )
    op.drop_table("lottery_payouts")
    op.drop_index(
        op.f("ix_lottery_draw_outcomes_round_id"), table_name="lottery_draw_outcomes"
    )
    op.drop_table("lottery_draw_outcomes")
    op.drop_index("ix_lottery_draw_requests_status", table_name="lottery_draw_requests")
    op.drop_index(
        op.f("ix_lottery_draw_requests_round_id"), table_name="lottery_draw_requests"
    )
    op.drop_table("lottery_draw_requests")
    op.drop_index(
        op.f("ix_lottery_registration_flags_round_id"),
        table_name="lottery_registration_flags",
    )
    op.drop_table("lottery_registration_flags")
    op.drop_index(op.f("ix_lottery_entrants_round_id"), table_name="lottery_entrants")
    op.drop_table("lottery_entrants")
    op.drop_table("lottery_rounds")
