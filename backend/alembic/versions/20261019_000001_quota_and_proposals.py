"""Create quota, profile, job and proposal tables.

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id", UUID(), server_default=sa.text("gen_random_uuid()"), primary_key=True
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # --- Quota accounting ---
    op.create_table(
        "proposal_accounts",
        _id(),
        sa.Column("owner_id", UUID(), nullable=False),
        sa.Column("role", sa.Text(), server_default="freelancer", nullable=False),
        sa.Column("balance", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_refreshed_period", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="proposal_accounts_balance_check"),
        sa.CheckConstraint("role = 'freelancer'", name="proposal_accounts_role_check"),
    )
    op.create_index(
        "ix_proposal_accounts_owner_id", "proposal_accounts", ["owner_id"], unique=True
    )

    op.create_table(
        "refresh_trackers",
        _id(),
        sa.Column("month", sa.Text(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("allotment", sa.Integer(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.UniqueConstraint("month", "year", name="refresh_trackers_month_year_key"),
        sa.CheckConstraint("allotment >= 0", name="refresh_trackers_allotment_check"),
    )

    # --- Profiles ---
    op.create_table(
        "profiles",
        _id(),
        sa.Column("user_id", UUID(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("job_title", sa.Text(), nullable=False),
        sa.Column("profile_description", sa.Text(), nullable=False),
        sa.Column("city_name", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("country", sa.Text(), nullable=True),
        sa.Column("zipcode", sa.Text(), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("skills", JSONB(), server_default="[]", nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=True)

    op.create_table(
        "profile_portfolio_items",
        _id(),
        sa.Column(
            "profile_id",
            UUID(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("image", sa.Text(), nullable=False),
        sa.Column("project_link", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )
    op.create_table(
        "profile_education",
        _id(),
        sa.Column(
            "profile_id",
            UUID(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("institution", sa.Text(), nullable=False),
        sa.Column("degree", sa.Text(), nullable=False),
        sa.Column("field_of_study", sa.Text(), nullable=False),
        sa.Column("graduation_year", sa.Integer(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )
    op.create_table(
        "profile_experience",
        _id(),
        sa.Column(
            "profile_id",
            UUID(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("company_name", sa.Text(), nullable=False),
        sa.Column("position", sa.Text(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )

    # --- Jobs ---
    op.create_table(
        "jobs",
        _id(),
        sa.Column("client_id", UUID(), nullable=False),
        sa.Column("job_title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("skills", JSONB(), server_default="[]", nullable=False),
        sa.Column("timeline", sa.Text(), nullable=False),
        sa.Column("total_time", sa.Text(), nullable=False),
        sa.Column("expertise_level", sa.Text(), nullable=False),
        sa.Column("payment_type", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("fixed_payment_type", sa.Text(), nullable=True),
        sa.Column("price_per_hour_min", sa.Numeric(10, 2), nullable=True),
        sa.Column("price_per_hour_max", sa.Numeric(10, 2), nullable=True),
        sa.Column("files", JSONB(), server_default="[]", nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("milestones", JSONB(), server_default="[]", nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "timeline IN ('small','medium','large')", name="jobs_timeline_check"
        ),
        sa.CheckConstraint(
            "payment_type IN ('fixed','hourly')", name="jobs_payment_type_check"
        ),
    )
    op.create_index("ix_jobs_client_id", "jobs", ["client_id"])

    # --- Proposals ---
    op.create_table(
        "proposals",
        _id(),
        sa.Column(
            "job_id",
            UUID(),
            sa.ForeignKey("jobs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("freelancer_id", UUID(), nullable=False),
        sa.Column("client_id", UUID(), nullable=False),
        sa.Column("cover_letter", sa.Text(), nullable=False),
        sa.Column("estimated_time", sa.Text(), nullable=False),
        sa.Column("files", JSONB(), server_default="[]", nullable=False),
        sa.Column("proposal_type", sa.Text(), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "proposal_type IN ('fixed','milestones')",
            name="proposals_proposal_type_check",
        ),
        sa.CheckConstraint(
            "status IN ('pending','viewed','accepted','rejected','completed','withdrawn')",
            name="proposals_status_check",
        ),
        sa.CheckConstraint("total_price > 0", name="proposals_total_price_check"),
    )
    op.create_index("ix_proposals_job_id", "proposals", ["job_id"])
    op.create_index("ix_proposals_freelancer_id", "proposals", ["freelancer_id"])
    op.create_index("ix_proposals_client_id", "proposals", ["client_id"])

    op.create_table(
        "proposal_milestones",
        _id(),
        sa.Column(
            "proposal_id",
            UUID(),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "status IN ('pending','completed','cancelled')",
            name="proposal_milestones_status_check",
        ),
        sa.CheckConstraint("price > 0", name="proposal_milestones_price_check"),
    )

    op.create_table(
        "proposal_status_history",
        _id(),
        sa.Column(
            "proposal_id",
            UUID(),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_status", sa.Text(), nullable=True),
        sa.Column("new_status", sa.Text(), nullable=False),
        sa.Column("changed_by", UUID(), nullable=True),
        sa.Column("actor_role", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
    )


def downgrade() -> None:
    op.drop_table("proposal_status_history")
    op.drop_table("proposal_milestones")
    op.drop_table("proposals")
    op.drop_table("jobs")
    op.drop_table("profile_experience")
    op.drop_table("profile_education")
    op.drop_table("profile_portfolio_items")
    op.drop_table("profiles")
    op.drop_table("refresh_trackers")
    op.drop_table("proposal_accounts")
