"""Proposal ORM models.

A proposal is submitted by a freelancer against a job and addressed to the
job's client.  Milestone-priced proposals own an ordered list of milestones;
every status change is recorded in ``proposal_status_history``.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gigboard.models.db.base import Base, JSONList, TimestampMixin, utcnow

__all__ = ["Proposal", "ProposalMilestone", "ProposalStatusHistory"]


class Proposal(TimestampMixin, Base):
    __tablename__ = "proposals"
    __table_args__ = (
        CheckConstraint(
            "proposal_type IN ('fixed','milestones')",
            name="proposals_proposal_type_check",
        ),
        CheckConstraint(
            "status IN ('pending','viewed','accepted','rejected','completed','withdrawn')",
            name="proposals_status_check",
        ),
        CheckConstraint("total_price > 0", name="proposals_total_price_check"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # References (immutable after creation)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    freelancer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Content
    cover_letter: Mapped[str] = mapped_column(Text, nullable=False)
    estimated_time: Mapped[str] = mapped_column(Text, nullable=False)
    files: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)

    # Pricing
    proposal_type: Mapped[str] = mapped_column(Text, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default="pending", default="pending"
    )

    milestones: Mapped[list["ProposalMilestone"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProposalMilestone.sort_order",
    )


class ProposalMilestone(Base):
    __tablename__ = "proposal_milestones"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','completed','cancelled')",
            name="proposal_milestones_status_check",
        ),
        CheckConstraint("price > 0", name="proposal_milestones_price_check"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    proposal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default="pending", default="pending"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


class ProposalStatusHistory(Base):
    __tablename__ = "proposal_status_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    proposal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False
    )
    old_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_status: Mapped[str] = mapped_column(Text, nullable=False)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    actor_role: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
