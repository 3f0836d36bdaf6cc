"""Quota ORM models: per-freelancer proposal accounts and monthly allotments."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from gigboard.models.db.base import Base, TimestampMixin, utcnow

__all__ = ["ProposalAccount", "RefreshTracker"]


class ProposalAccount(TimestampMixin, Base):
    __tablename__ = "proposal_accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="proposal_accounts_balance_check"),
        CheckConstraint("role = 'freelancer'", name="proposal_accounts_role_check"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # One account per freelancer; the unique index is what makes
    # concurrent account openings resolve to a single row.
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, nullable=False, unique=True, index=True
    )
    role: Mapped[str] = mapped_column(
        Text, nullable=False, server_default="freelancer", default="freelancer"
    )
    balance: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="0", default=0
    )

    # "YYYY-MM" of the last month whose allotment was credited.
    last_refreshed_period: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class RefreshTracker(Base):
    __tablename__ = "refresh_trackers"
    __table_args__ = (
        UniqueConstraint("month", "year", name="refresh_trackers_month_year_key"),
        CheckConstraint("allotment >= 0", name="refresh_trackers_allotment_check"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    month: Mapped[str] = mapped_column(Text, nullable=False)  # "Jan" .. "Dec"
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    allotment: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
