"""Job ORM model: a posting by a client that freelancers submit proposals to."""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Numeric, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from gigboard.models.db.base import Base, JSONList, TimestampMixin

__all__ = ["Job"]


class Job(TimestampMixin, Base):
    __tablename__ = "jobs"
    __table_args__ = (
        CheckConstraint(
            "timeline IN ('small','medium','large')", name="jobs_timeline_check"
        ),
        CheckConstraint(
            "payment_type IN ('fixed','hourly')", name="jobs_payment_type_check"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    job_title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    skills: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    timeline: Mapped[str] = mapped_column(Text, nullable=False)
    total_time: Mapped[str] = mapped_column(Text, nullable=False)
    expertise_level: Mapped[str] = mapped_column(Text, nullable=False)

    # Pricing
    payment_type: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    fixed_payment_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_per_hour_min: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    price_per_hour_max: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )

    files: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Client-planned milestones, kept as plain data; proposals carry their own.
    milestones: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
