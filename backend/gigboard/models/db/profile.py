"""Freelancer profile ORM models.

A profile owns three ordered sub-collections (portfolio, education,
experience) stored as child rows so each entry has its own id.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gigboard.models.db.base import Base, JSONList, TimestampMixin, utcnow

__all__ = ["EducationEntry", "ExperienceEntry", "PortfolioItem", "Profile"]


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, nullable=False, unique=True, index=True
    )

    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    job_title: Mapped[str] = mapped_column(Text, nullable=False)
    profile_description: Mapped[str] = mapped_column(Text, nullable=False)
    city_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    country: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    zipcode: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    skills: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)

    portfolio: Mapped[list["PortfolioItem"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PortfolioItem.created_at",
    )
    education: Mapped[list["EducationEntry"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="EducationEntry.created_at",
    )
    experience: Mapped[list["ExperienceEntry"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ExperienceEntry.created_at",
    )


class PortfolioItem(Base):
    __tablename__ = "profile_portfolio_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    image: Mapped[str] = mapped_column(Text, nullable=False)
    project_link: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class EducationEntry(Base):
    __tablename__ = "profile_education"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    institution: Mapped[str] = mapped_column(Text, nullable=False)
    degree: Mapped[str] = mapped_column(Text, nullable=False)
    field_of_study: Mapped[str] = mapped_column(Text, nullable=False)
    graduation_year: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class ExperienceEntry(Base):
    __tablename__ = "profile_experience"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
