"""Pydantic schemas for proposal accounts and monthly refresh trackers."""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

MonthLabel = Literal[
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


class ProposalAccountResponse(BaseModel):
    """A freelancer's proposal-submission balance."""

    owner_id: uuid.UUID
    role: str = "freelancer"
    balance: int
    last_refreshed_period: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RefreshTrackerCreate(BaseModel):
    """Request to publish the allotment for a calendar month."""

    month: MonthLabel = Field(..., description="Three-letter month label, e.g. 'Jan'")
    year: int = Field(..., ge=2000, le=9999)
    allotment: int = Field(..., ge=0, description="Proposals granted per account")


class RefreshTrackerResponse(BaseModel):
    """A published monthly allotment."""

    id: uuid.UUID
    month: str
    year: int
    allotment: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RefreshSweepResponse(BaseModel):
    """Result of running the monthly refresh sweep."""

    period: str
    allotment: int
    accounts_refreshed: int
