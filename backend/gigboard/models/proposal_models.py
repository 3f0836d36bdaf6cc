"""Pydantic schemas for proposals and their milestones."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

ProposalType = Literal["fixed", "milestones"]
ProposalStatus = Literal[
    "pending", "viewed", "accepted", "rejected", "completed", "withdrawn"
]
MilestoneStatus = Literal["pending", "completed", "cancelled"]


class MilestoneInput(BaseModel):
    description: str = Field(..., min_length=1)
    due_date: datetime
    price: Decimal = Field(..., gt=0)


class ProposalCreate(BaseModel):
    """Request to submit a proposal against a job."""

    job_id: uuid.UUID
    client_id: uuid.UUID
    cover_letter: str = Field(..., min_length=1, max_length=20000)
    estimated_time: str = Field(..., min_length=1, max_length=200)
    proposal_type: ProposalType
    milestones: Optional[List[MilestoneInput]] = None
    total_price: Decimal = Field(..., gt=0)
    files: List[str] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    new_status: ProposalStatus


class MilestoneStatusUpdateRequest(BaseModel):
    new_status: MilestoneStatus


class MilestoneResponse(BaseModel):
    id: uuid.UUID
    sort_order: int = 0
    description: str
    due_date: datetime
    price: float
    status: str = "pending"

    class Config:
        from_attributes = True


class ProposalResponse(BaseModel):
    """Full proposal response (mirrors all DB columns)."""

    id: uuid.UUID
    job_id: uuid.UUID
    freelancer_id: uuid.UUID
    client_id: uuid.UUID
    cover_letter: str
    estimated_time: str
    proposal_type: str
    milestones: List[MilestoneResponse] = Field(default_factory=list)
    total_price: float
    status: str = "pending"
    files: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProposalListResponse(BaseModel):
    proposals: List[ProposalResponse]
    total: int


class StatusHistoryEntry(BaseModel):
    id: uuid.UUID
    old_status: Optional[str] = None
    new_status: str
    changed_by: Optional[uuid.UUID] = None
    actor_role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
