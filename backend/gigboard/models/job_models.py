"""Pydantic schemas for job postings."""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class JobMilestoneInput(BaseModel):
    description: str = Field(..., min_length=10)
    due_date: str
    price: float
    status: Literal["pending", "completed", "cancelled"] = "pending"


class HourlyRange(BaseModel):
    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)


class JobCreate(BaseModel):
    """Request to post a new job."""

    job_title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    skills: List[str] = Field(default_factory=list)
    timeline: Literal["small", "medium", "large"]
    total_time: Literal["1 month", "3 months", "6monthsormore"]
    expertise_level: Literal["entry", "intermediate", "expert"]
    payment_type: Literal["fixed", "hourly"]
    price: Optional[float] = None
    fixed_payment_type: Optional[Literal["milestone", "project"]] = None
    price_per_hour: Optional[HourlyRange] = None
    files: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    milestones: Optional[List[JobMilestoneInput]] = None


class JobResponse(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    job_title: str
    description: str
    skills: List[str] = Field(default_factory=list)
    timeline: str
    total_time: str
    expertise_level: str
    payment_type: str
    price: Optional[float] = None
    fixed_payment_type: Optional[str] = None
    price_per_hour_min: Optional[float] = None
    price_per_hour_max: Optional[float] = None
    files: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    milestones: List[dict] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
