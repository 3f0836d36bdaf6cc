"""Pydantic schemas for freelancer profiles and their sub-collections."""

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from gigboard.models.account_models import ProposalAccountResponse


class ProfileFields(BaseModel):
    """Editable scalar profile fields (create and update share one schema)."""

    job_title: str = Field(..., min_length=2, max_length=200)
    profile_description: str = Field(..., min_length=10, max_length=5000)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    city_name: Optional[str] = Field(None, max_length=200)
    address: Optional[str] = Field(None, max_length=500)
    country: Optional[str] = Field(None, max_length=100)
    zipcode: Optional[str] = Field(None, max_length=20)
    hourly_rate: Optional[float] = Field(None, ge=0)
    skills: List[str] = Field(default_factory=list)


class PortfolioItemInput(BaseModel):
    image: str = Field(..., min_length=1)
    project_link: str = Field(..., min_length=1)


class EducationInput(BaseModel):
    institution: str = Field(..., min_length=1)
    degree: str = Field(..., min_length=1)
    field_of_study: str = Field(..., min_length=1)
    graduation_year: int = Field(..., ge=1900, le=2100)


class ExperienceInput(BaseModel):
    company_name: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1)
    start_date: date
    end_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=5000)


class PortfolioItemResponse(PortfolioItemInput):
    id: uuid.UUID

    class Config:
        from_attributes = True


class EducationResponse(EducationInput):
    id: uuid.UUID

    class Config:
        from_attributes = True


class ExperienceResponse(ExperienceInput):
    id: uuid.UUID

    class Config:
        from_attributes = True


class ProfileResponse(BaseModel):
    """Full profile (mirrors all DB columns plus sub-collections)."""

    id: uuid.UUID
    user_id: uuid.UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    job_title: str
    profile_description: str
    city_name: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    zipcode: Optional[str] = None
    hourly_rate: Optional[float] = None
    skills: List[str] = Field(default_factory=list)
    portfolio: List[PortfolioItemResponse] = Field(default_factory=list)
    education: List[EducationResponse] = Field(default_factory=list)
    experience: List[ExperienceResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProvisionResponse(BaseModel):
    """Result of creating a freelancer profile together with its account."""

    message: str = "Profile created successfully"
    profile: ProfileResponse
    proposal_account: ProposalAccountResponse


class ProfileView(BaseModel):
    """A single profile as seen by a viewer.

    ``proposal_account`` is populated only when the viewer owns the profile.
    """

    source: str = Field(..., description="'cache' or 'fresh'")
    is_owner: bool = False
    profile: Dict[str, Any]
    proposal_account: Optional[Dict[str, Any]] = None


class ProfileListResponse(BaseModel):
    source: str
    profiles: List[Dict[str, Any]]
