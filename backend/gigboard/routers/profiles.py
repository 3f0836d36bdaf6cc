"""Profiles router: freelancer provisioning, cached reads, and edits.

Creating a profile also opens the freelancer's proposal account seeded
with the current month's allotment.
"""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.deps import _safe_error, get_cache, get_current_user, get_db, http_error
from gigboard.exceptions import GigboardError
from gigboard.models.account_models import ProposalAccountResponse
from gigboard.models.profile_models import (
    EducationInput,
    ExperienceInput,
    PortfolioItemInput,
    ProfileFields,
    ProfileListResponse,
    ProfileResponse,
    ProfileView,
    ProvisionResponse,
)
from gigboard.services.cache_service import CacheCoordinator
from gigboard.services.profile_service import ProfileService
from gigboard.services.provisioning_service import ProvisioningService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["profiles"])


# ---------------------------------------------------------------------------
# POST /profile
# ---------------------------------------------------------------------------


@router.post(
    "/profile", response_model=ProvisionResponse, status_code=status.HTTP_201_CREATED
)
async def create_profile(
    body: ProfileFields,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    """Create the caller's freelancer profile and proposal account.

    Raises:
        HTTPException 403: Caller is not a freelancer.
        HTTPException 409: Caller already has a profile.
    """
    try:
        profile, account = await ProvisioningService(db, cache=cache).provision_freelancer(
            current_user["id"],
            body,
            datetime.now(timezone.utc),
            current_user["role"],
        )
    except GigboardError as e:
        raise http_error(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("creating profile", e),
        ) from e

    return ProvisionResponse(
        profile=ProfileResponse.model_validate(profile),
        proposal_account=ProposalAccountResponse.model_validate(account),
    )


# ---------------------------------------------------------------------------
# PUT /profile
# ---------------------------------------------------------------------------


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    body: ProfileFields,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    """Update the caller's profile fields."""
    try:
        profile = await ProfileService(db, cache).update_profile(current_user["id"], body)
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


# ---------------------------------------------------------------------------
# GET /profiles, GET /profile/{user_id}
# ---------------------------------------------------------------------------


@router.get("/profiles", response_model=ProfileListResponse)
async def list_profiles(
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
):
    """List every profile (served from a TTL cache, may lag recent edits)."""
    try:
        return await ProfileService(db, cache).list_profiles()
    except GigboardError as e:
        raise http_error(e) from e


@router.get("/profile/{user_id}", response_model=ProfileView)
async def get_profile(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    """Fetch a profile; the owner also sees their proposal account."""
    try:
        return await ProfileService(db, cache).get_profile_view(
            user_id, viewer_id=current_user["id"]
        )
    except GigboardError as e:
        raise http_error(e) from e


# ---------------------------------------------------------------------------
# Sub-collections
# ---------------------------------------------------------------------------


@router.post(
    "/profile/portfolio",
    response_model=ProfileResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_portfolio_item(
    body: PortfolioItemInput,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).add_portfolio_item(
            current_user["id"], body
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


@router.put("/profile/portfolio/{item_id}", response_model=ProfileResponse)
async def update_portfolio_item(
    item_id: uuid.UUID,
    body: PortfolioItemInput,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).update_portfolio_item(
            current_user["id"], item_id, body
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


@router.delete("/profile/portfolio/{item_id}", response_model=ProfileResponse)
async def delete_portfolio_item(
    item_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).delete_portfolio_item(
            current_user["id"], item_id
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


@router.post(
    "/profile/education",
    response_model=ProfileResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_education(
    body: EducationInput,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).add_education(current_user["id"], body)
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


@router.put("/profile/education/{entry_id}", response_model=ProfileResponse)
async def update_education(
    entry_id: uuid.UUID,
    body: EducationInput,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).update_education(
            current_user["id"], entry_id, body
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


@router.delete("/profile/education/{entry_id}", response_model=ProfileResponse)
async def delete_education(
    entry_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).delete_education(
            current_user["id"], entry_id
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


@router.post(
    "/profile/experience",
    response_model=ProfileResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_experience(
    body: ExperienceInput,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).add_experience(current_user["id"], body)
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


@router.put("/profile/experience/{entry_id}", response_model=ProfileResponse)
async def update_experience(
    entry_id: uuid.UUID,
    body: ExperienceInput,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).update_experience(
            current_user["id"], entry_id, body
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)


@router.delete("/profile/experience/{entry_id}", response_model=ProfileResponse)
async def delete_experience(
    entry_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    try:
        profile = await ProfileService(db, cache).delete_experience(
            current_user["id"], entry_id
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProfileResponse.model_validate(profile)
