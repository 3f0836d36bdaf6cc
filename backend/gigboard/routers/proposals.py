"""Proposals router: submission, status lifecycle, and milestone progress."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.deps import _safe_error, get_cache, get_current_user, get_db, http_error
from gigboard.exceptions import GigboardError
from gigboard.models.proposal_models import (
    MilestoneStatusUpdateRequest,
    ProposalCreate,
    ProposalListResponse,
    ProposalResponse,
    StatusHistoryEntry,
    StatusUpdateRequest,
)
from gigboard.services.cache_service import CacheCoordinator
from gigboard.services.proposal_store import ProposalStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["proposals"])


# ---------------------------------------------------------------------------
# POST /proposals
# ---------------------------------------------------------------------------


@router.post(
    "/proposals", response_model=ProposalResponse, status_code=status.HTTP_201_CREATED
)
async def submit_proposal(
    body: ProposalCreate,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    """Submit a proposal, spending one unit of the caller's proposal quota.

    Raises:
        HTTPException 400: Pricing invariants violated.
        HTTPException 403: Caller is not a freelancer.
        HTTPException 404: Job or proposal account not found.
        HTTPException 409: Proposal quota exhausted.
    """
    try:
        proposal = await ProposalStore(db, cache=cache).create(
            body, current_user["id"], current_user["role"]
        )
    except GigboardError as e:
        raise http_error(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("submitting proposal", e),
        ) from e
    return ProposalResponse.model_validate(proposal)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/me/proposals", response_model=ProposalListResponse)
async def list_my_proposals(
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """List the caller's submitted proposals, newest first."""
    rows, total = await ProposalStore(db).list_for_freelancer(
        current_user["id"], status_filter=status_filter, limit=limit, offset=offset
    )
    return ProposalListResponse(
        proposals=[ProposalResponse.model_validate(p) for p in rows],
        total=total,
    )


@router.get("/proposals/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    try:
        proposal = await ProposalStore(db).get(proposal_id, viewer_id=current_user["id"])
    except GigboardError as e:
        raise http_error(e) from e
    return ProposalResponse.model_validate(proposal)


@router.get(
    "/proposals/{proposal_id}/history", response_model=list[StatusHistoryEntry]
)
async def get_proposal_history(
    proposal_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Status changes of a proposal, oldest first (parties only)."""
    store = ProposalStore(db)
    try:
        await store.get(proposal_id, viewer_id=current_user["id"])
        rows = await store.history(proposal_id)
    except GigboardError as e:
        raise http_error(e) from e
    return [StatusHistoryEntry.model_validate(r) for r in rows]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post("/proposals/{proposal_id}/status", response_model=ProposalResponse)
async def update_proposal_status(
    proposal_id: uuid.UUID,
    body: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Move a proposal along its status graph as the calling party."""
    try:
        proposal = await ProposalStore(db).transition(
            proposal_id,
            current_user["role"],
            body.new_status,
            actor_id=current_user["id"],
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProposalResponse.model_validate(proposal)


@router.post(
    "/proposals/{proposal_id}/milestones/{milestone_id}/status",
    response_model=ProposalResponse,
)
async def update_milestone_status(
    proposal_id: uuid.UUID,
    milestone_id: uuid.UUID,
    body: MilestoneStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Complete or cancel a milestone of an accepted proposal."""
    try:
        proposal = await ProposalStore(db).set_milestone_status(
            proposal_id, milestone_id, body.new_status, actor_id=current_user["id"]
        )
    except GigboardError as e:
        raise http_error(e) from e
    return ProposalResponse.model_validate(proposal)
