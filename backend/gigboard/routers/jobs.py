"""Jobs router: clients post jobs that freelancers submit proposals to."""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.deps import get_current_user, get_db, http_error
from gigboard.exceptions import GigboardError
from gigboard.models.job_models import JobCreate, JobResponse
from gigboard.models.proposal_models import ProposalListResponse, ProposalResponse
from gigboard.services.job_service import JobService
from gigboard.services.proposal_store import ProposalStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["jobs"])


@router.post("/jobs", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(
    body: JobCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    try:
        job = await JobService.create_job(
            db, current_user["id"], current_user["role"], body
        )
    except GigboardError as e:
        raise http_error(e) from e
    return JobResponse.model_validate(job)


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    try:
        job = await JobService.get_job(db, job_id)
    except GigboardError as e:
        raise http_error(e) from e
    return JobResponse.model_validate(job)


@router.get("/jobs/{job_id}/proposals", response_model=ProposalListResponse)
async def list_job_proposals(
    job_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """List proposals received on a job (job owner only)."""
    try:
        rows = await ProposalStore(db).list_for_job(job_id, current_user["id"])
    except GigboardError as e:
        raise http_error(e) from e
    return ProposalListResponse(
        proposals=[ProposalResponse.model_validate(p) for p in rows],
        total=len(rows),
    )
