"""Proposal quota router: account balance and monthly allotment administration."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.deps import get_cache, get_current_user, get_db, http_error
from gigboard.exceptions import GigboardError
from gigboard.models.account_models import (
    ProposalAccountResponse,
    RefreshSweepResponse,
    RefreshTrackerCreate,
    RefreshTrackerResponse,
)
from gigboard.security import rate_limit_sensitive
from gigboard.services.cache_service import CacheCoordinator
from gigboard.services.quota_ledger import QuotaLedger, period_label

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["proposal-accounts"])


def _require_admin(current_user: dict) -> None:
    if current_user["role"] != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )


@router.get("/me/proposal-account", response_model=ProposalAccountResponse)
async def get_my_proposal_account(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Return the caller's remaining proposal balance."""
    try:
        account = await QuotaLedger(db).get_account(current_user["id"])
    except GigboardError as e:
        raise http_error(e) from e
    return ProposalAccountResponse.model_validate(account)


@router.post(
    "/admin/refresh-trackers",
    response_model=RefreshTrackerResponse,
    status_code=status.HTTP_201_CREATED,
)
@rate_limit_sensitive()
async def publish_refresh_tracker(
    request: Request,
    body: RefreshTrackerCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Publish the allotment for a month. Existing months cannot be rewritten."""
    _require_admin(current_user)
    try:
        tracker = await QuotaLedger(db).publish_allotment(
            body.month, body.year, body.allotment
        )
    except GigboardError as e:
        raise http_error(e) from e
    return RefreshTrackerResponse.model_validate(tracker)


@router.post("/admin/quota-refresh", response_model=RefreshSweepResponse)
@rate_limit_sensitive()
async def run_quota_refresh(
    request: Request,
    db: AsyncSession = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
    current_user: dict = Depends(get_current_user),
):
    """Run the monthly refresh sweep now (idempotent within a month)."""
    _require_admin(current_user)
    now = datetime.now(timezone.utc)
    ledger = QuotaLedger(db, cache)
    allotment = await ledger.current_allotment(now)
    credited = await ledger.refresh_all(now)
    return RefreshSweepResponse(
        period=period_label(now), allotment=allotment, accounts_refreshed=credited
    )
