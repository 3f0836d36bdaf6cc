"""Proposal and milestone lifecycle.

Status graph for proposals (initial ``pending``)::

    pending  -> viewed | withdrawn
    viewed   -> accepted | rejected | withdrawn
    accepted -> completed
    rejected, completed, withdrawn: terminal

Milestones move ``pending -> completed | cancelled`` and only while the
parent proposal is ``accepted``.  Submitting a proposal spends quota from
the freelancer's ``ProposalAccount`` in the same transaction as the insert.
"""

import logging
import os
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.exceptions import (
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from gigboard.models.db.job import Job
from gigboard.models.db.proposal import (
    Proposal,
    ProposalMilestone,
    ProposalStatusHistory,
)
from gigboard.models.proposal_models import ProposalCreate
from gigboard.services.cache_service import CacheCoordinator
from gigboard.services.quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)

PROPOSAL_SUBMISSION_COST = int(os.getenv("PROPOSAL_SUBMISSION_COST", "1"))

FIXED = "fixed"
MILESTONES = "milestones"

CLIENT = "client"
FREELANCER = "freelancer"

# ---------------------------------------------------------------------------
# Allowed status transitions
# ---------------------------------------------------------------------------
ALLOWED_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["viewed", "withdrawn"],
    "viewed": ["accepted", "rejected", "withdrawn"],
    "accepted": ["completed"],
    # Terminal states -- no outgoing transitions
    "rejected": [],
    "completed": [],
    "withdrawn": [],
}

# Which party may drive each target status.
TRANSITION_ACTORS: dict[str, frozenset[str]] = {
    "viewed": frozenset({CLIENT}),
    "accepted": frozenset({CLIENT}),
    "rejected": frozenset({CLIENT}),
    "withdrawn": frozenset({FREELANCER}),
    "completed": frozenset({CLIENT, FREELANCER}),
}

TERMINAL_STATUSES = frozenset(s for s, nxt in ALLOWED_TRANSITIONS.items() if not nxt)

MILESTONE_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["completed", "cancelled"],
    "completed": [],
    "cancelled": [],
}

_CENT = Decimal("0.01")


def _to_decimal(value: Any, field: str) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} is not a number", field=field) from e
    if not amount.is_finite():
        raise ValidationError(f"{field} is not a number", field=field)
    if amount.quantize(_CENT) != amount:
        raise ValidationError(f"{field} has more than two decimal places", field=field)
    return amount


def validate_pricing(
    proposal_type: str, milestones: Optional[Sequence[Any]], total_price: Any
) -> Decimal:
    """Check the kind/milestone/total invariants and return the total as Decimal.

    Raises:
        ValidationError: On any violated invariant.
    """
    total = _to_decimal(total_price, "total_price")
    if total <= 0:
        raise ValidationError("total_price must be positive", field="total_price")

    if proposal_type == MILESTONES:
        if not milestones:
            raise ValidationError(
                "Milestone proposals need at least one milestone", field="milestones"
            )
        prices = [_to_decimal(m.price, "milestones.price") for m in milestones]
        if any(p <= 0 for p in prices):
            raise ValidationError(
                "Milestone prices must be positive", field="milestones.price"
            )
        if sum(prices) != total:
            raise ValidationError(
                f"Milestone prices sum to {sum(prices)}, expected total_price {total}",
                field="total_price",
            )
    elif proposal_type == FIXED:
        if milestones:
            raise ValidationError(
                "Fixed-price proposals cannot carry milestones", field="milestones"
            )
    else:
        raise ValidationError(
            f"Unknown proposal_type: {proposal_type!r}", field="proposal_type"
        )
    return total


class ProposalStore:
    """Owns every mutation of ``Proposal`` and ``ProposalMilestone`` rows."""

    def __init__(
        self,
        db: AsyncSession,
        ledger: Optional[QuotaLedger] = None,
        cache: Optional[CacheCoordinator] = None,
        submission_cost: int = PROPOSAL_SUBMISSION_COST,
    ):
        if submission_cost < 0:
            raise ValueError(
                f"Proposal submission cost must be non-negative, got {submission_cost}"
            )
        self.db = db
        self.cache = cache
        self.ledger = ledger or QuotaLedger(db, cache)
        # 0 makes submissions free; the account must still exist.
        self.submission_cost = submission_cost

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    async def create(
        self,
        body: ProposalCreate,
        freelancer_id: uuid.UUID,
        actor_role: str = FREELANCER,
    ) -> Proposal:
        """Validate and submit a proposal, spending the freelancer's quota.

        Raises:
            ForbiddenError: The submitter is not a freelancer.
            ValidationError: Pricing invariants fail or the addressed client
                does not own the job.
            NotFoundError: The job or the freelancer's account is missing.
            InsufficientQuotaError: The freelancer has no proposals left.
        """
        if actor_role != FREELANCER:
            raise ForbiddenError(
                "Only freelancers can submit proposals", actor_id=freelancer_id
            )

        total = validate_pricing(body.proposal_type, body.milestones, body.total_price)

        job = (
            await self.db.execute(select(Job).where(Job.id == body.job_id))
        ).scalar_one_or_none()
        if job is None:
            raise NotFoundError("Job", body.job_id)
        if job.client_id != body.client_id:
            raise ValidationError(
                "Proposal must be addressed to the job's client", field="client_id"
            )

        try:
            if self.submission_cost > 0:
                await self.ledger.debit(
                    freelancer_id, self.submission_cost, commit=False
                )
            else:
                await self.ledger.get_account(freelancer_id)

            proposal = Proposal(
                job_id=body.job_id,
                freelancer_id=freelancer_id,
                client_id=body.client_id,
                cover_letter=body.cover_letter,
                estimated_time=body.estimated_time,
                proposal_type=body.proposal_type,
                total_price=total,
                status="pending",
                files=list(body.files),
                milestones=[
                    ProposalMilestone(
                        sort_order=i,
                        description=m.description,
                        due_date=m.due_date,
                        price=_to_decimal(m.price, "milestones.price"),
                        status="pending",
                    )
                    for i, m in enumerate(body.milestones or [])
                ],
            )
            self.db.add(proposal)
            await self.db.flush()
            self.db.add(
                ProposalStatusHistory(
                    proposal_id=proposal.id,
                    old_status=None,
                    new_status="pending",
                    changed_by=freelancer_id,
                    actor_role=FREELANCER,
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if self.cache is not None:
            await self.cache.invalidate_profile(freelancer_id)

        logger.info(
            "Proposal %s submitted by %s for job %s",
            proposal.id,
            freelancer_id,
            body.job_id,
        )
        return await self.get(proposal.id)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def get(
        self, proposal_id: uuid.UUID, viewer_id: Optional[uuid.UUID] = None
    ) -> Proposal:
        """Fetch a proposal; when *viewer_id* is given it must be a party to it."""
        result = await self.db.execute(
            select(Proposal)
            .where(Proposal.id == proposal_id)
            .execution_options(populate_existing=True)
        )
        proposal = result.scalar_one_or_none()
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        if viewer_id is not None and viewer_id not in (
            proposal.freelancer_id,
            proposal.client_id,
        ):
            raise ForbiddenError(
                "Not authorized to access this proposal", actor_id=viewer_id
            )
        return proposal

    async def list_for_freelancer(
        self,
        freelancer_id: uuid.UUID,
        status_filter: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Proposal], int]:
        count_query = select(func.count(Proposal.id)).where(
            Proposal.freelancer_id == freelancer_id
        )
        data_query = (
            select(Proposal)
            .where(Proposal.freelancer_id == freelancer_id)
            .order_by(Proposal.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        if status_filter:
            count_query = count_query.where(Proposal.status == status_filter)
            data_query = data_query.where(Proposal.status == status_filter)

        total = (await self.db.execute(count_query)).scalar() or 0
        rows = list((await self.db.execute(data_query)).scalars().all())
        return rows, total

    async def list_for_job(
        self, job_id: uuid.UUID, client_id: uuid.UUID
    ) -> list[Proposal]:
        """All proposals on a job; only the job's client may list them."""
        job = (
            await self.db.execute(select(Job).where(Job.id == job_id))
        ).scalar_one_or_none()
        if job is None:
            raise NotFoundError("Job", job_id)
        if job.client_id != client_id:
            raise ForbiddenError(
                "Not authorized to list proposals for this job", actor_id=client_id
            )
        result = await self.db.execute(
            select(Proposal)
            .where(Proposal.job_id == job_id)
            .order_by(Proposal.created_at.asc())
        )
        return list(result.scalars().all())

    async def history(self, proposal_id: uuid.UUID) -> list[ProposalStatusHistory]:
        result = await self.db.execute(
            select(ProposalStatusHistory)
            .where(ProposalStatusHistory.proposal_id == proposal_id)
            .order_by(ProposalStatusHistory.created_at.asc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # transition
    # ------------------------------------------------------------------

    async def transition(
        self,
        proposal_id: uuid.UUID,
        actor_role: str,
        new_status: str,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Proposal:
        """Move a proposal along the status graph.

        Raises:
            NotFoundError: Unknown proposal.
            InvalidTransitionError: The edge is not in the graph, or the
                proposal changed status concurrently.
            ForbiddenError: The actor's role (or identity, when *actor_id*
                is given) may not drive this edge.
            InvalidStateError: Completing a milestone proposal whose
                milestones are still open.
        """
        proposal = await self.get(proposal_id)
        old_status = proposal.status

        allowed = ALLOWED_TRANSITIONS.get(old_status, [])
        if new_status not in allowed:
            raise InvalidTransitionError(proposal_id, old_status, new_status)

        if actor_role not in TRANSITION_ACTORS.get(new_status, frozenset()):
            raise ForbiddenError(
                f"A {actor_role} cannot move a proposal to '{new_status}'",
                actor_id=actor_id,
            )
        if actor_id is not None:
            party = proposal.client_id if actor_role == CLIENT else proposal.freelancer_id
            if actor_id != party:
                raise ForbiddenError(
                    "Not authorized to change this proposal", actor_id=actor_id
                )

        if new_status == "completed" and proposal.proposal_type == MILESTONES:
            if not all(m.status == "completed" for m in proposal.milestones):
                raise InvalidStateError(
                    proposal_id,
                    old_status,
                    "All milestones must be completed before the proposal "
                    "can be completed",
                )

        result = await self.db.execute(
            update(Proposal)
            .where(Proposal.id == proposal_id, Proposal.status == old_status)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.get(proposal_id)
            raise InvalidTransitionError(proposal_id, current.status, new_status)

        self.db.add(
            ProposalStatusHistory(
                proposal_id=proposal_id,
                old_status=old_status,
                new_status=new_status,
                changed_by=actor_id,
                actor_role=actor_role,
            )
        )
        await self.db.commit()

        logger.info(
            "Proposal %s moved %s -> %s by %s", proposal_id, old_status, new_status, actor_role
        )
        return await self.get(proposal_id)

    # ------------------------------------------------------------------
    # milestones
    # ------------------------------------------------------------------

    async def set_milestone_status(
        self,
        proposal_id: uuid.UUID,
        milestone_id: uuid.UUID,
        new_status: str,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Proposal:
        """Resolve a milestone of an accepted proposal.

        Raises:
            NotFoundError: Unknown proposal or milestone.
            ForbiddenError: *actor_id* is not a party to the proposal.
            InvalidStateError: The proposal is not ``accepted``.
            InvalidTransitionError: The milestone is already resolved or
                *new_status* is not a milestone edge.
        """
        proposal = await self.get(proposal_id, viewer_id=actor_id)
        if proposal.status != "accepted":
            raise InvalidStateError(
                proposal_id,
                proposal.status,
                f"Milestones can only change while the proposal is accepted "
                f"(current status '{proposal.status}')",
            )

        milestone = next((m for m in proposal.milestones if m.id == milestone_id), None)
        if milestone is None:
            raise NotFoundError("Milestone", milestone_id)

        old_status = milestone.status
        if new_status not in MILESTONE_TRANSITIONS.get(old_status, []):
            raise InvalidTransitionError(milestone_id, old_status, new_status)

        accepted_parent = select(Proposal.id).where(
            Proposal.id == proposal_id, Proposal.status == "accepted"
        )
        result = await self.db.execute(
            update(ProposalMilestone)
            .where(
                ProposalMilestone.id == milestone_id,
                ProposalMilestone.status == old_status,
                ProposalMilestone.proposal_id.in_(accepted_parent),
            )
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.get(proposal_id)
            if current.status != "accepted":
                raise InvalidStateError(
                    proposal_id,
                    current.status,
                    "Proposal left the accepted state before the milestone changed",
                )
            raise InvalidTransitionError(milestone_id, old_status, new_status)

        self.db.expire(milestone)
        await self.db.commit()

        logger.info(
            "Milestone %s of proposal %s moved %s -> %s",
            milestone_id,
            proposal_id,
            old_status,
            new_status,
        )
        return await self.get(proposal_id)
