"""Business logic for job postings."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.exceptions import ForbiddenError, NotFoundError, ValidationError
from gigboard.models.db.job import Job
from gigboard.models.job_models import JobCreate

logger = logging.getLogger(__name__)

CLIENT_ROLE = "client"


def _money(value):
    return Decimal(str(value)) if value is not None else None


class JobService:
    """Service layer for job posting operations."""

    @staticmethod
    async def create_job(
        db: AsyncSession, client_id: uuid.UUID, role: str, body: JobCreate
    ) -> Job:
        """Post a job on behalf of a client.

        Raises:
            ForbiddenError: The poster is not a client.
            ValidationError: Pricing fields are inconsistent with the
                payment type.
        """
        if role != CLIENT_ROLE:
            raise ForbiddenError("Only clients can post jobs", actor_id=client_id)

        if body.payment_type == "hourly":
            if body.price_per_hour is None:
                raise ValidationError(
                    "Hourly jobs need a price_per_hour range", field="price_per_hour"
                )
            if body.price_per_hour.min > body.price_per_hour.max:
                raise ValidationError(
                    "price_per_hour.min cannot exceed price_per_hour.max",
                    field="price_per_hour",
                )
        elif body.fixed_payment_type == "milestone" and not body.milestones:
            raise ValidationError(
                "Milestone-paid jobs need at least one milestone", field="milestones"
            )

        job = Job(
            client_id=client_id,
            job_title=body.job_title,
            description=body.description,
            skills=list(body.skills),
            timeline=body.timeline,
            total_time=body.total_time,
            expertise_level=body.expertise_level,
            payment_type=body.payment_type,
            price=_money(body.price),
            fixed_payment_type=body.fixed_payment_type,
            price_per_hour_min=_money(body.price_per_hour.min)
            if body.price_per_hour
            else None,
            price_per_hour_max=_money(body.price_per_hour.max)
            if body.price_per_hour
            else None,
            files=list(body.files),
            location=body.location,
            milestones=[m.model_dump() for m in body.milestones or []],
        )
        db.add(job)
        await db.flush()
        await db.commit()

        logger.info("Job %s posted by %s", job.id, client_id)
        return job

    @staticmethod
    async def get_job(db: AsyncSession, job_id: uuid.UUID) -> Job:
        result = await db.execute(select(Job).where(Job.id == job_id))
        job = result.scalar_one_or_none()
        if job is None:
            raise NotFoundError("Job", job_id)
        return job
