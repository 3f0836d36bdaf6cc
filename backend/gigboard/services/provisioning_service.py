"""Freelancer provisioning: profile + proposal account as one unit of work.

The profile and its paired ``ProposalAccount`` are inserted in the same
database transaction, so either both exist or neither does.  Unique
indexes on the owner identity of both tables make concurrent duplicate
calls resolve to exactly one success; the loser gets
``AlreadyProvisionedError``.

Rows written before this guarantee existed (a profile without an account)
are repaired on the owner's next read via :meth:`repair_orphan`.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.exceptions import (
    AlreadyExistsError,
    AlreadyProvisionedError,
    ForbiddenError,
    NotFoundError,
)
from gigboard.models.db.account import ProposalAccount
from gigboard.models.db.profile import Profile
from gigboard.models.profile_models import ProfileFields
from gigboard.services.cache_service import CacheCoordinator
from gigboard.services.quota_ledger import FREELANCER_ROLE, QuotaLedger

logger = logging.getLogger(__name__)


def profile_from_fields(user_id: uuid.UUID, fields: ProfileFields) -> Profile:
    data = fields.model_dump()
    if data.get("hourly_rate") is not None:
        data["hourly_rate"] = Decimal(str(data["hourly_rate"]))
    return Profile(user_id=user_id, portfolio=[], education=[], experience=[], **data)


class ProvisioningService:
    """Creates a freelancer's profile together with its proposal account."""

    def __init__(
        self,
        db: AsyncSession,
        ledger: Optional[QuotaLedger] = None,
        cache: Optional[CacheCoordinator] = None,
    ):
        self.db = db
        self.cache = cache
        self.ledger = ledger or QuotaLedger(db, cache)

    async def provision_freelancer(
        self,
        freelancer_id: uuid.UUID,
        fields: ProfileFields,
        now: datetime,
        role: str,
    ) -> tuple[Profile, ProposalAccount]:
        """Create the profile and the account seeded with *now*'s allotment.

        Raises:
            ForbiddenError: *role* is not ``freelancer``.
            AlreadyProvisionedError: A profile already exists, including when
                a concurrent call won the race.
        """
        if role != FREELANCER_ROLE:
            raise ForbiddenError(
                "Only freelancers can create a profile", actor_id=freelancer_id
            )

        existing = await self._find_profile(freelancer_id)
        if existing is not None:
            raise AlreadyProvisionedError(freelancer_id)

        # Read once; the same value seeds the account below.
        allotment = await self.ledger.current_allotment(now)

        profile = profile_from_fields(freelancer_id, fields)
        self.db.add(profile)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Concurrent provisioning detected for %s", freelancer_id)
            raise AlreadyProvisionedError(freelancer_id) from e

        try:
            account = await self.ledger.open_account(
                freelancer_id, now, allotment=allotment, commit=False
            )
        except AlreadyExistsError as e:
            # open_account already rolled back, taking the profile insert with it.
            raise AlreadyProvisionedError(freelancer_id) from e

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise AlreadyProvisionedError(freelancer_id) from e

        if self.cache is not None:
            await self.cache.invalidate_profile(freelancer_id)

        logger.info(
            "Provisioned freelancer %s with %d proposals", freelancer_id, allotment
        )
        return profile, account

    async def repair_orphan(
        self, freelancer_id: uuid.UUID, now: datetime
    ) -> ProposalAccount:
        """Ensure a profile's paired account exists, creating it if missing.

        Raises:
            NotFoundError: There is no profile for *freelancer_id*.
        """
        account = await self.ledger.find_account(freelancer_id)
        if account is not None:
            return account

        if await self._find_profile(freelancer_id) is None:
            raise NotFoundError("Profile", freelancer_id)

        logger.warning("Repairing profile %s without proposal account", freelancer_id)
        try:
            return await self.ledger.open_account(freelancer_id, now)
        except AlreadyExistsError:
            # Another request repaired it first.
            return await self.ledger.get_account(freelancer_id)

    async def _find_profile(self, freelancer_id: uuid.UUID) -> Optional[Profile]:
        result = await self.db.execute(
            select(Profile).where(Profile.user_id == freelancer_id)
        )
        return result.scalar_one_or_none()
