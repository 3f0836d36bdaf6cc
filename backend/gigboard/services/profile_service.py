"""Profile reads and edits, kept coherent with the profile cache.

Every write commits first and then drops ``api:profile:{user_id}`` before
returning, so the caller's next read of that profile is a miss.  The
aggregate listing is served from its own TTL-bound key and may lag.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.exceptions import NotFoundError
from gigboard.models.account_models import ProposalAccountResponse
from gigboard.models.db.profile import (
    EducationEntry,
    ExperienceEntry,
    PortfolioItem,
    Profile,
)
from gigboard.models.profile_models import (
    EducationInput,
    ExperienceInput,
    PortfolioItemInput,
    ProfileFields,
    ProfileListResponse,
    ProfileResponse,
    ProfileView,
)
from gigboard.services.cache_service import CacheCoordinator
from gigboard.services.provisioning_service import ProvisioningService
from gigboard.services.quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)

# collection attribute -> (ORM class, entity name used in errors)
_COLLECTIONS: dict[str, tuple[type, str]] = {
    "portfolio": (PortfolioItem, "Portfolio item"),
    "education": (EducationEntry, "Education entry"),
    "experience": (ExperienceEntry, "Experience entry"),
}


def serialize_profile(profile: Profile) -> dict[str, Any]:
    return ProfileResponse.model_validate(profile).model_dump(mode="json")


class ProfileService:
    """Service layer for freelancer profile operations."""

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheCoordinator,
        provisioning: Optional[ProvisioningService] = None,
    ):
        self.db = db
        self.cache = cache
        self.ledger = QuotaLedger(db, cache)
        self.provisioning = provisioning or ProvisioningService(db, self.ledger, cache)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_profile_view(
        self,
        user_id: uuid.UUID,
        viewer_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> ProfileView:
        """Cached single-profile read.

        The cached payload holds the profile and its account; the account is
        only handed to the owner.

        Raises:
            NotFoundError: No profile for *user_id*.
        """

        async def load() -> Optional[dict[str, Any]]:
            profile = await self._find(user_id)
            if profile is None:
                return None
            account = await self.ledger.find_account(user_id)
            return {
                "profile": serialize_profile(profile),
                "proposal_account": (
                    ProposalAccountResponse.model_validate(account).model_dump(
                        mode="json"
                    )
                    if account is not None
                    else None
                ),
            }

        read = await self.cache.get_profile(user_id, load)
        if read.data is None:
            raise NotFoundError("Profile", user_id)

        is_owner = viewer_id is not None and viewer_id == user_id
        account = read.data.get("proposal_account")
        if is_owner and account is None:
            repaired = await self.provisioning.repair_orphan(
                user_id, now or datetime.now(timezone.utc)
            )
            account = ProposalAccountResponse.model_validate(repaired).model_dump(
                mode="json"
            )

        return ProfileView(
            source=read.source,
            is_owner=is_owner,
            profile=read.data["profile"],
            proposal_account=account if is_owner else None,
        )

    async def list_profiles(self) -> ProfileListResponse:
        """Cached listing of every profile (TTL-bound staleness).

        Raises:
            NotFoundError: There are no profiles yet.
        """

        async def load() -> Optional[list[dict[str, Any]]]:
            result = await self.db.execute(
                select(Profile).order_by(Profile.created_at.asc())
            )
            rows = result.scalars().all()
            return [serialize_profile(p) for p in rows] or None

        read = await self.cache.get_all_profiles(load)
        if not read.data:
            raise NotFoundError("Profile", "*")
        return ProfileListResponse(source=read.source, profiles=read.data)

    # ------------------------------------------------------------------
    # Scalar fields
    # ------------------------------------------------------------------

    async def update_profile(self, user_id: uuid.UUID, fields: ProfileFields) -> Profile:
        profile = await self._get(user_id)
        data = fields.model_dump()
        if data.get("hourly_rate") is not None:
            data["hourly_rate"] = Decimal(str(data["hourly_rate"]))
        for name, value in data.items():
            setattr(profile, name, value)
        await self._commit_and_invalidate(user_id)
        logger.info("Updated profile for %s", user_id)
        return await self._get(user_id)

    # ------------------------------------------------------------------
    # Sub-collections
    # ------------------------------------------------------------------

    async def add_portfolio_item(
        self, user_id: uuid.UUID, body: PortfolioItemInput
    ) -> Profile:
        return await self._add_entry(user_id, "portfolio", body)

    async def update_portfolio_item(
        self, user_id: uuid.UUID, item_id: uuid.UUID, body: PortfolioItemInput
    ) -> Profile:
        return await self._update_entry(user_id, "portfolio", item_id, body)

    async def delete_portfolio_item(
        self, user_id: uuid.UUID, item_id: uuid.UUID
    ) -> Profile:
        return await self._delete_entry(user_id, "portfolio", item_id)

    async def add_education(self, user_id: uuid.UUID, body: EducationInput) -> Profile:
        return await self._add_entry(user_id, "education", body)

    async def update_education(
        self, user_id: uuid.UUID, entry_id: uuid.UUID, body: EducationInput
    ) -> Profile:
        return await self._update_entry(user_id, "education", entry_id, body)

    async def delete_education(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> Profile:
        return await self._delete_entry(user_id, "education", entry_id)

    async def add_experience(
        self, user_id: uuid.UUID, body: ExperienceInput
    ) -> Profile:
        return await self._add_entry(user_id, "experience", body)

    async def update_experience(
        self, user_id: uuid.UUID, entry_id: uuid.UUID, body: ExperienceInput
    ) -> Profile:
        return await self._update_entry(user_id, "experience", entry_id, body)

    async def delete_experience(
        self, user_id: uuid.UUID, entry_id: uuid.UUID
    ) -> Profile:
        return await self._delete_entry(user_id, "experience", entry_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _find(self, user_id: uuid.UUID) -> Optional[Profile]:
        result = await self.db.execute(
            select(Profile)
            .where(Profile.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get(self, user_id: uuid.UUID) -> Profile:
        profile = await self._find(user_id)
        if profile is None:
            raise NotFoundError("Profile", user_id)
        return profile

    async def _commit_and_invalidate(self, user_id: uuid.UUID) -> None:
        await self.db.commit()
        await self.cache.invalidate_profile(user_id)

    async def _add_entry(
        self, user_id: uuid.UUID, collection: str, body: BaseModel
    ) -> Profile:
        model_cls, _ = _COLLECTIONS[collection]
        profile = await self._get(user_id)
        getattr(profile, collection).append(model_cls(**body.model_dump()))
        await self._commit_and_invalidate(user_id)
        logger.info("Added %s entry to profile %s", collection, user_id)
        return await self._get(user_id)

    async def _update_entry(
        self,
        user_id: uuid.UUID,
        collection: str,
        entry_id: uuid.UUID,
        body: BaseModel,
    ) -> Profile:
        profile = await self._get(user_id)
        entry = self._entry(profile, collection, entry_id)
        for name, value in body.model_dump().items():
            setattr(entry, name, value)
        await self._commit_and_invalidate(user_id)
        return await self._get(user_id)

    async def _delete_entry(
        self, user_id: uuid.UUID, collection: str, entry_id: uuid.UUID
    ) -> Profile:
        profile = await self._get(user_id)
        entry = self._entry(profile, collection, entry_id)
        getattr(profile, collection).remove(entry)
        await self._commit_and_invalidate(user_id)
        logger.info("Removed %s entry %s from profile %s", collection, entry_id, user_id)
        return await self._get(user_id)

    @staticmethod
    def _entry(profile: Profile, collection: str, entry_id: uuid.UUID) -> Any:
        _, entity = _COLLECTIONS[collection]
        for entry in getattr(profile, collection):
            if entry.id == entry_id:
                return entry
        raise NotFoundError(entity, entry_id)
