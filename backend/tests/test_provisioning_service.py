"""
Tests for freelancer provisioning (profile + proposal account as one unit)
and the profile service's cache-coherent reads and edits.

Usage:
    cd backend && pytest tests/test_provisioning_service.py -v
"""

import asyncio
from datetime import date

import pytest
from sqlalchemy import delete, func, select

from conftest import JAN_2025, generate_uuid, make_profile_fields
from gigboard.exceptions import (
    AlreadyProvisionedError,
    ForbiddenError,
    InsufficientQuotaError,
    NotFoundError,
)
from gigboard.models.db import ProposalAccount, Profile
from gigboard.models.profile_models import (
    EducationInput,
    ExperienceInput,
    PortfolioItemInput,
)
from gigboard.services.profile_service import ProfileService
from gigboard.services.provisioning_service import ProvisioningService
from gigboard.services.quota_ledger import QuotaLedger


async def count_rows(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


# ============================================================================
# Provisioning
# ============================================================================

class TestProvisionFreelancer:
    async def test_profile_and_account_created_together(self, db):
        await QuotaLedger(db).publish_allotment("Jan", 2025, 10)
        freelancer_id = generate_uuid()

        profile, account = await ProvisioningService(db).provision_freelancer(
            freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
        )

        assert profile.user_id == freelancer_id
        assert profile.skills == ["python", "postgres"]
        assert account.owner_id == freelancer_id
        assert account.balance == 10

    async def test_january_allotment_then_debits(self, db):
        await QuotaLedger(db).publish_allotment("Jan", 2025, 10)
        freelancer_id = generate_uuid()
        service = ProvisioningService(db)

        _, account = await service.provision_freelancer(
            freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
        )
        assert account.balance == 10

        assert (await service.ledger.debit(freelancer_id, 7)).balance == 3
        with pytest.raises(InsufficientQuotaError):
            await service.ledger.debit(freelancer_id, 5)
        assert (await service.ledger.get_account(freelancer_id)).balance == 3

    async def test_second_provisioning_fails(self, db):
        service = ProvisioningService(db)
        freelancer_id = generate_uuid()
        await service.provision_freelancer(
            freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
        )

        with pytest.raises(AlreadyProvisionedError):
            await service.provision_freelancer(
                freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
            )
        assert await count_rows(db, Profile) == 1
        assert await count_rows(db, ProposalAccount) == 1

    async def test_clients_cannot_provision(self, db):
        with pytest.raises(ForbiddenError):
            await ProvisioningService(db).provision_freelancer(
                generate_uuid(), make_profile_fields(), JAN_2025, "client"
            )
        assert await count_rows(db, Profile) == 0

    async def test_concurrent_duplicates_yield_one_profile(self, session_factory):
        freelancer_id = generate_uuid()

        async def attempt():
            async with session_factory() as session:
                return await ProvisioningService(session).provision_freelancer(
                    freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
                )

        results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], AlreadyProvisionedError)

        async with session_factory() as session:
            assert await count_rows(session, Profile) == 1
            assert await count_rows(session, ProposalAccount) == 1

    async def test_provisioning_invalidates_profile_cache(self, db, cache, cache_backend):
        freelancer_id = generate_uuid()
        await cache_backend.set(f"api:profile:{freelancer_id}", "null", 300)

        await ProvisioningService(db, cache=cache).provision_freelancer(
            freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
        )

        assert await cache_backend.get(f"api:profile:{freelancer_id}") is None


class TestRepairOrphan:
    async def test_missing_account_is_reopened(self, db):
        freelancer_id = generate_uuid()
        service = ProvisioningService(db)
        await service.provision_freelancer(
            freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
        )
        await db.execute(
            delete(ProposalAccount).where(ProposalAccount.owner_id == freelancer_id)
        )
        await db.commit()

        account = await service.repair_orphan(freelancer_id, JAN_2025)

        assert account.owner_id == freelancer_id
        assert await count_rows(db, ProposalAccount) == 1

    async def test_existing_account_is_returned(self, db):
        freelancer_id = generate_uuid()
        service = ProvisioningService(db)
        _, account = await service.provision_freelancer(
            freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
        )

        repaired = await service.repair_orphan(freelancer_id, JAN_2025)
        assert repaired.id == account.id

    async def test_no_profile(self, db):
        with pytest.raises(NotFoundError):
            await ProvisioningService(db).repair_orphan(generate_uuid(), JAN_2025)


# ============================================================================
# Profile service
# ============================================================================

async def provisioned(db, cache, allotment: int = 0):
    if allotment:
        await QuotaLedger(db).publish_allotment("Jan", 2025, allotment)
    freelancer_id = generate_uuid()
    await ProvisioningService(db, cache=cache).provision_freelancer(
        freelancer_id, make_profile_fields(), JAN_2025, "freelancer"
    )
    return freelancer_id


class TestProfileView:
    async def test_owner_sees_account_others_do_not(self, db, cache):
        freelancer_id = await provisioned(db, cache, allotment=10)
        service = ProfileService(db, cache)

        owner_view = await service.get_profile_view(freelancer_id, freelancer_id)
        other_view = await service.get_profile_view(freelancer_id, generate_uuid())

        assert owner_view.source == "fresh"
        assert owner_view.is_owner
        assert owner_view.proposal_account["balance"] == 10
        assert other_view.source == "cache"
        assert not other_view.is_owner
        assert other_view.proposal_account is None
        assert other_view.profile == owner_view.profile

    async def test_debit_invalidates_owner_view(self, db, cache):
        freelancer_id = await provisioned(db, cache, allotment=10)
        service = ProfileService(db, cache)
        await service.get_profile_view(freelancer_id, freelancer_id)

        await QuotaLedger(db, cache).debit(freelancer_id, 3)
        view = await service.get_profile_view(freelancer_id, freelancer_id)

        assert view.source == "fresh"
        assert view.proposal_account["balance"] == 7

    async def test_owner_read_repairs_missing_account(self, db, cache):
        freelancer_id = await provisioned(db, cache)
        await db.execute(
            delete(ProposalAccount).where(ProposalAccount.owner_id == freelancer_id)
        )
        await db.commit()

        view = await ProfileService(db, cache).get_profile_view(
            freelancer_id, freelancer_id
        )

        assert view.proposal_account is not None
        assert view.proposal_account["balance"] == 0

    async def test_unknown_profile(self, db, cache):
        with pytest.raises(NotFoundError):
            await ProfileService(db, cache).get_profile_view(generate_uuid())

    async def test_empty_listing_is_not_found(self, db, cache):
        with pytest.raises(NotFoundError):
            await ProfileService(db, cache).list_profiles()

    async def test_listing_is_cached(self, db, cache):
        await provisioned(db, cache)
        service = ProfileService(db, cache)

        first = await service.list_profiles()
        await provisioned(db, cache)
        second = await service.list_profiles()

        assert first.source == "fresh"
        assert second.source == "cache"
        assert len(second.profiles) == 1


class TestProfileEdits:
    async def test_update_invalidates_cached_view(self, db, cache):
        freelancer_id = await provisioned(db, cache)
        service = ProfileService(db, cache)
        await service.get_profile_view(freelancer_id)

        await service.update_profile(
            freelancer_id, make_profile_fields(job_title="Data Engineer")
        )
        view = await service.get_profile_view(freelancer_id)

        assert view.source == "fresh"
        assert view.profile["job_title"] == "Data Engineer"

    async def test_update_unknown_profile(self, db, cache):
        with pytest.raises(NotFoundError):
            await ProfileService(db, cache).update_profile(
                generate_uuid(), make_profile_fields()
            )

    async def test_portfolio_add_update_delete(self, db, cache):
        freelancer_id = await provisioned(db, cache)
        service = ProfileService(db, cache)

        profile = await service.add_portfolio_item(
            freelancer_id,
            PortfolioItemInput(image="shot.png", project_link="https://example.com"),
        )
        item_id = profile.portfolio[0].id

        profile = await service.update_portfolio_item(
            freelancer_id,
            item_id,
            PortfolioItemInput(image="new.png", project_link="https://example.com"),
        )
        assert profile.portfolio[0].image == "new.png"

        profile = await service.delete_portfolio_item(freelancer_id, item_id)
        assert profile.portfolio == []

    async def test_education_and_experience(self, db, cache):
        freelancer_id = await provisioned(db, cache)
        service = ProfileService(db, cache)

        await service.add_education(
            freelancer_id,
            EducationInput(
                institution="State University",
                degree="BSc",
                field_of_study="Computer Science",
                graduation_year=2018,
            ),
        )
        profile = await service.add_experience(
            freelancer_id,
            ExperienceInput(
                company_name="Acme",
                position="Engineer",
                start_date=date(2019, 1, 1),
            ),
        )

        assert [e.institution for e in profile.education] == ["State University"]
        assert [e.company_name for e in profile.experience] == ["Acme"]

    async def test_entry_must_belong_to_caller(self, db, cache):
        owner = await provisioned(db, cache)
        other = await provisioned(db, cache)
        service = ProfileService(db, cache)
        profile = await service.add_portfolio_item(
            owner, PortfolioItemInput(image="a.png", project_link="https://a.example")
        )

        with pytest.raises(NotFoundError):
            await service.delete_portfolio_item(other, profile.portfolio[0].id)
