"""
Tests for QuotaLedger: allotments, account opening, debits and refreshes.

Usage:
    cd backend && pytest tests/test_quota_ledger.py -v
"""

import asyncio

import pytest
from sqlalchemy import update

from conftest import FEB_2025, JAN_2025, generate_uuid
from gigboard.exceptions import (
    AlreadyExistsError,
    InsufficientQuotaError,
    NotFoundError,
    ValidationError,
)
from gigboard.models.db import ProposalAccount
from gigboard.services.quota_ledger import (
    QuotaLedger,
    month_label,
    period_label,
)


# ============================================================================
# Labels
# ============================================================================

def test_month_label_is_locale_independent():
    assert month_label(JAN_2025) == "Jan"
    assert month_label(FEB_2025) == "Feb"


def test_period_label_is_zero_padded():
    assert period_label(JAN_2025) == "2025-01"


# ============================================================================
# Allotments
# ============================================================================

class TestAllotments:
    async def test_missing_tracker_means_zero(self, db):
        assert await QuotaLedger(db).current_allotment(JAN_2025) == 0

    async def test_published_allotment_is_read_for_its_month_only(self, db):
        ledger = QuotaLedger(db)
        await ledger.publish_allotment("Jan", 2025, 10)

        assert await ledger.current_allotment(JAN_2025) == 10
        assert await ledger.current_allotment(FEB_2025) == 0

    async def test_duplicate_period_is_rejected(self, db):
        ledger = QuotaLedger(db)
        await ledger.publish_allotment("Jan", 2025, 10)

        with pytest.raises(AlreadyExistsError):
            await ledger.publish_allotment("Jan", 2025, 50)
        assert await ledger.current_allotment(JAN_2025) == 10

    async def test_invalid_month_label(self, db):
        with pytest.raises(ValidationError):
            await QuotaLedger(db).publish_allotment("January", 2025, 10)

    async def test_negative_allotment(self, db):
        with pytest.raises(ValidationError):
            await QuotaLedger(db).publish_allotment("Jan", 2025, -1)


# ============================================================================
# Accounts
# ============================================================================

class TestOpenAccount:
    async def test_seeded_with_zero_when_no_tracker(self, db):
        account = await QuotaLedger(db).open_account(generate_uuid(), JAN_2025)
        assert account.balance == 0
        assert account.role == "freelancer"
        assert account.last_refreshed_period == "2025-01"

    async def test_seeded_with_current_allotment(self, db):
        ledger = QuotaLedger(db)
        await ledger.publish_allotment("Jan", 2025, 10)

        account = await ledger.open_account(generate_uuid(), JAN_2025)
        assert account.balance == 10

    async def test_second_account_for_same_owner_fails(self, db):
        ledger = QuotaLedger(db)
        owner = generate_uuid()
        await ledger.open_account(owner, JAN_2025)

        with pytest.raises(AlreadyExistsError):
            await ledger.open_account(owner, JAN_2025)

    async def test_get_account_missing(self, db):
        with pytest.raises(NotFoundError):
            await QuotaLedger(db).get_account(generate_uuid())


# ============================================================================
# Debits
# ============================================================================

class TestDebit:
    async def test_january_scenario(self, db):
        """Allotment 10, spend 7, then a request for 5 is refused."""
        ledger = QuotaLedger(db)
        owner = generate_uuid()
        await ledger.publish_allotment("Jan", 2025, 10)
        await ledger.open_account(owner, JAN_2025)

        account = await ledger.debit(owner, 7)
        assert account.balance == 3

        with pytest.raises(InsufficientQuotaError) as exc_info:
            await ledger.debit(owner, 5)
        assert exc_info.value.balance == 3
        assert exc_info.value.requested == 5
        assert (await ledger.get_account(owner)).balance == 3

    async def test_exact_balance_can_be_spent(self, db):
        ledger = QuotaLedger(db)
        owner = generate_uuid()
        await ledger.publish_allotment("Jan", 2025, 2)
        await ledger.open_account(owner, JAN_2025)

        assert (await ledger.debit(owner, 2)).balance == 0

    async def test_zero_balance_refuses_any_debit(self, db):
        ledger = QuotaLedger(db)
        owner = generate_uuid()
        await ledger.open_account(owner, JAN_2025)

        with pytest.raises(InsufficientQuotaError):
            await ledger.debit(owner, 1)

    async def test_non_positive_amount(self, db):
        with pytest.raises(ValidationError):
            await QuotaLedger(db).debit(generate_uuid(), 0)

    async def test_unknown_account(self, db):
        with pytest.raises(NotFoundError):
            await QuotaLedger(db).debit(generate_uuid(), 1)

    async def test_concurrent_debits_never_overdraw(self, session_factory):
        owner = generate_uuid()
        async with session_factory() as session:
            ledger = QuotaLedger(session)
            await ledger.publish_allotment("Jan", 2025, 3)
            await ledger.open_account(owner, JAN_2025)

        async def spend_one():
            async with session_factory() as session:
                return await QuotaLedger(session).debit(owner, 1)

        results = await asyncio.gather(
            *(spend_one() for _ in range(6)), return_exceptions=True
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 3
        assert all(isinstance(f, InsufficientQuotaError) for f in failures)
        async with session_factory() as session:
            assert (await QuotaLedger(session).get_account(owner)).balance == 0


# ============================================================================
# Refresh
# ============================================================================

class TestRefresh:
    async def test_refresh_is_once_per_period(self, db):
        ledger = QuotaLedger(db)
        owner = generate_uuid()
        await ledger.publish_allotment("Jan", 2025, 10)
        await ledger.publish_allotment("Feb", 2025, 4)
        await ledger.open_account(owner, JAN_2025)
        await ledger.debit(owner, 7)

        # Already seeded for January
        assert await ledger.refresh(owner, JAN_2025) == 3

        assert await ledger.refresh(owner, FEB_2025) == 7
        assert await ledger.refresh(owner, FEB_2025) == 7
        account = await ledger.get_account(owner)
        assert account.last_refreshed_period == "2025-02"

    async def test_refresh_unknown_account(self, db):
        with pytest.raises(NotFoundError):
            await QuotaLedger(db).refresh(generate_uuid(), JAN_2025)

    async def test_refresh_all_credits_each_pending_account_once(self, db):
        ledger = QuotaLedger(db)
        owners = [generate_uuid() for _ in range(3)]
        await ledger.publish_allotment("Feb", 2025, 5)
        for owner in owners:
            await ledger.open_account(owner, JAN_2025)
        # One account was already credited for February
        await ledger.refresh(owners[0], FEB_2025)

        assert await ledger.refresh_all(FEB_2025) == 2
        assert await ledger.refresh_all(FEB_2025) == 0
        for owner in owners:
            assert (await ledger.get_account(owner)).balance == 5

    async def test_refresh_all_picks_up_never_refreshed_accounts(self, db):
        ledger = QuotaLedger(db)
        owner = generate_uuid()
        await ledger.open_account(owner, JAN_2025)
        await db.execute(
            update(ProposalAccount)
            .where(ProposalAccount.owner_id == owner)
            .values(last_refreshed_period=None)
        )
        await db.commit()

        assert await ledger.refresh_all(JAN_2025) == 1

    async def test_refresh_invalidates_profile_cache(self, db, cache, cache_backend):
        ledger = QuotaLedger(db, cache)
        owner = generate_uuid()
        await ledger.open_account(owner, JAN_2025)
        await cache_backend.set(f"api:profile:{owner}", "{}", 300)

        await ledger.refresh(owner, FEB_2025)

        assert await cache_backend.get(f"api:profile:{owner}") is None
