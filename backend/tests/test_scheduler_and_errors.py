"""
Tests for the monthly quota refresh job and the domain error mapping.

Usage:
    cd backend && pytest tests/test_scheduler_and_errors.py -v
"""

import pytest

from conftest import FEB_2025, JAN_2025, generate_uuid
from gigboard import database, scheduler
from gigboard.deps import http_error, status_for
from gigboard.exceptions import (
    AlreadyProvisionedError,
    InsufficientQuotaError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from gigboard.services.quota_ledger import QuotaLedger


# ============================================================================
# Monthly refresh job
# ============================================================================

async def test_refresh_job_without_database_is_noop(monkeypatch):
    monkeypatch.setattr(database, "async_session_factory", None)
    assert await scheduler.run_monthly_quota_refresh(FEB_2025) == 0


async def test_refresh_job_credits_pending_accounts(monkeypatch, session_factory):
    owner = generate_uuid()
    async with session_factory() as session:
        ledger = QuotaLedger(session)
        await ledger.publish_allotment("Feb", 2025, 6)
        await ledger.open_account(owner, JAN_2025)

    monkeypatch.setattr(database, "async_session_factory", session_factory)

    assert await scheduler.run_monthly_quota_refresh(FEB_2025) == 1
    assert await scheduler.run_monthly_quota_refresh(FEB_2025) == 0

    async with session_factory() as session:
        assert (await QuotaLedger(session).get_account(owner)).balance == 6


async def test_scheduler_registers_monthly_job():
    scheduler.start_scheduler()
    try:
        job = scheduler.scheduler.get_job("monthly_quota_refresh")
        assert job is not None
        assert job.func is scheduler.run_monthly_quota_refresh
    finally:
        scheduler.shutdown_scheduler()


# ============================================================================
# Error mapping
# ============================================================================

@pytest.mark.parametrize(
    "exc, expected",
    [
        (ValidationError("bad", field="total_price"), 400),
        (NotFoundError("Job", "j1"), 404),
        (AlreadyProvisionedError("f1"), 409),
        (InsufficientQuotaError("f1", 0, 1), 409),
        (InvalidTransitionError("p1", "pending", "accepted"), 409),
    ],
)
def test_status_for(exc, expected):
    assert status_for(exc) == expected


def test_http_error_carries_structured_detail():
    error = http_error(InsufficientQuotaError("f1", 3, 5))
    assert error.status_code == 409
    assert error.detail["code"] == "INSUFFICIENT_QUOTA"
    assert error.detail["balance"] == "3"
    assert error.detail["requested"] == "5"
