"""Proposal-submission quota accounting.

Each freelancer has one ``ProposalAccount`` whose balance is spent by
proposal submissions and topped up once a month from the ``RefreshTracker``
published for that month.  Allotments are looked up per period and never
rewritten, so changing next month's allotment does not touch balances that
were already granted.

All balance mutations are single conditional ``UPDATE`` statements so that
concurrent requests cannot lose updates or drive a balance negative.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gigboard.exceptions import (
    AlreadyExistsError,
    InsufficientQuotaError,
    NotFoundError,
    ValidationError,
)
from gigboard.models.db.account import ProposalAccount, RefreshTracker
from gigboard.services.cache_service import CacheCoordinator

logger = logging.getLogger(__name__)

MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

FREELANCER_ROLE = "freelancer"


def month_label(now: datetime) -> str:
    """Three-letter English month label for *now* (locale independent)."""
    return MONTH_LABELS[now.month - 1]


def period_label(now: datetime) -> str:
    """``YYYY-MM`` label identifying the refresh period containing *now*."""
    return f"{now.year:04d}-{now.month:02d}"


class QuotaLedger:
    """Owns every mutation of ``ProposalAccount`` balances."""

    def __init__(self, db: AsyncSession, cache: Optional[CacheCoordinator] = None):
        self.db = db
        self.cache = cache

    # ------------------------------------------------------------------
    # Allotments
    # ------------------------------------------------------------------

    async def current_allotment(self, now: datetime) -> int:
        """Allotment published for *now*'s month, or 0 when none exists."""
        result = await self.db.execute(
            select(RefreshTracker.allotment).where(
                RefreshTracker.month == month_label(now),
                RefreshTracker.year == now.year,
            )
        )
        allotment = result.scalar_one_or_none()
        return allotment if allotment is not None else 0

    async def publish_allotment(
        self, month: str, year: int, allotment: int
    ) -> RefreshTracker:
        """Create the tracker for (*month*, *year*).

        Raises:
            ValidationError: Unknown month label or negative allotment.
            AlreadyExistsError: A tracker for that period already exists.
        """
        if month not in MONTH_LABELS:
            raise ValidationError(f"Invalid month label: {month!r}", field="month")
        if allotment < 0:
            raise ValidationError("Allotment must be non-negative", field="allotment")

        tracker = RefreshTracker(month=month, year=year, allotment=allotment)
        self.db.add(tracker)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise AlreadyExistsError("RefreshTracker", f"{month} {year}") from e
        await self.db.commit()

        logger.info("Published allotment %d for %s %d", allotment, month, year)
        return tracker

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def find_account(self, freelancer_id: uuid.UUID) -> Optional[ProposalAccount]:
        result = await self.db.execute(
            select(ProposalAccount)
            .where(ProposalAccount.owner_id == freelancer_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_account(self, freelancer_id: uuid.UUID) -> ProposalAccount:
        account = await self.find_account(freelancer_id)
        if account is None:
            raise NotFoundError("ProposalAccount", freelancer_id)
        return account

    async def open_account(
        self,
        freelancer_id: uuid.UUID,
        now: datetime,
        *,
        allotment: Optional[int] = None,
        commit: bool = True,
    ) -> ProposalAccount:
        """Create the account for *freelancer_id* seeded with this month's allotment.

        *allotment* lets a caller that already read the allotment (within the
        same unit of work) pass it through instead of reading it again.  With
        ``commit=False`` the row is only flushed and the caller owns the
        transaction.

        Raises:
            AlreadyExistsError: An account already exists for the freelancer,
                including when a concurrent call created it first.
        """
        if allotment is None:
            allotment = await self.current_allotment(now)

        account = ProposalAccount(
            owner_id=freelancer_id,
            role=FREELANCER_ROLE,
            balance=allotment,
            last_refreshed_period=period_label(now),
        )
        self.db.add(account)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise AlreadyExistsError("ProposalAccount", freelancer_id) from e

        if commit:
            await self.db.commit()
            await self._invalidate(freelancer_id)

        logger.info(
            "Opened proposal account for %s with balance %d", freelancer_id, allotment
        )
        return account

    async def debit(
        self, freelancer_id: uuid.UUID, amount: int, *, commit: bool = True
    ) -> ProposalAccount:
        """Atomically spend *amount* proposals from the freelancer's balance.

        The decrement only applies when the resulting balance stays
        non-negative; otherwise nothing changes.

        Raises:
            ValidationError: *amount* is not a positive integer.
            NotFoundError: The freelancer has no account.
            InsufficientQuotaError: Balance is lower than *amount*.
        """
        if amount <= 0:
            raise ValidationError("Debit amount must be positive", field="amount")

        result = await self.db.execute(
            update(ProposalAccount)
            .where(
                ProposalAccount.owner_id == freelancer_id,
                ProposalAccount.balance >= amount,
            )
            .values(balance=ProposalAccount.balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            account = await self.find_account(freelancer_id)
            if account is None:
                raise NotFoundError("ProposalAccount", freelancer_id)
            logger.warning(
                "Debit of %d rejected for %s: balance %d",
                amount,
                freelancer_id,
                account.balance,
            )
            raise InsufficientQuotaError(freelancer_id, account.balance, amount)

        if commit:
            await self.db.commit()
            await self._invalidate(freelancer_id)

        account = await self.get_account(freelancer_id)
        logger.info(
            "Debited %d from %s, balance now %d", amount, freelancer_id, account.balance
        )
        return account

    async def refresh(self, freelancer_id: uuid.UUID, now: datetime) -> int:
        """Credit this month's allotment to the freelancer and return the balance.

        An account is credited at most once per period; repeating the call in
        the same month returns the balance unchanged.
        """
        allotment = await self.current_allotment(now)
        period = period_label(now)

        result = await self.db.execute(
            update(ProposalAccount)
            .where(
                ProposalAccount.owner_id == freelancer_id,
                or_(
                    ProposalAccount.last_refreshed_period.is_(None),
                    ProposalAccount.last_refreshed_period != period,
                ),
            )
            .values(
                balance=ProposalAccount.balance + allotment,
                last_refreshed_period=period,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            account = await self.get_account(freelancer_id)
            logger.info("Account %s already refreshed for %s", freelancer_id, period)
            return account.balance

        await self.db.commit()
        await self._invalidate(freelancer_id)

        account = await self.get_account(freelancer_id)
        logger.info(
            "Refreshed %s with %d for %s, balance now %d",
            freelancer_id,
            allotment,
            period,
            account.balance,
        )
        return account.balance

    async def refresh_all(self, now: datetime) -> int:
        """Sweep body: refresh every account not yet credited for *now*'s period.

        Returns the number of accounts credited.
        """
        allotment = await self.current_allotment(now)
        period = period_label(now)
        pending = or_(
            ProposalAccount.last_refreshed_period.is_(None),
            ProposalAccount.last_refreshed_period != period,
        )

        owners = (
            await self.db.execute(select(ProposalAccount.owner_id).where(pending))
        ).scalars().all()
        if not owners:
            logger.info("No accounts pending refresh for %s", period)
            return 0

        result = await self.db.execute(
            update(ProposalAccount)
            .where(ProposalAccount.owner_id.in_(owners), pending)
            .values(
                balance=ProposalAccount.balance + allotment,
                last_refreshed_period=period,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        for owner_id in owners:
            await self._invalidate(owner_id)

        logger.info(
            "Refresh sweep for %s credited %d accounts with %d",
            period,
            result.rowcount,
            allotment,
        )
        return result.rowcount

    async def _invalidate(self, freelancer_id: uuid.UUID) -> None:
        if self.cache is not None:
            await self.cache.invalidate_profile(freelancer_id)
