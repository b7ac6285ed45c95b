"""Repository pattern for database operations."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    JobModel,
    QuotaRecordModel,
    SubscriptionModel,
    TokenTransactionModel,
    utc_now,
)

logger = logging.getLogger(__name__)


class QuotaRepository:
    """
    Repository for token quota database operations.

    Reads a user's quota record together with their subscription, and is
    the only writer of the user_tokens row. Increments are issued as a
    single conditional UPDATE so the limit check and the write cannot be
    interleaved by a concurrent request.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============ Reads ============

    async def get_record(self, user_id: str) -> Optional[QuotaRecordModel]:
        """
        Get a user's quota record, bypassing any copy cached in the session.

        Args:
            user_id: User ID string

        Returns:
            QuotaRecordModel or None if not provisioned
        """
        result = await self.db.execute(
            select(QuotaRecordModel)
            .where(QuotaRecordModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_subscription(self, user_id: str) -> Optional[SubscriptionModel]:
        """Get a user's subscription row, or None if they never had one."""
        result = await self.db.execute(
            select(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_transactions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[TokenTransactionModel]:
        """
        Get a user's token ledger, newest first.

        Args:
            user_id: User ID string
            limit: Maximum number of rows
            offset: Number of rows to skip

        Returns:
            List of TokenTransactionModel
        """
        result = await self.db.execute(
            select(TokenTransactionModel)
            .where(TokenTransactionModel.user_id == user_id)
            .order_by(TokenTransactionModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    # ============ Writes ============

    def _insert(self, model):
        """Dialect insert construct, for ON CONFLICT support."""
        if self.db.bind.dialect.name == "postgresql":
            return pg_insert(model)
        return sqlite_insert(model)

    async def provision(self, user_id: str, total_tokens: int) -> QuotaRecordModel:
        """
        Create the default quota record and standard subscription for a user.

        Both rows are inserted with ON CONFLICT DO NOTHING on user_id, so a
        request provisioning the same user concurrently never raises and
        never needs a rollback. Only the request whose insert wins writes
        the initial_grant ledger row.

        Args:
            user_id: User ID string
            total_tokens: Initial token allotment

        Returns:
            QuotaRecordModel
        """
        result = await self.db.execute(
            self._insert(QuotaRecordModel)
            .values(user_id=user_id, total_tokens=total_tokens, used_tokens=0)
            .on_conflict_do_nothing(index_elements=["user_id"])
            .returning(QuotaRecordModel.id)
        )
        created = result.scalar_one_or_none() is not None

        await self.db.execute(
            self._insert(SubscriptionModel)
            .values(user_id=user_id, plan_type="standard", is_active=False)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )

        if created and total_tokens > 0:
            self.db.add(TokenTransactionModel(
                user_id=user_id,
                amount=total_tokens,
                type="initial_grant",
                description="Welcome tokens for new user",
                used_after=0,
            ))

        await self.db.commit()

        if created:
            logger.info(f"Provisioned quota for user {user_id} with {total_tokens} tokens")
        else:
            logger.info(f"Quota record for user {user_id} was provisioned concurrently")

        record = await self.get_record(user_id)
        if record is None:
            raise RuntimeError(f"Quota record for user {user_id} missing after provisioning")
        return record

    async def increment_used(
        self,
        user_id: str,
        amount: int,
        enforce_limit: bool = True,
        description: Optional[str] = None,
    ) -> Optional[int]:
        """
        Add to used_tokens in one statement and record the usage.

        With enforce_limit the row only changes when used + amount stays
        within total_tokens.

        Args:
            user_id: User ID string
            amount: Tokens to consume (positive)
            enforce_limit: Whether total_tokens caps the increment
            description: Optional ledger description

        Returns:
            used_tokens after the increment, or None if nothing was written
        """
        stmt = (
            update(QuotaRecordModel)
            .where(QuotaRecordModel.user_id == user_id)
            .values(
                used_tokens=QuotaRecordModel.used_tokens + amount,
                updated_at=utc_now(),
            )
            .returning(QuotaRecordModel.used_tokens)
            .execution_options(synchronize_session=False)
        )
        if enforce_limit:
            stmt = stmt.where(
                QuotaRecordModel.used_tokens + amount <= QuotaRecordModel.total_tokens
            )

        result = await self.db.execute(stmt)
        used_after = result.scalar_one_or_none()

        if used_after is None:
            # Zero rows matched; end the transaction without expiring session objects
            await self.db.commit()
            return None

        self.db.add(TokenTransactionModel(
            user_id=user_id,
            amount=-amount,
            type="usage",
            description=description or "AI usage",
            used_after=used_after,
        ))
        await self.db.commit()

        return used_after

    async def activate_plan(
        self,
        user_id: str,
        plan_type: str,
        total_tokens: int,
        price: int,
        start_date: datetime,
        end_date: datetime,
        description: Optional[str] = None,
    ) -> tuple[QuotaRecordModel, SubscriptionModel]:
        """
        Switch a user to a plan and reset their token counters.

        Subscription and token rows are written in one transaction and
        created if missing.

        Returns:
            Tuple of (QuotaRecordModel, SubscriptionModel)
        """
        subscription = await self.get_subscription(user_id)
        if subscription is None:
            subscription = SubscriptionModel(user_id=user_id)
            self.db.add(subscription)

        subscription.plan_type = plan_type
        subscription.is_active = True
        subscription.start_date = start_date
        subscription.end_date = end_date
        subscription.price = price
        subscription.updated_at = utc_now()

        record = await self.get_record(user_id)
        if record is None:
            record = QuotaRecordModel(user_id=user_id)
            self.db.add(record)

        record.total_tokens = total_tokens
        record.used_tokens = 0
        record.updated_at = utc_now()

        self.db.add(TokenTransactionModel(
            user_id=user_id,
            amount=total_tokens,
            type="premium_grant",
            description=description,
            used_after=0,
        ))

        await self.db.commit()
        await self.db.refresh(record)
        await self.db.refresh(subscription)

        return record, subscription


class JobRepository:
    """Repository for job listing reads."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active(self, limit: Optional[int] = None) -> list[JobModel]:
        """
        List active jobs, newest first.

        Args:
            limit: Optional maximum number of jobs

        Returns:
            List of JobModel
        """
        query = (
            select(JobModel)
            .where(JobModel.is_active.is_(True))
            .order_by(JobModel.created_at.desc())
        )
        if limit:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
