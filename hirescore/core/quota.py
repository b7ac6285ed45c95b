"""Token quota gate for AI-backed features.

The gate answers two different questions:
1. check_available(): may the caller even try? Evaluated against the last
   loaded snapshot, no I/O, advisory only.
2. charge(): the authoritative commit. Re-reads the subscription and
   increments used tokens with a conditional UPDATE, so two concurrent
   requests cannot both spend the last token.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..db.models import QuotaRecordModel, SubscriptionModel
from ..db.repository import QuotaRepository
from ..models.quota import PlanType, QuotaRecord, QuotaSnapshot, SubscriptionStatus

logger = logging.getLogger(__name__)

# Allotments
DEFAULT_TOTAL_CREDITS = 100
PREMIUM_TOTAL_CREDITS = 1000

# Premium plan terms
PREMIUM_PERIOD_DAYS = 30
PREMIUM_PRICE = 299

# Tokens charged per feature call
FEATURE_COSTS = {
    "chat": 1,
    "job_search": 1,
    "improve_resume": 2,
    "interview_question": 1,
    "interview_evaluation": 1,
    "career_roadmap": 1,
    "readiness_report": 1,
}


def get_feature_cost(feature: str) -> int:
    """Get the token cost for a feature."""
    return FEATURE_COSTS.get(feature, 1)


class QuotaError(Exception):
    """Base class for quota failures."""


class QuotaNotFoundError(QuotaError):
    """The account has no quota record yet and must be provisioned."""

    def __init__(self, account_id: str):
        super().__init__(f"No quota record for account {account_id}")
        self.account_id = account_id


class QuotaUnavailableError(QuotaError):
    """Quota storage could not be read or written. Metered actions must not proceed."""


class InsufficientQuotaError(QuotaError):
    """The account cannot afford the requested action."""

    def __init__(self, required: int, remaining: Optional[int] = None):
        super().__init__(f"Insufficient tokens: {required} required, {remaining} remaining")
        self.required = required
        self.remaining = remaining


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; stored values are always UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_subscription_status(
    subscription: Optional[SubscriptionModel],
    now: datetime,
) -> SubscriptionStatus:
    """
    Read a subscription row as a SubscriptionStatus.

    A plan whose end_date has passed reads as inactive, and an unknown plan
    string reads as standard.
    """
    if subscription is None:
        return SubscriptionStatus()

    try:
        plan_type = PlanType(subscription.plan_type)
    except ValueError:
        logger.warning(
            f"Unknown plan type '{subscription.plan_type}' for user {subscription.user_id}, treating as standard"
        )
        plan_type = PlanType.STANDARD

    end_date = _as_utc(subscription.end_date)
    is_active = bool(subscription.is_active) and (end_date is None or end_date > now)

    return SubscriptionStatus(
        plan_type=plan_type,
        is_active=is_active,
        start_date=_as_utc(subscription.start_date),
        end_date=end_date,
    )


class UsageQuotaGate:
    """
    Per-request view of one account's token quota.

    Holds the last loaded snapshot for advisory checks; all writes go
    through the repository.
    """

    def __init__(
        self,
        repository: QuotaRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshot: Optional[QuotaSnapshot] = None

    @property
    def snapshot(self) -> Optional[QuotaSnapshot]:
        """Last loaded quota state, or None before the first load."""
        return self._snapshot

    def _build_snapshot(
        self,
        account_id: str,
        record: QuotaRecordModel,
        subscription: Optional[SubscriptionModel],
    ) -> QuotaSnapshot:
        return QuotaSnapshot(
            record=QuotaRecord(
                account_id=account_id,
                total_credits=record.total_tokens,
                used_credits=record.used_tokens,
            ),
            subscription=to_subscription_status(subscription, self._clock()),
        )

    async def load_quota(self, account_id: str) -> QuotaSnapshot:
        """
        Fetch the account's quota record and subscription.

        Raises:
            QuotaNotFoundError: no quota record exists yet
            QuotaUnavailableError: storage failure
        """
        try:
            record = await self.repository.get_record(account_id)
            subscription = await self.repository.get_subscription(account_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load quota for user {account_id}: {e}")
            raise QuotaUnavailableError("Quota storage is unavailable") from e

        if record is None:
            raise QuotaNotFoundError(account_id)

        self._snapshot = self._build_snapshot(account_id, record, subscription)
        return self._snapshot

    async def load_or_provision(self, account_id: str) -> QuotaSnapshot:
        """Load the quota, creating the default record on first use."""
        try:
            return await self.load_quota(account_id)
        except QuotaNotFoundError:
            logger.info(f"No quota record for user {account_id}, provisioning default")

        try:
            await self.repository.provision(account_id, DEFAULT_TOTAL_CREDITS)
        except SQLAlchemyError as e:
            logger.error(f"Failed to provision quota for user {account_id}: {e}")
            raise QuotaUnavailableError("Quota storage is unavailable") from e

        return await self.load_quota(account_id)

    def check_available(self, required: int = 1) -> bool:
        """
        Whether the cached snapshot allows spending `required` tokens.

        Never touches storage. Returns False when nothing has been loaded.
        """
        if required < 1:
            raise ValueError("required must be at least 1")

        if self._snapshot is None:
            return False
        if self._snapshot.is_premium:
            return True
        return self._snapshot.record.remaining_credits >= required

    async def charge(
        self,
        account_id: str,
        amount: int = 1,
        description: Optional[str] = None,
    ) -> bool:
        """
        Commit a usage charge.

        Standard accounts are only charged when used + amount stays within
        total; otherwise nothing is written and False is returned. Active
        unlimited accounts are always charged, for reporting.

        Raises:
            QuotaNotFoundError: the account has no quota record
            QuotaUnavailableError: storage failure
        """
        if amount < 1:
            raise ValueError("amount must be at least 1")

        try:
            subscription = await self.repository.get_subscription(account_id)
            unlimited = to_subscription_status(subscription, self._clock()).is_unlimited

            used_after = await self.repository.increment_used(
                account_id,
                amount,
                enforce_limit=not unlimited,
                description=description,
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to charge {amount} tokens for user {account_id}: {e}")
            raise QuotaUnavailableError("Quota storage is unavailable") from e

        if used_after is None:
            try:
                await self.load_quota(account_id)
            except QuotaNotFoundError:
                self._snapshot = None
                logger.error(f"Refused charge of {amount} tokens for user {account_id}: no quota record")
                raise
            except QuotaUnavailableError:
                logger.warning(f"Could not refresh cached quota for user {account_id}")
            logger.warning(f"Refused charge of {amount} tokens for user {account_id}: insufficient balance")
            return False

        logger.info(
            f"Charged {amount} tokens to user {account_id} "
            f"({'unlimited' if unlimited else 'standard'}), used now {used_after}"
        )
        await self._refresh(account_id)
        return True

    async def activate_premium(self, account_id: str) -> QuotaSnapshot:
        """
        Switch the account to the unlimited plan for PREMIUM_PERIOD_DAYS.

        Resets the counters to PREMIUM_TOTAL_CREDITS / 0. Calling it again
        re-extends the window from now.

        Raises:
            QuotaUnavailableError: storage failure
        """
        now = self._clock()
        end = now + timedelta(days=PREMIUM_PERIOD_DAYS)

        try:
            record, subscription = await self.repository.activate_plan(
                account_id,
                plan_type=PlanType.UNLIMITED.value,
                total_tokens=PREMIUM_TOTAL_CREDITS,
                price=PREMIUM_PRICE,
                start_date=now,
                end_date=end,
                description=f"Premium activated until {end.date().isoformat()}",
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to activate premium for user {account_id}: {e}")
            raise QuotaUnavailableError("Quota storage is unavailable") from e

        logger.info(f"Premium activated for user {account_id} until {end.isoformat()}")
        self._snapshot = self._build_snapshot(account_id, record, subscription)
        return self._snapshot

    async def _refresh(self, account_id: str) -> None:
        # The charge outcome is already decided; a failed re-read only leaves the cache stale
        try:
            await self.load_quota(account_id)
        except QuotaNotFoundError:
            self._snapshot = None
        except QuotaUnavailableError:
            logger.warning(f"Could not refresh cached quota for user {account_id}")
