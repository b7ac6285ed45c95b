"""Pydantic models for the token quota system."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class PlanType(str, Enum):
    """Subscription plans."""
    STANDARD = "standard"
    UNLIMITED = "unlimited"


class TransactionType(str, Enum):
    """Types of token ledger entries."""
    INITIAL_GRANT = "initial_grant"  # New user provisioning
    USAGE = "usage"  # Token consumption
    PREMIUM_GRANT = "premium_grant"  # Premium activation reset


class QuotaRecord(BaseModel):
    """A user's token counters."""
    account_id: str = Field(..., description="User ID")
    total_credits: int = Field(..., ge=0, description="Token allotment for the period")
    used_credits: int = Field(..., ge=0, description="Tokens consumed in the period")

    @property
    def remaining_credits(self) -> int:
        return self.total_credits - self.used_credits


class SubscriptionStatus(BaseModel):
    """A user's plan, read alongside their quota record."""
    plan_type: PlanType = Field(default=PlanType.STANDARD, description="Subscription plan")
    is_active: bool = Field(default=False, description="Whether the plan is currently active")
    start_date: Optional[datetime] = Field(default=None, description="Start of the validity window")
    end_date: Optional[datetime] = Field(default=None, description="End of the validity window")

    @property
    def is_unlimited(self) -> bool:
        return self.plan_type == PlanType.UNLIMITED and self.is_active


class QuotaSnapshot(BaseModel):
    """Point-in-time view of a user's quota, as shown to clients."""
    record: QuotaRecord
    subscription: SubscriptionStatus

    @property
    def is_premium(self) -> bool:
        return self.subscription.is_unlimited

    def to_response(self) -> "QuotaResponse":
        return QuotaResponse(
            total_tokens=self.record.total_credits,
            used_tokens=self.record.used_credits,
            remaining_tokens=None if self.is_premium else max(self.record.remaining_credits, 0),
            is_premium=self.is_premium,
            plan_type=self.subscription.plan_type,
            premium_expires_at=self.subscription.end_date if self.is_premium else None,
        )


class QuotaResponse(BaseModel):
    """Client-facing quota view. remaining_tokens is None for unlimited plans."""
    total_tokens: int
    used_tokens: int
    remaining_tokens: Optional[int] = None
    is_premium: bool = False
    plan_type: PlanType = PlanType.STANDARD
    premium_expires_at: Optional[datetime] = None


class TokenTransaction(BaseModel):
    """A single token ledger entry."""
    id: str = Field(..., description="Transaction ID")
    amount: int = Field(..., description="Token amount (positive=grant, negative=usage)")
    type: TransactionType = Field(..., description="Transaction type")
    description: Optional[str] = Field(default=None, description="Human-readable description")
    used_after: int = Field(..., ge=0, description="Used tokens after this transaction")
    created_at: datetime = Field(..., description="Transaction timestamp")


class ActivatePremiumResponse(BaseModel):
    """Result of activating the premium plan."""
    success: bool
    tokensGranted: int
    message: str
    quota: QuotaResponse
