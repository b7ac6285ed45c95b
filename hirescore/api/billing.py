"""Billing API routes: token balance and premium activation."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.auth import get_current_user
from ..core.quota import PREMIUM_TOTAL_CREDITS, UsageQuotaGate
from ..core.security import limiter
from ..db.database import get_db
from ..db.models import UserModel
from ..db.repository import QuotaRepository
from ..models.quota import ActivatePremiumResponse, QuotaResponse, TokenTransaction
from .dependencies import get_quota_gate

router = APIRouter(prefix="/billing", tags=["billing"])
logger = logging.getLogger(__name__)

settings = get_settings()


@router.get("/quota", response_model=QuotaResponse)
async def get_quota(
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
) -> QuotaResponse:
    """Get the current user's token balance, provisioning it on first use."""
    snapshot = await gate.load_or_provision(user.id)
    return snapshot.to_response()


@router.get("/transactions", response_model=list[TokenTransaction])
async def list_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[TokenTransaction]:
    """Get the current user's token ledger, newest first."""
    rows = await QuotaRepository(db).get_transactions(user.id, limit=limit, offset=offset)
    return [
        TokenTransaction(
            id=row.id,
            amount=row.amount,
            type=row.type,
            description=row.description,
            used_after=row.used_after,
            created_at=row.created_at,
        )
        for row in rows
    ]


@router.post("/activate-premium", response_model=ActivatePremiumResponse)
@limiter.limit(settings.billing_rate_limit)
async def activate_premium(
    request: Request,
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
) -> ActivatePremiumResponse:
    """
    Activate the premium plan for the caller after payment confirmation.

    Takes no body: the account is always the authenticated caller's own.
    Calling it again re-extends the 30 day window.
    """
    snapshot = await gate.activate_premium(user.id)

    return ActivatePremiumResponse(
        success=True,
        tokensGranted=PREMIUM_TOTAL_CREDITS,
        message=f"Premium activated with {PREMIUM_TOTAL_CREDITS} tokens",
        quota=snapshot.to_response(),
    )
