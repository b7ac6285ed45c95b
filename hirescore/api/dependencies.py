"""Shared FastAPI dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.quota import UsageQuotaGate
from ..db.database import get_db
from ..db.repository import QuotaRepository


async def get_quota_gate(db: AsyncSession = Depends(get_db)) -> UsageQuotaGate:
    """A quota gate bound to the request's database session."""
    return UsageQuotaGate(QuotaRepository(db))
