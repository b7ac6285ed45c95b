"""Database module for HireScore."""

from .database import get_db, engine, async_session, build_engine, init_db, close_db
from .models import (
    Base,
    UserModel,
    QuotaRecordModel,
    SubscriptionModel,
    TokenTransactionModel,
    JobModel,
)
from .repository import QuotaRepository, JobRepository

__all__ = [
    "get_db",
    "engine",
    "async_session",
    "build_engine",
    "init_db",
    "close_db",
    "Base",
    "UserModel",
    "QuotaRecordModel",
    "SubscriptionModel",
    "TokenTransactionModel",
    "JobModel",
    "QuotaRepository",
    "JobRepository",
]
