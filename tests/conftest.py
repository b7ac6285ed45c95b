"""Shared fixtures: a throwaway SQLite database and a scripted AI provider."""

import os

# Settings are read at import time; keep tests off the developer's .env values
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["AUTO_MIGRATE"] = "false"
os.environ["AUTH_JWT_SECRET"] = ""
os.environ["AUTH_JWKS_URL"] = ""
os.environ["AI_GATEWAY_API_KEY"] = "test-key"

from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from hirescore.db.database import Base, build_engine
from hirescore.db.models import QuotaRecordModel, SubscriptionModel, UserModel
from hirescore.models.ai import AiRequestEnvelope, AiResponseEnvelope
from hirescore.providers.base import AIProvider


class ScriptedProvider(AIProvider):
    """AIProvider that replays queued envelopes and records every call."""

    def __init__(self, *responses: AiResponseEnvelope):
        self.responses = list(responses)
        self.calls: list[AiRequestEnvelope] = []
        self.on_send = None

    def build_request(self, envelope: AiRequestEnvelope) -> dict:
        return {"envelope": envelope}

    async def send(self, request: dict) -> AiResponseEnvelope:
        self.calls.append(request["envelope"])
        if self.on_send:
            await self.on_send()
        if not self.responses:
            raise AssertionError("ScriptedProvider ran out of responses")
        return self.responses.pop(0)


class FailingRepository:
    """Repository stand-in whose every call fails like an unreachable database."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        return fail


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def user(db):
    user = UserModel(id="student-1", email="student@example.com", display_name="Student One")
    db.add(user)
    await db.commit()
    return user


async def seed_quota(
    db: AsyncSession,
    user_id: str,
    total: int,
    used: int,
    plan_type: str = "standard",
    is_active: bool = False,
    end_date: Optional[datetime] = None,
) -> None:
    """Insert a user's token counters and subscription directly."""
    db.add(QuotaRecordModel(user_id=user_id, total_tokens=total, used_tokens=used))
    db.add(SubscriptionModel(
        user_id=user_id,
        plan_type=plan_type,
        is_active=is_active,
        end_date=end_date,
    ))
    await db.commit()
