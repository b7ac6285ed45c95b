"""SQLAlchemy database models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class UserModel(Base):
    """
    Database model for authenticated users.

    Users are synced from the auth provider on first authentication.
    The ID is the JWT subject claim.
    """

    __tablename__ = "users"

    # Primary key - the auth provider's user ID (string format)
    id = Column(String(100), primary_key=True)

    email = Column(String(255), nullable=True, unique=True, index=True)
    display_name = Column(String(200), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    # Relationships
    quota = relationship(
        "QuotaRecordModel",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    subscription = relationship(
        "SubscriptionModel",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    token_transactions = relationship(
        "TokenTransactionModel",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class QuotaRecordModel(Base):
    """
    Database model for per-account usage tokens.

    Remaining tokens are always derived from the two counters and never
    stored. One-to-one relationship with UserModel.
    """

    __tablename__ = "user_tokens"

    # Primary key
    id = Column(String(36), primary_key=True, default=generate_uuid)

    # User association (one-to-one)
    user_id = Column(
        String(100),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Counters
    total_tokens = Column(Integer, nullable=False, default=100)
    used_tokens = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    # Relationships
    user = relationship("UserModel", back_populates="quota")

    __table_args__ = (
        CheckConstraint("total_tokens >= 0", name="ck_user_tokens_total_nonneg"),
        CheckConstraint("used_tokens >= 0", name="ck_user_tokens_used_nonneg"),
    )

    @property
    def remaining_tokens(self) -> int:
        return self.total_tokens - self.used_tokens

    def __repr__(self) -> str:
        return f"<QuotaRecord(user_id={self.user_id}, used={self.used_tokens}/{self.total_tokens})>"


class TokenTransactionModel(Base):
    """
    Database model for token ledger entries.

    Records every committed usage charge and every grant.
    """

    __tablename__ = "token_transactions"

    # Primary key
    id = Column(String(36), primary_key=True, default=generate_uuid)

    # User association
    user_id = Column(
        String(100),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Transaction details
    amount = Column(Integer, nullable=False)  # Positive = grant, negative = usage
    type = Column(String(50), nullable=False)  # initial_grant, usage, premium_grant
    description = Column(Text, nullable=True)

    # Used tokens after this transaction
    used_after = Column(Integer, nullable=False)

    # Timestamp
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    # Relationships
    user = relationship("UserModel", back_populates="token_transactions")

    __table_args__ = (
        Index("idx_token_transactions_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<TokenTransaction(id={self.id}, user_id={self.user_id}, amount={self.amount})>"


class SubscriptionModel(Base):
    """
    Database model for user subscriptions.

    plan_type is 'standard' or 'unlimited'. The unlimited plan only bypasses
    token limits while is_active is set and end_date has not passed.
    """

    __tablename__ = "subscriptions"

    # Primary key
    id = Column(String(36), primary_key=True, default=generate_uuid)

    # User association (one-to-one)
    user_id = Column(
        String(100),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Subscription details
    plan_type = Column(String(50), nullable=False, default="standard")
    is_active = Column(Boolean, nullable=False, default=False)
    price = Column(Integer, nullable=False, default=0)

    # Validity window
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    # Relationships
    user = relationship("UserModel", back_populates="subscription")

    def __repr__(self) -> str:
        return f"<Subscription(user_id={self.user_id}, plan={self.plan_type}, active={self.is_active})>"


class JobModel(Base):
    """Database model for job listings searched by the AI job matcher."""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    title = Column(String(200), nullable=False)
    company = Column(String(200), nullable=False)
    location = Column(String(200), nullable=True)
    type = Column(String(50), nullable=True)  # full-time, internship, ...
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=False, default="")
    salary_range = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_jobs_active_created", "is_active", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "type": self.type,
            "category": self.category,
            "description": self.description,
            "salary_range": self.salary_range,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title={self.title}, company={self.company})>"
