"""Data models for the HireScore backend."""

from .ai import (
    AiRequestEnvelope,
    AiResponseEnvelope,
    ChatMessage,
    ErrorKind,
    MessageRole,
    ResponseKind,
    ToolSchema,
)
from .quota import (
    PlanType,
    QuotaRecord,
    QuotaResponse,
    QuotaSnapshot,
    SubscriptionStatus,
    TokenTransaction,
    TransactionType,
    ActivatePremiumResponse,
)

__all__ = [
    "AiRequestEnvelope",
    "AiResponseEnvelope",
    "ChatMessage",
    "ErrorKind",
    "MessageRole",
    "ResponseKind",
    "ToolSchema",
    "PlanType",
    "QuotaRecord",
    "QuotaResponse",
    "QuotaSnapshot",
    "SubscriptionStatus",
    "TokenTransaction",
    "TransactionType",
    "ActivatePremiumResponse",
]
