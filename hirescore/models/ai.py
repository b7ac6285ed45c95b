"""Request and response envelopes for the AI gateway relay."""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, model_validator


class MessageRole(str, Enum):
    """Roles accepted in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One turn of a conversation."""
    role: MessageRole
    content: str


class ToolSchema(BaseModel):
    """Function the model is forced to call instead of replying with text."""
    name: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
    description: str = ""
    parameters: dict[str, Any] = Field(..., description="JSON Schema for the call arguments")


class AiRequestEnvelope(BaseModel):
    """
    Caller intent for one AI call.

    Exactly one payload shape is accepted: a single `message` (wrapped with
    the model's default system prompt) or a `messages` conversation that is
    forwarded as-is.
    """
    model: Optional[str] = Field(default=None, description="Model alias or provider model id")
    message: Optional[str] = None
    messages: Optional[list[ChatMessage]] = None
    system_prompt: Optional[str] = Field(
        default=None,
        description="Overrides the alias default system prompt in single-message mode",
    )
    tool_schema: Optional[ToolSchema] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_payload_shape(self) -> "AiRequestEnvelope":
        if (self.message is None) == (self.messages is None):
            raise ValueError("Provide exactly one of 'message' or 'messages'")
        if self.message is not None and not self.message.strip():
            raise ValueError("'message' must not be empty")
        if self.messages is not None and not self.messages:
            raise ValueError("'messages' must not be empty")
        return self

    @property
    def is_conversation(self) -> bool:
        return self.messages is not None


class ResponseKind(str, Enum):
    TEXT = "text"
    STRUCTURED = "structured"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Classified gateway failures."""
    RATE_LIMITED = "rate_limited"  # 429, retry later
    PAYMENT_REQUIRED = "payment_required"  # 402, billing action needed
    UPSTREAM_FAILURE = "upstream_failure"  # other non-2xx, timeouts, network
    MALFORMED_RESPONSE = "malformed_response"  # 2xx without the expected fields


# End-user messages per error kind. Never include provider details here.
ERROR_MESSAGES = {
    ErrorKind.RATE_LIMITED: "Rate limit exceeded. Please try again in a moment.",
    ErrorKind.PAYMENT_REQUIRED: "AI credits exhausted. Please contact support or upgrade to continue.",
    ErrorKind.UPSTREAM_FAILURE: "The AI service is unavailable right now. Please try again.",
    ErrorKind.MALFORMED_RESPONSE: "The AI service returned an unexpected response. Please try again.",
}


class AiResponseEnvelope(BaseModel):
    """
    Normalized result of one AI call.

    Exactly one of text, structured_payload and error_kind is set, matching
    kind.
    """
    kind: ResponseKind
    text: Optional[str] = None
    structured_payload: Optional[dict[str, Any]] = None
    error_kind: Optional[ErrorKind] = None

    # Diagnostics for error envelopes
    status_code: Optional[int] = None
    detail: Optional[str] = None
    message: Optional[str] = None

    # Success metadata
    model: Optional[str] = None
    usage: Optional[dict] = None

    @model_validator(mode="after")
    def check_single_variant(self) -> "AiResponseEnvelope":
        populated = {
            ResponseKind.TEXT: self.text is not None,
            ResponseKind.STRUCTURED: self.structured_payload is not None,
            ResponseKind.ERROR: self.error_kind is not None,
        }
        if not populated[self.kind] or sum(populated.values()) != 1:
            raise ValueError(f"Envelope of kind '{self.kind.value}' must carry exactly its own payload")
        return self

    @property
    def is_error(self) -> bool:
        return self.kind == ResponseKind.ERROR

    @classmethod
    def text_result(cls, text: str, model: Optional[str] = None, usage: Optional[dict] = None) -> "AiResponseEnvelope":
        return cls(kind=ResponseKind.TEXT, text=text, model=model, usage=usage)

    @classmethod
    def structured_result(
        cls,
        payload: dict[str, Any],
        model: Optional[str] = None,
        usage: Optional[dict] = None,
    ) -> "AiResponseEnvelope":
        return cls(kind=ResponseKind.STRUCTURED, structured_payload=payload, model=model, usage=usage)

    @classmethod
    def error_result(
        cls,
        error_kind: ErrorKind,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> "AiResponseEnvelope":
        return cls(
            kind=ResponseKind.ERROR,
            error_kind=error_kind,
            status_code=status_code,
            detail=detail,
            message=ERROR_MESSAGES[error_kind],
        )
