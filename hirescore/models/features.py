"""Request/response bodies for the AI-backed feature endpoints."""

from typing import Any, Optional
from pydantic import BaseModel, Field, model_validator

from .ai import ChatMessage
from .quota import QuotaResponse


class ChatRequest(BaseModel):
    """Either a single question for a persona model, or a full conversation."""
    message: Optional[str] = Field(default=None, max_length=8000)
    model: Optional[str] = Field(default=None, description="chatgpt, gemini, claude, huggingface or a provider model id")
    messages: Optional[list[ChatMessage]] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def check_payload_shape(self) -> "ChatRequest":
        if (self.message is None) == (self.messages is None):
            raise ValueError("Provide exactly one of 'message' or 'messages'")
        if self.message is not None and not self.message.strip():
            raise ValueError("'message' must not be empty")
        if self.messages is not None and not self.messages:
            raise ValueError("'messages' must not be empty")
        return self


class ChatReplyResponse(BaseModel):
    """Answer to a single message."""
    reply: str
    model: Optional[str] = None
    quota: Optional[QuotaResponse] = None


class ConversationResponse(BaseModel):
    """Answer to a full conversation."""
    response: str
    model: Optional[str] = None
    quota: Optional[QuotaResponse] = None


class JobSearchRequest(BaseModel):
    query: str = Field(..., max_length=1000)


class JobSearchResponse(BaseModel):
    results: list[dict[str, Any]] = Field(default_factory=list)
    explanation: str
    query: str
    total_analyzed: int = 0
    quota: Optional[QuotaResponse] = None


class ResumeRequest(BaseModel):
    resumeText: str = Field(..., max_length=30000)


class ResumeResponse(BaseModel):
    improvedResume: str
    atsScore: int = Field(..., ge=0, le=100)
    quota: Optional[QuotaResponse] = None


class InterviewQuestionRequest(BaseModel):
    role: str = Field(..., max_length=200)


class InterviewQuestionResponse(BaseModel):
    question: str
    quota: Optional[QuotaResponse] = None


class AnswerEvaluationRequest(BaseModel):
    question: str = Field(..., max_length=4000)
    answer: str = Field(..., max_length=10000)
    role: str = Field(..., max_length=200)


class AnswerEvaluationResponse(BaseModel):
    score: int = Field(..., ge=0, le=100)
    feedback: str
    quota: Optional[QuotaResponse] = None


class RoadmapRequest(BaseModel):
    background: str = Field(..., max_length=8000)


class RoadmapResponse(BaseModel):
    roadmap: str
    quota: Optional[QuotaResponse] = None


class ReadinessReportRequest(BaseModel):
    """Self-assessment answers gathered by the readiness questionnaire."""
    assessmentData: dict[str, Any]


class ReadinessActionItem(BaseModel):
    priority: str
    action: str
    timeline: str = ""


class ReadinessAnalysis(BaseModel):
    summary: str = ""
    technicalAnalysis: str = ""
    softSkillsAnalysis: str = ""
    experienceAnalysis: str = ""
    projectAnalysis: str = ""


class ReadinessReport(BaseModel):
    overallScore: int = Field(..., ge=0, le=100)
    technicalScore: int = Field(..., ge=0, le=100)
    softSkillsScore: int = Field(..., ge=0, le=100)
    experienceScore: int = Field(..., ge=0, le=100)
    projectQualityScore: int = Field(..., ge=0, le=100)
    analysis: ReadinessAnalysis
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    actionItems: list[ReadinessActionItem] = Field(default_factory=list)


class ReadinessReportResponse(BaseModel):
    report: ReadinessReport
    model: Optional[str] = None
    quota: Optional[QuotaResponse] = None
