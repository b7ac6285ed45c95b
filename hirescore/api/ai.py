"""API routes for the AI-backed features.

Every route follows the same order: check the token balance, call the
gateway, and charge only after a successful response.
"""

import json
import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.auth import get_current_user
from ..core.metering import MeteredResult, run_metered
from ..core.prompts import (
    ANSWER_EVALUATION_SYSTEM_PROMPT,
    CAREER_ROADMAP_SYSTEM_PROMPT,
    DEFAULT_ANSWER_SCORE,
    DEFAULT_ATS_SCORE,
    DEFAULT_READINESS_SCORES,
    INTERVIEW_QUESTION_SYSTEM_PROMPT,
    JOB_MATCH_SYSTEM_PROMPT,
    JOB_MATCH_TOOL,
    READINESS_REPORT_SYSTEM_PROMPT,
    RESUME_SYSTEM_PROMPT,
    build_answer_evaluation_prompt,
    build_interview_question_prompt,
    build_job_match_prompt,
    build_readiness_prompt,
    build_resume_prompt,
    build_roadmap_prompt,
    fallback_readiness_report,
)
from ..core.quota import UsageQuotaGate, get_feature_cost
from ..core.security import limiter
from ..core.structured import (
    coerce_score,
    merge_job_matches,
    normalize_readiness_report,
    parse_json_content,
)
from ..db.database import get_db
from ..db.models import UserModel
from ..db.repository import JobRepository
from ..models.ai import AiRequestEnvelope, AiResponseEnvelope, ErrorKind, ResponseKind
from ..models.features import (
    AnswerEvaluationRequest,
    AnswerEvaluationResponse,
    ChatRequest,
    ChatReplyResponse,
    ConversationResponse,
    InterviewQuestionRequest,
    InterviewQuestionResponse,
    JobSearchRequest,
    JobSearchResponse,
    ReadinessReport,
    ReadinessReportRequest,
    ReadinessReportResponse,
    ResumeRequest,
    ResumeResponse,
    RoadmapRequest,
    RoadmapResponse,
)
from ..providers import AIProvider, get_provider
from .dependencies import get_quota_gate

router = APIRouter(prefix="/ai", tags=["ai"])
logger = logging.getLogger(__name__)

settings = get_settings()

# Model used by the single-purpose features
FEATURE_MODEL = "google/gemini-2.5-flash"

NO_JOBS_EXPLANATION = "No jobs available at the moment. Please check back later!"


def raise_for_ai_error(response: AiResponseEnvelope) -> None:
    """
    Convert an error envelope into an HTTP error.

    Provider status codes and bodies are logged by the provider and never
    forwarded to the client.
    """
    if not response.is_error:
        return

    if response.error_kind == ErrorKind.RATE_LIMITED:
        raise HTTPException(
            status_code=429,
            detail={"error": "rate_limited", "message": response.message},
        )

    if response.error_kind == ErrorKind.PAYMENT_REQUIRED:
        raise HTTPException(
            status_code=402,
            detail={"error": "payment_required", "message": response.message, "upgrade": True},
        )

    raise HTTPException(
        status_code=502,
        detail={"error": "ai_unavailable", "message": response.message},
    )


def _require_text(value: str, field: str) -> str:
    value = value.strip()
    if not value:
        raise HTTPException(status_code=400, detail=f"{field} is required")
    return value


def _result_text(result: MeteredResult) -> str:
    """Text of a successful metered call."""
    raise_for_ai_error(result.response)
    if result.response.kind == ResponseKind.STRUCTURED:
        return json.dumps(result.response.structured_payload)
    return result.response.text


def _quota(result: MeteredResult):
    return result.snapshot.to_response() if result.snapshot else None


@router.post("/chat", response_model=Union[ChatReplyResponse, ConversationResponse])
@limiter.limit(settings.ai_rate_limit)
async def chat(
    request: Request,
    body: ChatRequest,
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
    provider: AIProvider = Depends(get_provider),
) -> Union[ChatReplyResponse, ConversationResponse]:
    """
    Ask a persona model a question, or continue a mentor conversation.

    `{message, model}` answers with `reply`; `{messages}` is forwarded as-is
    (the caller supplies its own system turn) and answers with `response`.
    """
    envelope = AiRequestEnvelope(
        model=body.model,
        message=body.message,
        messages=body.messages,
    )

    result = await run_metered(
        gate, provider, user.id, envelope,
        cost=get_feature_cost("chat"),
        description="AI chat",
    )
    text = _result_text(result)

    if envelope.is_conversation:
        return ConversationResponse(response=text, model=result.response.model, quota=_quota(result))
    return ChatReplyResponse(reply=text, model=result.response.model, quota=_quota(result))


@router.post("/job-search", response_model=JobSearchResponse)
@limiter.limit(settings.ai_rate_limit)
async def job_search(
    request: Request,
    body: JobSearchRequest,
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
    provider: AIProvider = Depends(get_provider),
    db: AsyncSession = Depends(get_db),
) -> JobSearchResponse:
    """
    Rank active job listings against a free-text query.

    The model must answer through the suggest_matches tool; a reply
    without the tool call is a 502 and is not charged. If the tool call
    arguments cannot be read, the message prose becomes the explanation
    and no results are returned.
    """
    query = _require_text(body.query, "Query")

    jobs = [job.to_dict() for job in await JobRepository(db).list_active()]

    if not jobs:
        snapshot = await gate.load_or_provision(user.id)
        return JobSearchResponse(
            results=[],
            explanation=NO_JOBS_EXPLANATION,
            query=query,
            total_analyzed=0,
            quota=snapshot.to_response(),
        )

    logger.info(f"Analyzing {len(jobs)} jobs for user {user.id}")

    envelope = AiRequestEnvelope(
        model=FEATURE_MODEL,
        system_prompt=JOB_MATCH_SYSTEM_PROMPT,
        message=build_job_match_prompt(query, jobs),
        tool_schema=JOB_MATCH_TOOL,
    )

    result = await run_metered(
        gate, provider, user.id, envelope,
        cost=get_feature_cost("job_search"),
        description="AI job search",
    )
    raise_for_ai_error(result.response)

    payload: Optional[dict] = result.response.structured_payload
    if payload is None:
        payload = parse_json_content(result.response.text)

    if payload is None:
        return JobSearchResponse(
            results=[],
            explanation=result.response.text.strip(),
            query=query,
            total_analyzed=len(jobs),
            quota=_quota(result),
        )

    return JobSearchResponse(
        results=merge_job_matches(jobs, payload.get("matches")),
        explanation=str(payload.get("explanation") or ""),
        query=query,
        total_analyzed=len(jobs),
        quota=_quota(result),
    )


@router.post("/improve-resume", response_model=ResumeResponse)
@limiter.limit(settings.ai_rate_limit)
async def improve_resume(
    request: Request,
    body: ResumeRequest,
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
    provider: AIProvider = Depends(get_provider),
) -> ResumeResponse:
    """Rewrite a resume for ATS compatibility and score it."""
    resume_text = _require_text(body.resumeText, "Resume text")

    envelope = AiRequestEnvelope(
        model=FEATURE_MODEL,
        system_prompt=RESUME_SYSTEM_PROMPT,
        message=build_resume_prompt(resume_text),
    )

    result = await run_metered(
        gate, provider, user.id, envelope,
        cost=get_feature_cost("improve_resume"),
        description="Resume improvement",
    )
    text = _result_text(result)

    data = parse_json_content(text)
    if data and data.get("improvedResume"):
        return ResumeResponse(
            improvedResume=str(data["improvedResume"]),
            atsScore=coerce_score(data.get("atsScore"), DEFAULT_ATS_SCORE),
            quota=_quota(result),
        )

    return ResumeResponse(improvedResume=text, atsScore=DEFAULT_ATS_SCORE, quota=_quota(result))


@router.post("/interview/question", response_model=InterviewQuestionResponse)
@limiter.limit(settings.ai_rate_limit)
async def interview_question(
    request: Request,
    body: InterviewQuestionRequest,
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
    provider: AIProvider = Depends(get_provider),
) -> InterviewQuestionResponse:
    """Generate one mock interview question for a role."""
    role = _require_text(body.role, "Role")

    envelope = AiRequestEnvelope(
        model=FEATURE_MODEL,
        system_prompt=INTERVIEW_QUESTION_SYSTEM_PROMPT,
        message=build_interview_question_prompt(role),
    )

    result = await run_metered(
        gate, provider, user.id, envelope,
        cost=get_feature_cost("interview_question"),
        description="Interview question",
    )

    return InterviewQuestionResponse(question=_result_text(result).strip(), quota=_quota(result))


@router.post("/interview/evaluate", response_model=AnswerEvaluationResponse)
@limiter.limit(settings.ai_rate_limit)
async def evaluate_answer(
    request: Request,
    body: AnswerEvaluationRequest,
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
    provider: AIProvider = Depends(get_provider),
) -> AnswerEvaluationResponse:
    """Score a candidate's answer to a mock interview question."""
    question = _require_text(body.question, "Question")
    answer = _require_text(body.answer, "Answer")
    role = _require_text(body.role, "Role")

    envelope = AiRequestEnvelope(
        model=FEATURE_MODEL,
        system_prompt=ANSWER_EVALUATION_SYSTEM_PROMPT.format(role=role),
        message=build_answer_evaluation_prompt(question, answer),
    )

    result = await run_metered(
        gate, provider, user.id, envelope,
        cost=get_feature_cost("interview_evaluation"),
        description="Interview answer evaluation",
    )
    text = _result_text(result)

    data = parse_json_content(text)
    if data and data.get("feedback"):
        return AnswerEvaluationResponse(
            score=coerce_score(data.get("score"), DEFAULT_ANSWER_SCORE),
            feedback=str(data["feedback"]),
            quota=_quota(result),
        )

    return AnswerEvaluationResponse(score=DEFAULT_ANSWER_SCORE, feedback=text, quota=_quota(result))


@router.post("/career-roadmap", response_model=RoadmapResponse)
@limiter.limit(settings.ai_rate_limit)
async def career_roadmap(
    request: Request,
    body: RoadmapRequest,
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
    provider: AIProvider = Depends(get_provider),
) -> RoadmapResponse:
    """Generate a personalized career roadmap from a background summary."""
    background = _require_text(body.background, "Background information")

    envelope = AiRequestEnvelope(
        model=FEATURE_MODEL,
        system_prompt=CAREER_ROADMAP_SYSTEM_PROMPT,
        message=build_roadmap_prompt(background),
    )

    result = await run_metered(
        gate, provider, user.id, envelope,
        cost=get_feature_cost("career_roadmap"),
        description="Career roadmap",
    )

    return RoadmapResponse(roadmap=_result_text(result), quota=_quota(result))


@router.post("/readiness-report", response_model=ReadinessReportResponse)
@limiter.limit(settings.ai_rate_limit)
async def readiness_report(
    request: Request,
    body: ReadinessReportRequest,
    user: UserModel = Depends(get_current_user),
    gate: UsageQuotaGate = Depends(get_quota_gate),
    provider: AIProvider = Depends(get_provider),
) -> ReadinessReportResponse:
    """
    Score a student's campus readiness from their self-assessment.

    The model is asked for a JSON report. If its answer is not JSON, a
    fallback report with default scores is returned and the prose is kept
    as the summary.
    """
    if not body.assessmentData:
        raise HTTPException(status_code=400, detail="Assessment data is required")

    logger.info(f"Generating readiness report for user {user.id}")

    envelope = AiRequestEnvelope(
        model=FEATURE_MODEL,
        system_prompt=READINESS_REPORT_SYSTEM_PROMPT,
        message=build_readiness_prompt(body.assessmentData),
    )

    result = await run_metered(
        gate, provider, user.id, envelope,
        cost=get_feature_cost("readiness_report"),
        description="Readiness report",
    )
    text = _result_text(result)

    data = parse_json_content(text)
    if data is None:
        logger.warning(f"Readiness report for user {user.id} was not JSON, using fallback scores")
        data = fallback_readiness_report(text.strip())

    report = ReadinessReport(**normalize_readiness_report(data, DEFAULT_READINESS_SCORES))
    return ReadinessReportResponse(report=report, model=result.response.model, quota=_quota(result))
