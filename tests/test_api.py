"""End-to-end tests for the HTTP API with a scripted AI provider."""

import json

import httpx
import pytest
from sqlalchemy import select

from conftest import FailingRepository, ScriptedProvider, seed_quota
from hirescore.api.ai import NO_JOBS_EXPLANATION
from hirescore.api.dependencies import get_quota_gate
from hirescore.core.auth import DEV_USER_ID
from hirescore.core.quota import UsageQuotaGate
from hirescore.core.security import limiter
from hirescore.db.database import get_db
from hirescore.db.models import JobModel, QuotaRecordModel, UserModel
from hirescore.main import app
from hirescore.models.ai import AiResponseEnvelope, ErrorKind
from hirescore.providers import get_provider


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
async def client(session_factory, provider):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider] = lambda: provider
    limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
async def dev_user(db):
    user = UserModel(id=DEV_USER_ID, email="dev@example.com", display_name="Development User")
    db.add(user)
    await db.commit()
    return user


async def used_tokens(session_factory, user_id=DEV_USER_ID) -> int:
    async with session_factory() as session:
        record = (await session.execute(
            select(QuotaRecordModel).where(QuotaRecordModel.user_id == user_id)
        )).scalar_one()
        return record.used_tokens


class TestChat:

    @pytest.mark.asyncio
    async def test_single_message_returns_reply(self, client, provider, session_factory):
        provider.responses.append(AiResponseEnvelope.text_result("Start with SQL basics.", model="openai/gpt-5-mini"))

        response = await client.post("/api/v1/ai/chat", json={"message": "Where do I start?", "model": "chatgpt"})

        assert response.status_code == 200
        body = response.json()
        assert body["reply"] == "Start with SQL basics."
        assert "response" not in body
        assert body["model"] == "openai/gpt-5-mini"
        assert body["quota"]["remaining_tokens"] == 99
        assert provider.calls[0].model == "chatgpt"
        assert await used_tokens(session_factory) == 1

    @pytest.mark.asyncio
    async def test_conversation_returns_response(self, client, provider):
        provider.responses.append(AiResponseEnvelope.text_result("Try building a portfolio."))

        response = await client.post("/api/v1/ai/chat", json={"messages": [
            {"role": "system", "content": "You are a career mentor."},
            {"role": "user", "content": "How do I get noticed?"},
        ]})

        assert response.status_code == 200
        assert response.json()["response"] == "Try building a portfolio."
        assert "reply" not in response.json()
        assert provider.calls[0].is_conversation

    @pytest.mark.asyncio
    async def test_message_and_messages_together_rejected(self, client, provider):
        response = await client.post("/api/v1/ai/chat", json={
            "message": "hi",
            "messages": [{"role": "user", "content": "hi"}],
        })

        assert response.status_code == 422
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_out_of_tokens_is_402_without_ai_call(self, client, provider, db, dev_user, session_factory):
        await seed_quota(db, DEV_USER_ID, total=100, used=100)

        response = await client.post("/api/v1/ai/chat", json={"message": "hello"})

        assert response.status_code == 402
        detail = response.json()["detail"]
        assert detail["error"] == "insufficient_tokens"
        assert detail["upgrade"] is True
        assert detail["required_tokens"] == 1
        assert detail["available_tokens"] == 0
        assert provider.calls == []
        assert await used_tokens(session_factory) == 100

    @pytest.mark.asyncio
    async def test_gateway_rate_limit_is_429_and_free(self, client, provider, db, dev_user, session_factory):
        await seed_quota(db, DEV_USER_ID, total=100, used=5)
        provider.responses.append(AiResponseEnvelope.error_result(ErrorKind.RATE_LIMITED, status_code=429))

        response = await client.post("/api/v1/ai/chat", json={"message": "hello"})

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "rate_limited"
        assert await used_tokens(session_factory) == 5

    @pytest.mark.asyncio
    async def test_gateway_payment_required_is_402(self, client, provider):
        provider.responses.append(AiResponseEnvelope.error_result(ErrorKind.PAYMENT_REQUIRED, status_code=402))

        response = await client.post("/api/v1/ai/chat", json={"message": "hello"})

        assert response.status_code == 402
        assert response.json()["detail"]["error"] == "payment_required"

    @pytest.mark.asyncio
    async def test_upstream_failure_hides_provider_details(self, client, provider, db, dev_user, session_factory):
        await seed_quota(db, DEV_USER_ID, total=100, used=5)
        provider.responses.append(AiResponseEnvelope.error_result(
            ErrorKind.UPSTREAM_FAILURE, status_code=500, detail="internal stack trace from gateway",
        ))

        response = await client.post("/api/v1/ai/chat", json={"message": "hello"})

        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "ai_unavailable"
        assert "stack trace" not in response.text
        assert await used_tokens(session_factory) == 5

    @pytest.mark.asyncio
    async def test_premium_account_runs_past_total(self, client, provider, db, dev_user):
        await seed_quota(db, DEV_USER_ID, total=1000, used=1000, plan_type="unlimited", is_active=True)
        provider.responses.append(AiResponseEnvelope.text_result("Sure."))

        response = await client.post("/api/v1/ai/chat", json={"message": "hello"})

        assert response.status_code == 200
        assert response.json()["quota"]["is_premium"] is True
        assert response.json()["quota"]["remaining_tokens"] is None
        assert "premium_expires_at" in response.json()["quota"]
        assert response.json()["quota"]["plan_type"] == "unlimited"

    @pytest.mark.asyncio
    async def test_quota_storage_failure_is_503(self, client, provider):
        app.dependency_overrides[get_quota_gate] = lambda: UsageQuotaGate(FailingRepository())

        response = await client.post("/api/v1/ai/chat", json={"message": "hello"})

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "quota_unavailable"
        assert provider.calls == []


class TestJobSearch:

    @pytest.fixture
    async def jobs(self, db):
        db.add_all([
            JobModel(id="job-1", title="Data Analyst Intern", company="Acme", description="SQL and dashboards"),
            JobModel(id="job-2", title="Backend Developer", company="Globex", description="Python APIs"),
            JobModel(id="job-3", title="Closed Role", company="Initech", description="Gone", is_active=False),
        ])
        await db.commit()

    @pytest.mark.asyncio
    async def test_structured_matches_are_merged(self, client, provider, jobs):
        provider.responses.append(AiResponseEnvelope.structured_result({
            "matches": [
                {"job_id": "job-2", "relevance_score": 91, "match_reason": "Python focus"},
                {"job_id": "job-9", "relevance_score": 99, "match_reason": "Made up"},
                {"job_id": "job-1", "relevance_score": 40, "match_reason": "Some overlap"},
            ],
            "explanation": "Backend work suits your Python background.",
        }))

        response = await client.post("/api/v1/ai/job-search", json={"query": "python jobs"})

        assert response.status_code == 200
        body = response.json()
        assert [r["id"] for r in body["results"]] == ["job-2", "job-1"]
        assert body["results"][0]["company"] == "Globex"
        assert body["explanation"] == "Backend work suits your Python background."
        assert body["total_analyzed"] == 2
        assert body["query"] == "python jobs"

        sent = provider.calls[0]
        assert sent.tool_schema.name == "suggest_matches"
        assert "Closed Role" not in sent.message

    @pytest.mark.asyncio
    async def test_missing_tool_call_is_502_and_free(self, client, provider, jobs, session_factory):
        provider.responses.append(AiResponseEnvelope.error_result(
            ErrorKind.MALFORMED_RESPONSE, detail="required 'suggest_matches' tool call missing",
        ))

        response = await client.post("/api/v1/ai/job-search", json={"query": "anything"})

        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "ai_unavailable"
        assert len(provider.calls) == 1
        assert await used_tokens(session_factory) == 0

    @pytest.mark.asyncio
    async def test_unreadable_tool_arguments_keep_prose_explanation(self, client, provider, jobs, session_factory):
        provider.responses.append(AiResponseEnvelope.text_result("I could not rank these jobs."))

        response = await client.post("/api/v1/ai/job-search", json={"query": "anything"})

        assert response.status_code == 200
        assert response.json()["results"] == []
        assert response.json()["explanation"] == "I could not rank these jobs."
        assert await used_tokens(session_factory) == 1

    @pytest.mark.asyncio
    async def test_no_active_jobs_skips_ai(self, client, provider, session_factory):
        response = await client.post("/api/v1/ai/job-search", json={"query": "python"})

        assert response.status_code == 200
        assert response.json()["explanation"] == NO_JOBS_EXPLANATION
        assert provider.calls == []
        assert await used_tokens(session_factory) == 0

    @pytest.mark.asyncio
    async def test_blank_query_rejected(self, client, provider):
        response = await client.post("/api/v1/ai/job-search", json={"query": "   "})

        assert response.status_code == 400
        assert provider.calls == []


class TestCareerTools:

    @pytest.mark.asyncio
    async def test_improve_resume_parses_json_and_costs_two(self, client, provider, session_factory):
        provider.responses.append(AiResponseEnvelope.text_result(
            "```json\n" + json.dumps({"improvedResume": "Jane Doe\nSkills: SQL", "atsScore": 88}) + "\n```"
        ))

        response = await client.post("/api/v1/ai/improve-resume", json={"resumeText": "jane doe sql"})

        assert response.status_code == 200
        assert response.json()["improvedResume"] == "Jane Doe\nSkills: SQL"
        assert response.json()["atsScore"] == 88
        assert await used_tokens(session_factory) == 2

    @pytest.mark.asyncio
    async def test_improve_resume_falls_back_to_raw_text(self, client, provider):
        provider.responses.append(AiResponseEnvelope.text_result("Jane Doe, improved."))

        response = await client.post("/api/v1/ai/improve-resume", json={"resumeText": "jane doe"})

        assert response.json() | {"quota": None} == {
            "improvedResume": "Jane Doe, improved.",
            "atsScore": 75,
            "quota": None,
        }

    @pytest.mark.asyncio
    async def test_empty_resume_rejected(self, client, provider):
        response = await client.post("/api/v1/ai/improve-resume", json={"resumeText": ""})

        assert response.status_code == 400
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_interview_question(self, client, provider):
        provider.responses.append(AiResponseEnvelope.text_result("  Describe a time you debugged production.  "))

        response = await client.post("/api/v1/ai/interview/question", json={"role": "Backend Developer"})

        assert response.json()["question"] == "Describe a time you debugged production."
        assert "Backend Developer" in provider.calls[0].message

    @pytest.mark.asyncio
    async def test_evaluate_answer(self, client, provider):
        provider.responses.append(AiResponseEnvelope.text_result(
            '{"score": 64, "feedback": "Good structure, add metrics."}'
        ))

        response = await client.post("/api/v1/ai/interview/evaluate", json={
            "question": "Tell me about a project.",
            "answer": "I built a dashboard.",
            "role": "Data Analyst",
        })

        assert response.status_code == 200
        assert response.json()["score"] == 64
        assert response.json()["feedback"] == "Good structure, add metrics."
        assert "Data Analyst" in provider.calls[0].system_prompt

    @pytest.mark.asyncio
    async def test_evaluate_answer_fallback_score(self, client, provider):
        provider.responses.append(AiResponseEnvelope.text_result("Solid answer overall."))

        response = await client.post("/api/v1/ai/interview/evaluate", json={
            "question": "Why us?", "answer": "Mission.", "role": "Designer",
        })

        assert response.json()["score"] == 70
        assert response.json()["feedback"] == "Solid answer overall."

    @pytest.mark.asyncio
    async def test_career_roadmap(self, client, provider):
        provider.responses.append(AiResponseEnvelope.text_result("## Month 1\nLearn SQL."))

        response = await client.post("/api/v1/ai/career-roadmap", json={"background": "CS sophomore"})

        assert response.status_code == 200
        assert response.json()["roadmap"] == "## Month 1\nLearn SQL."

    @pytest.mark.asyncio
    async def test_readiness_report_parses_json(self, client, provider, session_factory):
        provider.responses.append(AiResponseEnvelope.text_result(json.dumps({
            "overallScore": 78,
            "technicalScore": 105,
            "softSkillsScore": 70,
            "experienceScore": 55,
            "projectQualityScore": 80,
            "analysis": {"summary": "Strong coder, light on internships."},
            "strengths": ["Python", "Git"],
            "weaknesses": ["No internships"],
            "recommendations": ["Apply to summer internships"],
            "actionItems": [{"priority": "high", "action": "Deploy a project", "timeline": "2 weeks"}],
        }), model="google/gemini-2.5-flash"))

        response = await client.post("/api/v1/ai/readiness-report", json={
            "assessmentData": {"skills": ["Python"], "internships": 0},
        })

        assert response.status_code == 200
        report = response.json()["report"]
        assert report["overallScore"] == 78
        assert report["technicalScore"] == 100
        assert report["analysis"]["summary"] == "Strong coder, light on internships."
        assert report["analysis"]["technicalAnalysis"] == ""
        assert report["actionItems"][0]["action"] == "Deploy a project"
        assert response.json()["quota"]["remaining_tokens"] == 99
        assert await used_tokens(session_factory) == 1

        sent = provider.calls[0]
        assert "campus readiness evaluator" in sent.system_prompt
        assert '"internships": 0' in sent.message

    @pytest.mark.asyncio
    async def test_readiness_report_falls_back_on_prose(self, client, provider):
        prose = "This student shows promise. " * 20
        provider.responses.append(AiResponseEnvelope.text_result(prose))

        response = await client.post("/api/v1/ai/readiness-report", json={"assessmentData": {"year": 3}})

        assert response.status_code == 200
        report = response.json()["report"]
        assert report["overallScore"] == 65
        assert report["technicalScore"] == 70
        assert report["experienceScore"] == 60
        assert report["analysis"]["summary"] == prose.strip()[:200]
        assert report["strengths"] == ["Good foundation", "Willingness to learn"]
        assert report["actionItems"] == [
            {"priority": "high", "action": "Complete a portfolio project", "timeline": "1 month"},
        ]

    @pytest.mark.asyncio
    async def test_readiness_report_requires_assessment_data(self, client, provider):
        response = await client.post("/api/v1/ai/readiness-report", json={"assessmentData": {}})

        assert response.status_code == 400
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_readiness_report_out_of_tokens_is_402(self, client, provider, db, dev_user, session_factory):
        await seed_quota(db, DEV_USER_ID, total=100, used=100)

        response = await client.post("/api/v1/ai/readiness-report", json={"assessmentData": {"year": 3}})

        assert response.status_code == 402
        assert provider.calls == []
        assert await used_tokens(session_factory) == 100


class TestBilling:

    @pytest.mark.asyncio
    async def test_quota_is_provisioned_on_first_read(self, client):
        response = await client.get("/api/v1/billing/quota")

        assert response.status_code == 200
        assert response.json() | {"premium_expires_at": None} == {
            "total_tokens": 100,
            "used_tokens": 0,
            "remaining_tokens": 100,
            "is_premium": False,
            "plan_type": "standard",
            "premium_expires_at": None,
        }

    @pytest.mark.asyncio
    async def test_activate_premium_targets_caller_only(self, client, db, dev_user, session_factory):
        await seed_quota(db, DEV_USER_ID, total=100, used=80)
        await seed_quota(db, "someone-else", total=100, used=10)

        # A client-supplied account id is ignored
        response = await client.post("/api/v1/billing/activate-premium", json={"userId": "someone-else"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["tokensGranted"] == 1000
        assert body["quota"]["is_premium"] is True
        assert body["quota"]["total_tokens"] == 1000
        assert body["quota"]["used_tokens"] == 0
        assert body["quota"]["premium_expires_at"] is not None

        assert await used_tokens(session_factory, "someone-else") == 10

    @pytest.mark.asyncio
    async def test_transactions_list_newest_first(self, client, provider):
        provider.responses.append(AiResponseEnvelope.text_result("Answer."))
        await client.post("/api/v1/ai/chat", json={"message": "hello"})

        response = await client.get("/api/v1/billing/transactions")

        assert response.status_code == 200
        types = [t["type"] for t in response.json()]
        assert types == ["usage", "initial_grant"]
        assert response.json()[0]["amount"] == -1


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/api/v1/billing/quota", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_premium_activation_is_rate_limited(client):
    limiter.enabled = True
    limiter.reset()
    try:
        statuses = [
            (await client.post("/api/v1/billing/activate-premium")).status_code
            for _ in range(6)
        ]
    finally:
        limiter.reset()

    assert statuses[:5] == [200] * 5
    assert statuses[5] == 429
