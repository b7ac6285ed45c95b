"""System prompts and tool schemas for the AI-backed features."""

import json

from ..models.ai import ToolSchema

JOB_MATCH_SYSTEM_PROMPT = """You are an expert career advisor helping students find the perfect job opportunities.

Your task: Analyze the user's query and match them with the most relevant jobs from the provided list.

Instructions:
1. Understand the user's intent (skills, interests, location preferences, job type, etc.)
2. Score each job based on relevance (0-100)
3. Return the top 10 most relevant jobs with scores
4. Provide a brief, friendly explanation of why these jobs match

Be enthusiastic and encouraging! Students are looking for their first opportunities."""

JOB_MATCH_TOOL = ToolSchema(
    name="suggest_matches",
    description="Return the best matching jobs with relevance scores and explanation",
    parameters={
        "type": "object",
        "properties": {
            "matches": {
                "type": "array",
                "description": "Top 10 most relevant jobs",
                "items": {
                    "type": "object",
                    "properties": {
                        "job_id": {"type": "string", "description": "Job ID"},
                        "relevance_score": {
                            "type": "number",
                            "description": "Relevance score 0-100",
                            "minimum": 0,
                            "maximum": 100,
                        },
                        "match_reason": {
                            "type": "string",
                            "description": "Brief reason why this job matches (max 100 chars)",
                        },
                    },
                    "required": ["job_id", "relevance_score", "match_reason"],
                    "additionalProperties": False,
                },
            },
            "explanation": {
                "type": "string",
                "description": "Friendly 2-3 sentence explanation of the search results",
            },
        },
        "required": ["matches", "explanation"],
        "additionalProperties": False,
    },
)

# Characters of each job description sent to the model
JOB_DESCRIPTION_PREVIEW_CHARS = 200

RESUME_SYSTEM_PROMPT = """You are an expert resume writer and ATS optimization specialist.
Analyze the given resume and improve it for ATS compatibility and professional presentation.
Return your response in this exact JSON format:
{
  "improvedResume": "the improved resume text",
  "atsScore": a number between 0-100
}"""

INTERVIEW_QUESTION_SYSTEM_PROMPT = (
    "You are an expert interviewer. Generate one relevant, challenging interview question "
    "for the given role. Only return the question, nothing else."
)

ANSWER_EVALUATION_SYSTEM_PROMPT = """You are an expert interviewer evaluating candidates for a {role} position.
Evaluate the answer and provide constructive feedback.
Return your response in this exact JSON format:
{{
  "score": a number between 0-100,
  "feedback": "detailed feedback on the answer with strengths and areas for improvement"
}}"""

CAREER_ROADMAP_SYSTEM_PROMPT = """You are a career counselor creating personalized career roadmaps for students and job seekers.
Create a detailed, actionable career roadmap with:
1. Short-term goals (3-6 months)
2. Medium-term goals (6-12 months)
3. Long-term goals (1-2 years)
4. Skills to learn
5. Projects to build
6. Networking strategies
7. Resources and learning paths

Make it specific, actionable, and motivating."""

# Scores used when the model answers in prose instead of JSON
DEFAULT_ATS_SCORE = 75
DEFAULT_ANSWER_SCORE = 70


def build_job_match_prompt(query: str, jobs: list[dict]) -> str:
    """User turn for the job matcher: the query plus a compact job list."""
    summaries = [
        {
            "index": index,
            "id": job["id"],
            "title": job.get("title"),
            "company": job.get("company"),
            "location": job.get("location"),
            "type": job.get("type"),
            "category": job.get("category"),
            "description": (job.get("description") or "")[:JOB_DESCRIPTION_PREVIEW_CHARS],
            "salary_range": job.get("salary_range"),
        }
        for index, job in enumerate(jobs)
    ]
    return (
        f'User Query: "{query}"\n\n'
        f"Available Jobs:\n{json.dumps(summaries, indent=2)}\n\n"
        "Return your response using the suggest_matches tool."
    )


def build_resume_prompt(resume_text: str) -> str:
    return f"Please improve this resume for ATS and professional presentation:\n\n{resume_text}"


def build_interview_question_prompt(role: str) -> str:
    return f"Generate an interview question for a {role} position."


def build_answer_evaluation_prompt(question: str, answer: str) -> str:
    return f"Question: {question}\n\nCandidate's Answer: {answer}\n\nPlease evaluate this answer."


def build_roadmap_prompt(background: str) -> str:
    return f"Background: {background}\n\nPlease create a personalized career roadmap for me."


READINESS_REPORT_SYSTEM_PROMPT = """You are an expert career counselor and campus readiness evaluator. Analyze student data comprehensively and provide actionable insights.

Evaluate the student across these dimensions:
1. Technical Skills (0-100): Programming languages, frameworks, tools proficiency
2. Soft Skills (0-100): Communication, teamwork, leadership, problem-solving
3. Experience (0-100): Internships, projects, competitions, certifications
4. Project Quality (0-100): Complexity, impact, documentation, deployment
5. Overall Readiness (0-100): Weighted average with career alignment

Return your response as a JSON object with this structure:
{
  "overallScore": number,
  "technicalScore": number,
  "softSkillsScore": number,
  "experienceScore": number,
  "projectQualityScore": number,
  "analysis": {
    "summary": "2-3 sentence overview",
    "technicalAnalysis": "detailed technical skills assessment",
    "softSkillsAnalysis": "detailed soft skills assessment",
    "experienceAnalysis": "detailed experience assessment",
    "projectAnalysis": "detailed project quality assessment"
  },
  "strengths": ["strength 1", "strength 2", "strength 3"],
  "weaknesses": ["weakness 1", "weakness 2", "weakness 3"],
  "recommendations": ["recommendation 1", "recommendation 2", "recommendation 3", "recommendation 4"],
  "actionItems": [
    {"priority": "high", "action": "specific action 1", "timeline": "1-2 weeks"},
    {"priority": "medium", "action": "specific action 2", "timeline": "1 month"},
    {"priority": "low", "action": "specific action 3", "timeline": "2-3 months"}
  ]
}"""

# Readiness scores used when the model answers in prose instead of JSON
DEFAULT_READINESS_SCORES = {
    "overallScore": 65,
    "technicalScore": 70,
    "softSkillsScore": 65,
    "experienceScore": 60,
    "projectQualityScore": 65,
}

# Characters of prose kept as the summary of a fallback report
READINESS_SUMMARY_CHARS = 200

FALLBACK_ANALYSIS_TEXT = "Assessment based on provided data"


def build_readiness_prompt(assessment_data: dict) -> str:
    return f"Analyze this student's campus readiness:\n\n{json.dumps({'assessmentData': assessment_data}, indent=2)}"


def fallback_readiness_report(content: str) -> dict:
    """Report returned when the model's answer cannot be read as JSON."""
    return {
        **DEFAULT_READINESS_SCORES,
        "analysis": {
            "summary": content[:READINESS_SUMMARY_CHARS],
            "technicalAnalysis": FALLBACK_ANALYSIS_TEXT,
            "softSkillsAnalysis": FALLBACK_ANALYSIS_TEXT,
            "experienceAnalysis": FALLBACK_ANALYSIS_TEXT,
            "projectAnalysis": FALLBACK_ANALYSIS_TEXT,
        },
        "strengths": ["Good foundation", "Willingness to learn"],
        "weaknesses": ["Limited experience", "Need more practice"],
        "recommendations": ["Build more projects", "Participate in competitions"],
        "actionItems": [
            {"priority": "high", "action": "Complete a portfolio project", "timeline": "1 month"},
        ],
    }
