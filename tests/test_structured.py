"""Tests for parsing structured model output."""

from hirescore.core.prompts import DEFAULT_READINESS_SCORES
from hirescore.core.structured import (
    coerce_score,
    merge_job_matches,
    normalize_readiness_report,
    parse_json_content,
)

JOBS = [
    {"id": "job-1", "title": "Data Analyst Intern", "company": "Acme"},
    {"id": "job-2", "title": "Backend Developer", "company": "Globex"},
    {"id": "job-3", "title": "UX Designer", "company": "Initech"},
]


class TestParseJsonContent:

    def test_plain_json(self):
        assert parse_json_content('{"atsScore": 82}') == {"atsScore": 82}

    def test_fenced_block(self):
        raw = 'Here you go:\n```json\n{"improvedResume": "Jane Doe", "atsScore": 90}\n```\nGood luck!'
        assert parse_json_content(raw) == {"improvedResume": "Jane Doe", "atsScore": 90}

    def test_embedded_object_with_braces_in_strings(self):
        raw = 'Result: {"feedback": "Use {STAR} method", "score": 64} Thanks.'
        assert parse_json_content(raw) == {"feedback": "Use {STAR} method", "score": 64}

    def test_no_json(self):
        assert parse_json_content("Your answer was solid overall.") is None

    def test_json_array_is_not_an_object(self):
        assert parse_json_content("[1, 2, 3]") is None

    def test_broken_object(self):
        assert parse_json_content('{"score": 80, "feedback": }') is None


class TestCoerceScore:

    def test_clamps_range(self):
        assert coerce_score(140, 70) == 100
        assert coerce_score(-5, 70) == 0

    def test_accepts_numeric_strings(self):
        assert coerce_score("88.4", 70) == 88

    def test_falls_back_on_garbage(self):
        assert coerce_score("great", 70) == 70
        assert coerce_score(None, 75) == 75


class TestMergeJobMatches:

    def test_joins_and_sorts(self):
        matches = [
            {"job_id": "job-2", "relevance_score": 60, "match_reason": "Python backend work"},
            {"job_id": "job-1", "relevance_score": 95, "match_reason": "Entry-level data role"},
        ]

        results = merge_job_matches(JOBS, matches)

        assert [r["id"] for r in results] == ["job-1", "job-2"]
        assert results[0]["title"] == "Data Analyst Intern"
        assert results[0]["relevance_score"] == 95
        assert results[0]["match_reason"] == "Entry-level data role"

    def test_drops_unknown_and_duplicate_ids(self):
        matches = [
            {"job_id": "job-404", "relevance_score": 99, "match_reason": "Invented"},
            {"job_id": "job-3", "relevance_score": 50, "match_reason": "Design"},
            {"job_id": "job-3", "relevance_score": 80, "match_reason": "Again"},
        ]

        results = merge_job_matches(JOBS, matches)

        assert [(r["id"], r["relevance_score"]) for r in results] == [("job-3", 50)]

    def test_truncates_reason_and_clamps_score(self):
        matches = [{"job_id": "job-1", "relevance_score": 250, "match_reason": "x" * 300}]

        result = merge_job_matches(JOBS, matches)[0]

        assert result["relevance_score"] == 100
        assert len(result["match_reason"]) == 100

    def test_limits_results(self):
        jobs = [{"id": f"job-{i}"} for i in range(15)]
        matches = [{"job_id": f"job-{i}", "relevance_score": i, "match_reason": ""} for i in range(15)]

        results = merge_job_matches(jobs, matches)

        assert len(results) == 10
        assert results[0]["id"] == "job-14"

    def test_non_list_matches(self):
        assert merge_job_matches(JOBS, None) == []
        assert merge_job_matches(JOBS, "job-1") == []

    def test_does_not_mutate_jobs(self):
        merge_job_matches(JOBS, [{"job_id": "job-1", "relevance_score": 90, "match_reason": "fit"}])
        assert "relevance_score" not in JOBS[0]


class TestNormalizeReadinessReport:

    def test_scores_are_clamped_and_defaulted(self):
        report = normalize_readiness_report(
            {"overallScore": 130, "technicalScore": "82", "softSkillsScore": "n/a"},
            DEFAULT_READINESS_SCORES,
        )

        assert report["overallScore"] == 100
        assert report["technicalScore"] == 82
        assert report["softSkillsScore"] == 65
        assert report["experienceScore"] == 60
        assert report["projectQualityScore"] == 65

    def test_missing_analysis_keys_are_blank(self):
        report = normalize_readiness_report(
            {"analysis": {"summary": "Solid start"}},
            DEFAULT_READINESS_SCORES,
        )

        assert report["analysis"]["summary"] == "Solid start"
        assert report["analysis"]["projectAnalysis"] == ""

    def test_lists_drop_unusable_entries(self):
        report = normalize_readiness_report(
            {
                "strengths": ["Python", None, "  "],
                "weaknesses": "not a list",
                "actionItems": [
                    {"priority": "HIGH", "action": "Ship a project", "timeline": "1 month"},
                    {"priority": "low"},
                    "read a book",
                ],
            },
            DEFAULT_READINESS_SCORES,
        )

        assert report["strengths"] == ["Python"]
        assert report["weaknesses"] == []
        assert report["recommendations"] == []
        assert report["actionItems"] == [
            {"priority": "high", "action": "Ship a project", "timeline": "1 month"},
        ]
