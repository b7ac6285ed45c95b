"""Parsing helpers for structured AI output."""

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

MAX_MATCH_RESULTS = 10
MAX_MATCH_REASON_CHARS = 100


def parse_json_content(raw_response: str) -> Optional[dict]:
    """
    Extract a JSON object from free-text model output.

    Tries, in order:
    1. The whole response as JSON
    2. A ```json fenced block
    3. The first balanced {...} span

    Args:
        raw_response: Message content returned by the model

    Returns:
        The decoded object, or None if no JSON object could be found
    """
    text = raw_response.strip()

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Look for ```json code blocks
    matches = re.findall(r'```(?:json)?\s*(\{.*?\})\s*```', text, re.DOTALL)
    for match in matches:
        try:
            data = json.loads(match)
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            continue

    # Try to find raw JSON object
    brace_start = text.find('{')
    if brace_start == -1:
        return None

    brace_count = 0
    in_string = False
    escaped = False
    for i, char in enumerate(text[brace_start:], start=brace_start):
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == '{':
            brace_count += 1
        elif char == '}':
            brace_count -= 1
            if brace_count == 0:
                try:
                    data = json.loads(text[brace_start:i + 1])
                except json.JSONDecodeError as e:
                    logger.debug(f"Balanced span is not valid JSON: {e}")
                    return None
                return data if isinstance(data, dict) else None

    return None


def coerce_score(value: Any, default: int) -> int:
    """Clamp a model-reported score to an int in 0-100, or return default."""
    try:
        score = round(float(value))
    except (TypeError, ValueError):
        return default
    return max(0, min(100, score))


def merge_job_matches(
    jobs: list[dict],
    matches: Any,
    limit: int = MAX_MATCH_RESULTS,
) -> list[dict]:
    """
    Join model-ranked matches back onto the job records.

    Each result is the original job plus relevance_score (0-100) and
    match_reason. Matches naming unknown job ids are dropped, as are
    duplicates after the first. Results are sorted by score, best first.

    Args:
        jobs: Job records as dicts with an "id" key
        matches: The "matches" list from the model's tool call
        limit: Maximum number of results

    Returns:
        Augmented job dicts
    """
    if not isinstance(matches, list):
        return []

    jobs_by_id = {str(job["id"]): job for job in jobs}
    results = []
    seen = set()

    for match in matches:
        if not isinstance(match, dict):
            continue

        job_id = str(match.get("job_id", ""))
        job = jobs_by_id.get(job_id)
        if job is None:
            logger.debug(f"Dropping match for unknown job id '{job_id}'")
            continue
        if job_id in seen:
            continue
        seen.add(job_id)

        reason = str(match.get("match_reason") or "")[:MAX_MATCH_REASON_CHARS]
        results.append({
            **job,
            "relevance_score": coerce_score(match.get("relevance_score"), 0),
            "match_reason": reason,
        })

    results.sort(key=lambda r: r["relevance_score"], reverse=True)
    return results[:limit]


READINESS_ANALYSIS_KEYS = (
    "summary",
    "technicalAnalysis",
    "softSkillsAnalysis",
    "experienceAnalysis",
    "projectAnalysis",
)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def normalize_readiness_report(data: dict, default_scores: dict[str, int]) -> dict:
    """
    Coerce a model-reported readiness report into its response shape.

    Scores are clamped to 0-100 (missing or garbage scores take the
    default), analysis keys are always present, and list fields drop
    anything that is not a usable entry.
    """
    report: dict[str, Any] = {
        key: coerce_score(data.get(key), default)
        for key, default in default_scores.items()
    }

    analysis = data.get("analysis")
    if not isinstance(analysis, dict):
        analysis = {}
    report["analysis"] = {key: str(analysis.get(key) or "") for key in READINESS_ANALYSIS_KEYS}

    for key in ("strengths", "weaknesses", "recommendations"):
        report[key] = _string_list(data.get(key))

    action_items = []
    for item in data.get("actionItems") or []:
        if not isinstance(item, dict) or not item.get("action"):
            continue
        action_items.append({
            "priority": str(item.get("priority") or "medium").lower(),
            "action": str(item["action"]),
            "timeline": str(item.get("timeline") or ""),
        })
    report["actionItems"] = action_items

    return report
