"""Caller-facing model aliases and their default personas."""

import logging
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)


class ResolvedModel(NamedTuple):
    model_id: str
    system_prompt: str


DEFAULT_MODEL_ID = "google/gemini-2.5-flash"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."

# Alias -> (provider model id, default system prompt)
# claude and huggingface are served by Gemini on the gateway for now
MODEL_ALIASES = {
    "chatgpt": ResolvedModel(
        "openai/gpt-5-mini",
        "You are ChatGPT, a helpful AI assistant created by OpenAI. "
        "Provide clear, accurate, and friendly responses.",
    ),
    "gemini": ResolvedModel(
        "google/gemini-2.5-flash",
        "You are Gemini, Google's advanced AI assistant. "
        "Provide insightful and comprehensive responses.",
    ),
    "claude": ResolvedModel(
        "google/gemini-2.5-flash",
        "You are Claude, an AI assistant created by Anthropic. "
        "Provide thoughtful, nuanced, and helpful responses.",
    ),
    "huggingface": ResolvedModel(
        "google/gemini-2.5-flash",
        "You are a HuggingFace AI model. "
        "Provide technical and accurate responses about machine learning and AI.",
    ),
}

# Provider model ids the gateway serves; accepted verbatim
KNOWN_MODEL_IDS = {
    "openai/gpt-5",
    "openai/gpt-5-mini",
    "openai/gpt-5-nano",
    "google/gemini-2.5-pro",
    "google/gemini-2.5-flash",
    "google/gemini-2.5-flash-lite",
}


def resolve_model(alias: Optional[str]) -> ResolvedModel:
    """
    Map a caller-facing alias to a provider model id and persona prompt.

    Provider model ids ("vendor/model") pass through with the generic
    prompt. Unknown aliases fall back to the default model instead of
    failing the request.

    Args:
        alias: Alias such as "chatgpt", a provider model id, or None

    Returns:
        ResolvedModel(model_id, system_prompt)
    """
    key = (alias or "").strip().lower()

    if key in MODEL_ALIASES:
        return MODEL_ALIASES[key]

    if key in KNOWN_MODEL_IDS or "/" in key:
        if key not in KNOWN_MODEL_IDS:
            logger.info(f"Passing through unlisted provider model id '{alias}'")
        return ResolvedModel(alias.strip(), DEFAULT_SYSTEM_PROMPT)

    logger.warning(f"Unknown model alias '{alias}', falling back to {DEFAULT_MODEL_ID}")
    return ResolvedModel(DEFAULT_MODEL_ID, DEFAULT_SYSTEM_PROMPT)
