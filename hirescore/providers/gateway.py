"""AI gateway provider using the OpenAI-compatible chat completions API."""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx
from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APIResponseValidationError,
    APIStatusError,
    APITimeoutError,
)

from ..core.aliases import resolve_model
from ..models.ai import AiRequestEnvelope, AiResponseEnvelope, ErrorKind
from .base import AIProvider

logger = logging.getLogger(__name__)

# Gateway base URL (the SDK appends /chat/completions)
DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"

# Error bodies are cut to this many characters in envelopes and logs
MAX_ERROR_BODY_CHARS = 500


def _truncate(text: str, limit: int = MAX_ERROR_BODY_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "...[truncated]"


def _dump(completion: Any) -> str:
    """Best-effort raw rendering of a response for diagnostics."""
    if hasattr(completion, "model_dump_json"):
        try:
            return completion.model_dump_json()
        except ValueError as e:
            logger.debug(f"Could not serialize response: {e}")
    return repr(completion)


class GatewayProvider(AIProvider):
    """
    Relay to the hosted LLM gateway.

    The bearer key stays server-side. SDK retries are disabled: a 429 is
    reported back to the caller rather than retried inside the same
    user action.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_GATEWAY_URL,
        timeout: float = 60.0,
        default_alias: str = "gemini",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.default_alias = default_alias
        self.client = AsyncOpenAI(
            api_key=api_key or "not-configured",
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    def build_request(self, envelope: AiRequestEnvelope) -> dict:
        """
        Shape the wire request.

        A single message becomes a system + user exchange using the alias
        persona (or the envelope's own system prompt). A conversation is
        forwarded unchanged. A tool schema forces a call to that tool.
        """
        resolved = resolve_model(envelope.model or self.default_alias)

        if envelope.is_conversation:
            messages = [m.model_dump(mode="json") for m in envelope.messages]
        else:
            messages = [
                {"role": "system", "content": envelope.system_prompt or resolved.system_prompt},
                {"role": "user", "content": envelope.message},
            ]

        request: dict[str, Any] = {
            "model": resolved.model_id,
            "messages": messages,
        }

        if envelope.temperature is not None:
            request["temperature"] = envelope.temperature
        if envelope.max_tokens:
            request["max_tokens"] = envelope.max_tokens

        if envelope.tool_schema:
            tool = envelope.tool_schema
            request["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
            ]
            request["tool_choice"] = {"type": "function", "function": {"name": tool.name}}

        return request

    async def send(self, request: dict) -> AiResponseEnvelope:
        """Call the gateway once and classify the result."""
        model = request.get("model")
        tool_name = request.get("tool_choice", {}).get("function", {}).get("name")

        if not self.api_key:
            logger.error("AI gateway API key is not configured")
            return AiResponseEnvelope.error_result(
                ErrorKind.UPSTREAM_FAILURE,
                detail="AI gateway API key is not configured",
            )

        logger.info(f"Gateway request: model={model}, tool={tool_name or '-'}, turns={len(request.get('messages', []))}")

        try:
            completion = await asyncio.wait_for(
                self.client.chat.completions.create(**request),
                timeout=self.timeout,
            )
        except APIStatusError as e:
            return self._classify_status_error(e, model)
        except (APITimeoutError, asyncio.TimeoutError):
            logger.error(f"Gateway ({model}): request timed out after {self.timeout}s")
            return AiResponseEnvelope.error_result(
                ErrorKind.UPSTREAM_FAILURE,
                detail=f"Timed out after {self.timeout}s",
            )
        except APIConnectionError as e:
            logger.error(f"Gateway ({model}): connection error: {e}")
            return AiResponseEnvelope.error_result(
                ErrorKind.UPSTREAM_FAILURE,
                detail=_truncate(str(e)),
            )
        except (APIResponseValidationError, json.JSONDecodeError) as e:
            logger.error(f"Gateway ({model}): unparseable response body: {e}")
            return AiResponseEnvelope.error_result(
                ErrorKind.MALFORMED_RESPONSE,
                detail=_truncate(str(e)),
            )

        return self._parse_completion(completion, model, tool_name)

    def _classify_status_error(self, error: APIStatusError, model: Optional[str]) -> AiResponseEnvelope:
        status = error.status_code
        try:
            body = error.response.text
        except httpx.ResponseNotRead:
            body = str(error)
        body = _truncate(body or "")

        if status == 429:
            logger.warning(f"Gateway ({model}): rate limited")
            return AiResponseEnvelope.error_result(ErrorKind.RATE_LIMITED, status_code=status, detail=body)

        if status == 402:
            logger.warning(f"Gateway ({model}): payment required")
            return AiResponseEnvelope.error_result(ErrorKind.PAYMENT_REQUIRED, status_code=status, detail=body)

        logger.error(f"Gateway ({model}): HTTP {status}: {body}")
        return AiResponseEnvelope.error_result(ErrorKind.UPSTREAM_FAILURE, status_code=status, detail=body)

    def _parse_completion(
        self,
        completion: Any,
        model: Optional[str],
        tool_name: Optional[str],
    ) -> AiResponseEnvelope:
        choices = getattr(completion, "choices", None)
        message = getattr(choices[0], "message", None) if choices else None

        if message is None:
            raw = _dump(completion)
            logger.error(f"Gateway ({model}): response has no choices[0].message: {_truncate(raw)}")
            return AiResponseEnvelope.error_result(ErrorKind.MALFORMED_RESPONSE, detail=_truncate(raw))

        content = getattr(message, "content", None)
        response_model = getattr(completion, "model", None) or model
        usage = self._extract_usage(completion)

        if tool_name:
            tool_calls = getattr(message, "tool_calls", None)
            if not tool_calls:
                raw = _dump(completion)
                logger.error(f"Gateway ({model}): required '{tool_name}' tool call missing: {_truncate(raw)}")
                return AiResponseEnvelope.error_result(ErrorKind.MALFORMED_RESPONSE, detail=_truncate(raw))

            payload = self._parse_tool_arguments(tool_calls)
            if payload is not None:
                return AiResponseEnvelope.structured_result(payload, model=response_model, usage=usage)

            # Tool call present but its arguments are unusable
            if isinstance(content, str) and content.strip():
                logger.warning(f"Gateway ({model}): '{tool_name}' arguments unparseable, returning text content")
                return AiResponseEnvelope.text_result(content, model=response_model, usage=usage)

            raw = _dump(completion)
            logger.error(f"Gateway ({model}): '{tool_name}' arguments unparseable: {_truncate(raw)}")
            return AiResponseEnvelope.error_result(ErrorKind.MALFORMED_RESPONSE, detail=_truncate(raw))

        if not isinstance(content, str) or not content.strip():
            raw = _dump(completion)
            logger.error(f"Gateway ({model}): empty message content: {_truncate(raw)}")
            return AiResponseEnvelope.error_result(ErrorKind.MALFORMED_RESPONSE, detail=_truncate(raw))

        return AiResponseEnvelope.text_result(content, model=response_model, usage=usage)

    @staticmethod
    def _parse_tool_arguments(tool_calls: Any) -> Optional[dict]:
        """Decode the first tool call's arguments; None if absent or not a JSON object."""
        if not tool_calls:
            return None

        function = getattr(tool_calls[0], "function", None)
        arguments = getattr(function, "arguments", None)
        if not isinstance(arguments, str):
            return None

        try:
            payload = json.loads(arguments)
        except json.JSONDecodeError as e:
            logger.warning(f"Tool call arguments are not valid JSON: {e}")
            return None

        return payload if isinstance(payload, dict) else None

    @staticmethod
    def _extract_usage(completion: Any) -> dict:
        usage = getattr(completion, "usage", None)
        if not usage:
            return {}
        return {
            "prompt_tokens": getattr(usage, "prompt_tokens", None),
            "completion_tokens": getattr(usage, "completion_tokens", None),
            "total_tokens": getattr(usage, "total_tokens", None),
        }
