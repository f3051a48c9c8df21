"""
AI collaboration request/response protocol.

A request moves RECEIVED -> VALIDATED -> DISPATCHED and ends in exactly one
of COMPLETED, TIMED_OUT or FAILED. Only validation and a missing credential
are surfaced as errors; every provider failure is masked into a
user-facing message.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from marginalia.ai.errors import AITimeoutError, ConfigurationError, ProviderError, ValidationError
from marginalia.ai.parsing import parse_response
from marginalia.ai.prompt import Prompt, build_margin_editor_prompt
from marginalia.ai.provider import AnthropicProvider, LanguageModelProvider
from marginalia.config import Settings, get_settings
from marginalia.schemas.ai import AskAIMode, AskAIRequest, AskAIResponse

logger = logging.getLogger(__name__)

VALID_MODES = tuple(mode.value for mode in AskAIMode)

NOT_CONFIGURED_MESSAGE = "AI service is not configured. Please add your API key."
TIMEOUT_MESSAGE = "Sorry, the AI request took too long. Please try again."
AUTH_FAILURE_MESSAGE = "Sorry, the API key is invalid. Please check your configuration."
RATE_LIMIT_MESSAGE = "Sorry, the rate limit was exceeded. Please try again in a moment."
FAILURE_MESSAGE = "Sorry, the AI request failed. Please try again."

_PROVIDER_FAILURE_MESSAGES = {
    "auth": AUTH_FAILURE_MESSAGE,
    "rate_limit": RATE_LIMIT_MESSAGE,
    "upstream": FAILURE_MESSAGE,
}


class RequestState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class AIResult:
    """Outcome of one request: the payload to return and the terminal state."""

    response: AskAIResponse
    state: RequestState


# =============================================================================
# VALIDATION
# =============================================================================


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == 0


def _require_string(body: dict, key: str, label: str) -> str:
    value = body.get(key)
    if _is_blank(value):
        raise ValidationError(f"Missing required field: {label}", field=label)
    if not isinstance(value, str):
        raise ValidationError(f"Field '{label}' must be a string", field=label)
    return value


def validate_request(payload: Any) -> AskAIRequest:
    """
    Check a raw request body and build the typed request.

    Checks run in a fixed order and the first failure is reported, naming
    the offending field.

    Raises:
        ValidationError: if the body is not a well-formed request.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    mode = _require_string(payload, "mode", "mode")
    if mode not in VALID_MODES:
        raise ValidationError(
            f"Invalid mode: {mode}. Must be one of: {', '.join(VALID_MODES)}", field="mode"
        )

    user_prompt = _require_string(payload, "userPrompt", "userPrompt")
    if not user_prompt.strip():
        raise ValidationError("Field 'userPrompt' cannot be empty", field="userPrompt")

    context = payload.get("context")
    if _is_blank(context):
        raise ValidationError("Missing required field: context", field="context")
    if not isinstance(context, dict):
        raise ValidationError("Field 'context' must be an object", field="context")

    selected_text = _require_string(context, "selectedText", "context.selectedText")
    if not selected_text.strip():
        raise ValidationError(
            "Field 'context.selectedText' cannot be empty", field="context.selectedText"
        )

    brain = payload.get("brain")
    if not _is_blank(brain):
        if not isinstance(brain, dict):
            raise ValidationError("Field 'brain' must be an object", field="brain")
        if "goal" in brain and not isinstance(brain["goal"], str):
            raise ValidationError("Field 'brain.goal' must be a string", field="brain.goal")
        for key in ("constraints", "glossary", "decisions"):
            if key in brain and not isinstance(brain[key], list):
                raise ValidationError(f"Field 'brain.{key}' must be an array", field=f"brain.{key}")
    else:
        payload = {key: value for key, value in payload.items() if key != "brain"}

    try:
        return AskAIRequest.model_validate(payload)
    except SchemaValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise ValidationError(f"Field '{field}' is invalid: {error['msg']}", field=field) from e


# =============================================================================
# PROTOCOL
# =============================================================================


def _advance(current: RequestState, target: RequestState) -> RequestState:
    logger.debug("AI request %s -> %s", current.value, target.value)
    return target


def _discard_outcome(task: asyncio.Task) -> None:
    """Retrieve the result of an abandoned provider call so it is not reported."""
    if not task.cancelled():
        task.exception()


class AIRequestProtocol:
    """
    Validates, assembles, dispatches and parses margin-editor requests.

    One provider call per request, no retry. The call is raced against a
    wall-clock budget; a late answer is discarded.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        provider: LanguageModelProvider | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._provider = provider

    @property
    def provider(self) -> LanguageModelProvider:
        if self._provider is None:
            self._provider = AnthropicProvider(
                api_key=self.settings.anthropic_api_key or "",
                model=self.settings.llm_model,
            )
        return self._provider

    def max_tokens_for(self, mode: AskAIMode) -> int:
        if mode is AskAIMode.SYNTHESIZE:
            return self.settings.llm_synthesize_max_tokens
        return self.settings.llm_max_tokens

    async def handle(self, payload: Any) -> AIResult:
        """
        Run one request through the protocol.

        Raises:
            ValidationError: if the body is malformed.
            ConfigurationError: if no provider credential is configured.
        """
        state = RequestState.RECEIVED
        request = validate_request(payload)
        state = _advance(state, RequestState.VALIDATED)

        if not self.settings.anthropic_api_key:
            logger.error("Missing ANTHROPIC_API_KEY; AI request refused")
            raise ConfigurationError(NOT_CONFIGURED_MESSAGE)

        prompt = build_margin_editor_prompt(request)
        # Lengths only; document text is never logged
        logger.info(
            "AI request: mode=%s prompt_len=%d selection_len=%d document=%s",
            request.mode.value,
            len(request.user_prompt),
            len(request.context.selected_text),
            request.meta.document_id if request.meta else None,
        )

        state = _advance(state, RequestState.DISPATCHED)
        try:
            text = await self._dispatch(prompt, self.max_tokens_for(request.mode))
        except AITimeoutError:
            logger.warning("AI request timed out after %.1fs", self.settings.ai_timeout_seconds)
            return AIResult(
                AskAIResponse(message=TIMEOUT_MESSAGE), _advance(state, RequestState.TIMED_OUT)
            )
        except ProviderError as e:
            logger.error("AI provider failed (%s): %s", e.kind, e)
            return AIResult(
                AskAIResponse(message=_PROVIDER_FAILURE_MESSAGES[e.kind]),
                _advance(state, RequestState.FAILED),
            )
        except Exception:
            logger.exception("Unexpected error during AI request")
            return AIResult(
                AskAIResponse(message=FAILURE_MESSAGE), _advance(state, RequestState.FAILED)
            )

        return AIResult(parse_response(request.mode, text), _advance(state, RequestState.COMPLETED))

    async def ask(self, payload: Any) -> AskAIResponse:
        return (await self.handle(payload)).response

    async def _dispatch(self, prompt: Prompt, max_tokens: int) -> str:
        task = asyncio.ensure_future(
            self.provider.complete(system=prompt.system, user=prompt.user, max_tokens=max_tokens)
        )
        done, _ = await asyncio.wait({task}, timeout=self.settings.ai_timeout_seconds)
        if not done:
            task.cancel()
            task.add_done_callback(_discard_outcome)
            raise AITimeoutError("AI request timed out")
        return task.result()
