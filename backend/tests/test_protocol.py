"""Tests for the AI request protocol."""

import asyncio

import httpx
import pytest
from anthropic import AuthenticationError, RateLimitError

from marginalia.ai.errors import ConfigurationError, ProviderError, ValidationError
from marginalia.ai.protocol import (
    AUTH_FAILURE_MESSAGE,
    FAILURE_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    RATE_LIMIT_MESSAGE,
    TIMEOUT_MESSAGE,
    AIRequestProtocol,
    RequestState,
    validate_request,
)
from marginalia.ai.provider import AnthropicProvider
from marginalia.schemas.ai import AskAIMode


def _payload(**overrides):
    payload = {
        "mode": "critique",
        "userPrompt": "Is this clear?",
        "context": {"selectedText": "The cat sat."},
        "brain": {"goal": "", "constraints": [], "glossary": [], "decisions": []},
    }
    payload.update(overrides)
    return payload


def _status_error(cls, status_code):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(status_code, request=request)
    return cls("provider said no", response=response, body=None)


# =============================================================================
# VALIDATION
# =============================================================================


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "Request body must be a JSON object"),
        ({}, "Missing required field: mode"),
        (_payload(mode=3), "Field 'mode' must be a string"),
        (_payload(mode="rewrite"), "Invalid mode: rewrite. Must be one of: critique, synthesize"),
        (_payload(userPrompt=""), "Missing required field: userPrompt"),
        (_payload(userPrompt=["x"]), "Field 'userPrompt' must be a string"),
        (_payload(userPrompt="   "), "Field 'userPrompt' cannot be empty"),
        (_payload(context=None), "Missing required field: context"),
        (_payload(context="text"), "Field 'context' must be an object"),
        (_payload(context={}), "Missing required field: context.selectedText"),
        (_payload(context={"selectedText": "\n "}), "Field 'context.selectedText' cannot be empty"),
        (_payload(brain="smart"), "Field 'brain' must be an object"),
        (_payload(brain={"goal": 1}), "Field 'brain.goal' must be a string"),
        (_payload(brain={"constraints": "short"}), "Field 'brain.constraints' must be an array"),
        (_payload(brain={"glossary": {}}), "Field 'brain.glossary' must be an array"),
        (_payload(brain={"decisions": "none"}), "Field 'brain.decisions' must be an array"),
    ],
)
def test_validation_messages(payload, message):
    with pytest.raises(ValidationError) as exc_info:
        validate_request(payload)

    assert str(exc_info.value) == message


def test_validation_names_nested_field():
    payload = _payload(brain={"glossary": [{"definition": "no term"}]})

    with pytest.raises(ValidationError) as exc_info:
        validate_request(payload)

    assert exc_info.value.field == "brain.glossary.0.term"
    assert str(exc_info.value).startswith("Field 'brain.glossary.0.term' is invalid")


def test_missing_brain_defaults_to_empty():
    payload = _payload()
    del payload["brain"]

    request = validate_request(payload)

    assert request.brain.is_empty()
    assert request.mode is AskAIMode.CRITIQUE


async def test_validation_happens_before_dispatch(protocol, provider):
    with pytest.raises(ValidationError) as exc_info:
        await protocol.handle(_payload(userPrompt=None))

    assert "userPrompt" in str(exc_info.value)
    assert provider.calls == []


async def test_missing_credential_is_a_configuration_error(settings, provider):
    settings.anthropic_api_key = None
    protocol = AIRequestProtocol(settings, provider=provider)

    with pytest.raises(ConfigurationError) as exc_info:
        await protocol.handle(_payload())

    assert str(exc_info.value) == NOT_CONFIGURED_MESSAGE
    assert provider.calls == []


# =============================================================================
# DISPATCH & PARSE
# =============================================================================


async def test_critique_returns_text_verbatim(protocol, provider, settings):
    provider.reply = "Consider tightening the second clause."

    result = await protocol.handle(_payload())

    assert result.state is RequestState.COMPLETED
    assert result.response.message == "Consider tightening the second clause."
    assert result.response.proposed_text is None
    assert provider.calls[0]["max_tokens"] == settings.llm_max_tokens


async def test_synthesize_extracts_fenced_rewrite(protocol, provider, settings):
    provider.reply = 'Here:\n```json\n{"message": "Tightened.", "proposedText": "The cat sat down."}\n```'

    result = await protocol.handle(_payload(mode="synthesize"))

    assert result.response.message == "Tightened."
    assert result.response.proposed_text == "The cat sat down."
    assert provider.calls[0]["max_tokens"] == settings.llm_synthesize_max_tokens
    assert settings.llm_synthesize_max_tokens > settings.llm_max_tokens


async def test_brain_reaches_the_prompt(protocol, provider):
    await protocol.handle(_payload(brain={"goal": "Persuade skeptics", "constraints": ["formal"]}))

    user = provider.calls[0]["user"]
    assert "Goal: Persuade skeptics" in user
    assert "Constraints: formal" in user


async def test_timeout_returns_fixed_message(protocol, provider):
    provider.delay = 5

    loop = asyncio.get_running_loop()
    started = loop.time()
    result = await protocol.handle(_payload())

    assert result.state is RequestState.TIMED_OUT
    assert result.response.message == TIMEOUT_MESSAGE
    assert loop.time() - started < 1


@pytest.mark.parametrize(
    ("kind", "message"),
    [
        ("auth", AUTH_FAILURE_MESSAGE),
        ("rate_limit", RATE_LIMIT_MESSAGE),
        ("upstream", FAILURE_MESSAGE),
    ],
)
async def test_provider_failures_are_masked(protocol, provider, kind, message):
    provider.error = ProviderError("boom", kind=kind)

    result = await protocol.handle(_payload())

    assert result.state is RequestState.FAILED
    assert result.response.message == message
    assert result.response.proposed_text is None


async def test_unexpected_provider_exception_is_masked(protocol, provider):
    provider.error = ConnectionResetError("socket closed")

    result = await protocol.handle(_payload())

    assert result.state is RequestState.FAILED
    assert result.response.message == FAILURE_MESSAGE


async def test_request_summary_is_logged_without_text(protocol, caplog):
    caplog.set_level("INFO", logger="marginalia.ai.protocol")

    await protocol.handle(_payload(context={"selectedText": "secret selection"}))

    assert "mode=critique" in caplog.text
    assert "selection_len=16" in caplog.text
    assert "secret selection" not in caplog.text


# =============================================================================
# ANTHROPIC PROVIDER
# =============================================================================


class _Block:
    def __init__(self, type_, text=None):
        self.type = type_
        self.text = text


class _Messages:
    def __init__(self, content=None, error=None):
        self.content = content or []
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return type("Message", (), {"content": self.content})()


class _Client:
    def __init__(self, messages):
        self.messages = messages


async def test_anthropic_provider_returns_first_text_block():
    messages = _Messages(content=[_Block("tool_use"), _Block("text", "Hello")])
    provider = AnthropicProvider("key", "model-x", client=_Client(messages))

    text = await provider.complete(system="sys", user="usr", max_tokens=10)

    assert text == "Hello"
    assert messages.kwargs == {
        "model": "model-x",
        "max_tokens": 10,
        "system": "sys",
        "messages": [{"role": "user", "content": "usr"}],
    }


async def test_anthropic_provider_without_text_is_upstream_failure():
    provider = AnthropicProvider("key", "model-x", client=_Client(_Messages(content=[])))

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(system="s", user="u", max_tokens=1)

    assert exc_info.value.kind == "upstream"


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (_status_error(AuthenticationError, 401), "auth"),
        (_status_error(RateLimitError, 429), "rate_limit"),
    ],
)
async def test_anthropic_errors_are_classified(error, kind):
    provider = AnthropicProvider("key", "model-x", client=_Client(_Messages(error=error)))

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(system="s", user="u", max_tokens=1)

    assert exc_info.value.kind == kind
