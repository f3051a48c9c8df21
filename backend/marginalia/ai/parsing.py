"""
Extraction of the structured synthesize payload from free model text.

Strategies are tried in a fixed order and the first success wins:

1. a fenced code block (```json ... ``` or ``` ... ```);
2. the first brace-delimited substring;
3. the whole response.

A strategy succeeds only if it parses and yields both `message` and
`proposedText`. When all three fail the raw text becomes the message.
"""

import json
import logging
import re
from typing import Any

from marginalia.ai.errors import ParseError
from marginalia.schemas.ai import AskAIMode, AskAIResponse
from marginalia.schemas.base import BaseSchema

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)


class SynthesisPayload(BaseSchema):
    """Required shape of a synthesize response."""

    message: str
    proposed_text: str
    clarifying_question: str | None = None


def _fenced_block(text: str) -> str:
    match = _FENCED_BLOCK.search(text)
    if match is None:
        raise ParseError("No fenced block in response")
    return match.group(1)


def _first_brace_block(text: str) -> str:
    """The first balanced {...} substring, ignoring braces inside JSON strings."""
    start = text.find("{")
    if start == -1:
        raise ParseError("No brace in response")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    raise ParseError("Unbalanced braces in response")


def _whole_response(text: str) -> str:
    return text


_STRATEGIES = (
    ("fenced block", _fenced_block),
    ("first brace block", _first_brace_block),
    ("whole response", _whole_response),
)


def _decode(candidate: str) -> SynthesisPayload:
    try:
        data: Any = json.loads(candidate.strip())
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("JSON is not an object")
    try:
        return SynthesisPayload.model_validate(data)
    except Exception as e:
        raise ParseError(f"Missing or invalid fields: {e}") from e


def extract_synthesis(text: str) -> SynthesisPayload:
    """
    Run the extraction strategies in order.

    Raises:
        ParseError: if no strategy yields a complete payload.
    """
    for name, locate in _STRATEGIES:
        try:
            payload = _decode(locate(text))
        except ParseError as e:
            logger.debug("Synthesis extraction via %s failed: %s", name, e)
            continue
        logger.debug("Synthesis extracted via %s", name)
        return payload
    raise ParseError("No extraction strategy produced a complete payload")


def parse_response(mode: AskAIMode, text: str) -> AskAIResponse:
    """
    Turn raw model text into a response payload. Never raises.

    Critique text is returned verbatim. Synthesize text is parsed into a
    message and a proposed rewrite, falling back to the raw text.
    """
    if mode is AskAIMode.CRITIQUE:
        return AskAIResponse(message=text)

    try:
        payload = extract_synthesis(text)
    except ParseError:
        logger.info("Synthesize response was not structured; returning raw text")
        return AskAIResponse(message=text)

    return AskAIResponse(
        message=payload.message,
        proposed_text=payload.proposed_text,
        clarifying_question=payload.clarifying_question,
    )
