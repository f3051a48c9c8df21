"""Pydantic schemas for the AI collaboration wire protocol."""

from enum import Enum

from pydantic import Field

from marginalia.schemas.base import BaseSchema
from marginalia.schemas.brain import ProjectBrain


class AskAIMode(str, Enum):
    """What the margin editor is asked to do with the selection."""

    CRITIQUE = "critique"
    SYNTHESIZE = "synthesize"


class Source(BaseSchema):
    """An attached reference excerpt."""

    id: str = ""
    title: str
    excerpt: str


class ContextPack(BaseSchema):
    """Text context sent with each AI request. Never persisted."""

    selected_text: str
    local_context: str | None = None  # current block + 2 before + 1 after
    outline: str | None = None  # H1-H3 hierarchy
    full_doc_text: str | None = None  # only when explicitly included
    sources: list[Source] | None = None


class RequestMeta(BaseSchema):
    """Optional request metadata, used for logging only."""

    document_id: str | None = None
    anchor_id: str | None = None


class AskAIRequest(BaseSchema):
    """Request body for POST /api/ai."""

    mode: AskAIMode
    user_prompt: str
    context: ContextPack
    brain: ProjectBrain = Field(default_factory=ProjectBrain)
    meta: RequestMeta | None = None


class AskAIResponse(BaseSchema):
    """Response body for POST /api/ai. `message` is always present."""

    message: str
    proposed_text: str | None = None  # synthesize only
    clarifying_question: str | None = None
