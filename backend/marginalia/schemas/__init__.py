"""Pydantic schemas for API request/response validation."""

from marginalia.schemas.ai import AskAIMode, AskAIRequest, AskAIResponse, ContextPack, RequestMeta, Source
from marginalia.schemas.brain import (
    BrainUpdate,
    ConstraintCreate,
    Decision,
    DecisionCreate,
    GlossaryEntry,
    GlossaryTermCreate,
    ProjectBrain,
)
from marginalia.schemas.documents import Document
from marginalia.schemas.threads import (
    AIModeUpdate,
    AIThreadCreate,
    Message,
    MessageAuthor,
    MessageDeleteResponse,
    MessageStatus,
    MessageUpdate,
    ReplyCreate,
    ResolveResponse,
    Thread,
    ThreadCreate,
)

__all__ = [
    # AI protocol
    "AskAIMode",
    "AskAIRequest",
    "AskAIResponse",
    "ContextPack",
    "RequestMeta",
    "Source",
    # Project Brain
    "ProjectBrain",
    "GlossaryEntry",
    "Decision",
    "BrainUpdate",
    "ConstraintCreate",
    "GlossaryTermCreate",
    "DecisionCreate",
    # Documents
    "Document",
    # Threads
    "Thread",
    "Message",
    "MessageAuthor",
    "MessageStatus",
    "ThreadCreate",
    "AIThreadCreate",
    "ReplyCreate",
    "MessageUpdate",
    "AIModeUpdate",
    "ResolveResponse",
    "MessageDeleteResponse",
]
