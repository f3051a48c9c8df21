"""Pydantic schemas for comment and AI threads."""

from enum import Enum

from pydantic import Field

from marginalia.schemas.ai import AskAIMode
from marginalia.schemas.base import BaseSchema, TimestampedSchema


class MessageAuthor(str, Enum):
    """Who wrote a message."""

    HUMAN = "user"
    MODEL = "ai"


class MessageStatus(str, Enum):
    """Lifecycle of a model-authored message."""

    PENDING = "pending"
    COMPLETE = "complete"
    ERROR = "error"


class Message(TimestampedSchema):
    """A single message in a thread. Order is insertion order."""

    id: str
    author: MessageAuthor = MessageAuthor.HUMAN
    content: str
    status: MessageStatus | None = None  # model-authored messages only
    proposed_text: str | None = None  # synthesize rewrites


class Thread(TimestampedSchema):
    """
    A discussion anchored to document text.

    The live anchor (text and position) is derived from marks in the content
    tree; `highlighted_text` is only the creation-time snapshot.
    """

    id: str
    document_id: str
    highlighted_text: str = ""
    messages: list[Message] = Field(default_factory=list)
    resolved: bool = False
    is_ai_thread: bool = Field(default=False, alias="isAIThread")
    ai_mode: AskAIMode | None = None

    @property
    def root_message(self) -> Message | None:
        return self.messages[0] if self.messages else None


# Request schemas
class ThreadCreate(BaseSchema):
    """Create a human comment thread with its root message."""

    content: str = Field(..., min_length=1, max_length=10000)
    highlighted_text: str = ""


class AIThreadCreate(BaseSchema):
    """Create an empty AI thread awaiting a prompt."""

    mode: AskAIMode = AskAIMode.CRITIQUE
    highlighted_text: str = ""


class ReplyCreate(BaseSchema):
    content: str = Field(..., min_length=1, max_length=10000)


class MessageUpdate(BaseSchema):
    content: str = Field(..., min_length=1, max_length=10000)


class AIModeUpdate(BaseSchema):
    mode: AskAIMode


class ResolveResponse(BaseSchema):
    resolved: bool


class MessageDeleteResponse(BaseSchema):
    thread_deleted: bool
