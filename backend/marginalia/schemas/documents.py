"""Document schemas."""

from typing import Any

from pydantic import Field

from marginalia.schemas.base import TimestampedSchema


def empty_doc() -> dict[str, Any]:
    """Default content: a single empty paragraph."""
    return {"type": "doc", "content": [{"type": "paragraph"}]}


class Document(TimestampedSchema):
    """A rich-text document. `content` is the serialized content tree."""

    id: str
    title: str = "Untitled"
    content: dict[str, Any] = Field(default_factory=empty_doc)
    starred: bool = False
