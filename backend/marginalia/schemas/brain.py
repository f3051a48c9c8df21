"""Project Brain schemas."""

from pydantic import Field

from marginalia.schemas.base import BaseSchema
from marginalia.utils import now_ms


class GlossaryEntry(BaseSchema):
    """A key term and its definition."""

    term: str
    definition: str


class Decision(BaseSchema):
    """A past decision ("we chose X because Y")."""

    text: str
    created_at: int = Field(default_factory=now_ms)


class ProjectBrain(BaseSchema):
    """Structured context about a document's goals. One per project."""

    goal: str = ""
    constraints: list[str] = Field(default_factory=list)
    glossary: list[GlossaryEntry] = Field(default_factory=list)
    decisions: list[Decision] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.goal or self.constraints or self.glossary or self.decisions)


class BrainUpdate(BaseSchema):
    """Partial brain update. Only provided fields are replaced."""

    goal: str | None = None
    constraints: list[str] | None = None
    glossary: list[GlossaryEntry] | None = None
    decisions: list[Decision] | None = None


class ConstraintCreate(BaseSchema):
    text: str = Field(..., min_length=1)


class GlossaryTermCreate(BaseSchema):
    term: str = Field(..., min_length=1)
    definition: str = ""


class DecisionCreate(BaseSchema):
    text: str = Field(..., min_length=1)
