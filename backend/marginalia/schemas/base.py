"""Base schema configuration."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema with common configuration.

    Field names are snake_case in Python and camelCase on the wire and in
    the persisted store.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    def dump(self) -> dict[str, Any]:
        """Serialize with wire aliases, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TimestampedSchema(BaseSchema):
    """Schema carrying createdAt/updatedAt as epoch milliseconds."""

    created_at: int
    updated_at: int
