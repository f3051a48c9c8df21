"""Error taxonomy for the AI collaboration protocol."""

from typing import Literal

ProviderFailureKind = Literal["auth", "rate_limit", "upstream"]


class AIError(Exception):
    """Base class for AI protocol errors."""


class ValidationError(AIError):
    """A request field is missing or malformed. Surfaced as a client error."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ConfigurationError(AIError):
    """The provider credential is not configured. Surfaced as a server error."""


class ProviderError(AIError):
    """The language model provider failed. Masked into a user-facing message."""

    def __init__(self, message: str, kind: ProviderFailureKind = "upstream") -> None:
        super().__init__(message)
        self.kind = kind


class AITimeoutError(AIError):
    """The provider did not answer within the wall-clock budget."""


class ParseError(AIError):
    """A structured response could not be extracted by one strategy."""
