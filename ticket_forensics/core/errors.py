"""
Error taxonomy for the forensics pipeline.

Only AnalysisValidationError, RateLimitExceededError and ModelInvocationError
change the HTTP status of a request. Everything else degrades into a warning.
"""
from dataclasses import dataclass
from typing import List, Optional


class AnalysisValidationError(Exception):
    """Raised when a request field is missing or invalid."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class UpstreamEvidenceError(Exception):
    """Raised by an evidence probe (ranking check, algo calendar)."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        self.source = source
        self.status_code = status_code
        super().__init__(message)


class ModelInvocationError(Exception):
    """The generative model call itself failed. Fatal to the request."""
    pass


class ResponseParseError(Exception):
    """Model output could not be parsed into an AIVerdict."""
    pass


class PersistenceError(Exception):
    """An audit write failed."""
    pass


class RateLimitExceededError(Exception):
    """Raised when a user is denied admission to the model."""

    def __init__(self, user_id: str, retry_after: int, limit: int):
        self.user_id = user_id
        self.retry_after = retry_after
        self.limit = limit
        super().__init__(f"Rate limit exceeded for {user_id}: retry in {retry_after}s")


@dataclass
class ConstraintViolation:
    """A verdict that conflicts with a Handbook rule. Recorded, never raised."""
    rule: str
    message: str

    def as_warning(self) -> str:
        return f"Validation: {self.rule}: {self.message}"
