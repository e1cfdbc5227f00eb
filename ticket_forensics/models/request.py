import datetime as dt
from enum import StrEnum
from typing import Annotated, Any, Optional
from pydantic import ConfigDict, Field, StringConstraints, ValidationError, field_validator
from ticket_forensics.models.base import ApiModel
from ticket_forensics.core.errors import AnalysisValidationError

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class AMPersona(StrEnum):
    """Tone profile of the account manager the verdict is written for."""
    PANIC_PATTY = "PANIC_PATTY"
    TECHNICAL_TOM = "TECHNICAL_TOM"
    GHOST_GARY = "GHOST_GARY"


AM_PERSONA_DESCRIPTIONS = {
    AMPersona.PANIC_PATTY: "Needs reassurance and data-heavy explanations",
    AMPersona.TECHNICAL_TOM: "Wants technical details and root cause analysis",
    AMPersona.GHOST_GARY: "Needs brief, action-focused responses",
}


class PageType(StrEnum):
    GENERIC = "GENERIC"
    GEO = "GEO"
    SERVICE = "SERVICE"
    HOMEPAGE = "HOMEPAGE"


class PageMetadata(ApiModel):
    """
    Metadata about the page under discussion.
    Opaque to the pipeline except for the Handbook rules, so unknown keys are kept.
    """
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None
    page_type: Optional[PageType] = None
    last_optimization_date: Optional[dt.date] = Field(
        None, description="Last substantive content update (re-optimization)."
    )
    created_date: Optional[dt.date] = None
    title: Optional[str] = None

    @field_validator("last_optimization_date", "created_date", mode="before")
    @classmethod
    def accept_timestamps(cls, value: Any):
        # Dashboards send full ISO timestamps; only the calendar day matters
        if isinstance(value, str) and "T" in value:
            return dt.datetime.fromisoformat(value).date()
        if isinstance(value, dt.datetime):
            return value.date()
        return value


class AnalysisRequest(ApiModel):
    """A support ticket submitted to the Forensics Console."""
    ticket_body: NonEmptyStr
    target_domain: NonEmptyStr
    am_persona: AMPersona
    target_query: Optional[str] = None
    location: Optional[str] = None
    page_metadata: Optional[PageMetadata] = None

    @field_validator("target_query", "location", mode="before")
    @classmethod
    def blank_as_missing(cls, value: Any):
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value


def describe_validation_errors(error: ValidationError) -> list[str]:
    """Turn pydantic errors into short messages for the 400 response."""
    messages = []
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"]) or "body"
        kind = item["type"]
        if kind == "missing":
            messages.append(f"{field} is required")
        elif kind == "string_too_short":
            messages.append(f"{field} must not be empty")
        elif kind == "enum" and field == "amPersona":
            messages.append(
                f"amPersona must be one of: {', '.join(p.value for p in AMPersona)}"
            )
        else:
            messages.append(f"{field}: {item['msg']}")
    return messages


def validate_analysis_request(body: Any) -> AnalysisRequest:
    """
    Validate a decoded JSON body into an AnalysisRequest.

    Raises:
        AnalysisValidationError: with one message per invalid field
    """
    if not isinstance(body, dict):
        raise AnalysisValidationError(["Request body must be a JSON object"])

    try:
        return AnalysisRequest.model_validate(body)
    except ValidationError as e:
        raise AnalysisValidationError(describe_validation_errors(e)) from e
