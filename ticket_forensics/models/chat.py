from enum import StrEnum
from typing import Any, List, Literal, Optional
from pydantic import Field, field_validator
from ticket_forensics.models.base import ApiModel
from ticket_forensics.models.request import NonEmptyStr


class InteractionType(StrEnum):
    BRIEFING = "BRIEFING"
    ALERT_TRIAGE = "ALERT_TRIAGE"
    DRAFT = "DRAFT"
    ANALYSIS = "ANALYSIS"
    REPORT = "REPORT"


class ChatTurn(ApiModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(ApiModel):
    """Body of the streaming chat endpoint."""
    message: NonEmptyStr
    client_id: Optional[str] = None
    interaction_type: Optional[str] = None  # Resolved leniently, see ChatService
    # Raw turns: malformed entries are dropped with a warning instead of failing the request
    conversation_history: List[Any] = Field(default_factory=list)

    @field_validator("conversation_history", mode="before")
    @classmethod
    def null_history_as_empty(cls, value: Any):
        return [] if value is None else value
