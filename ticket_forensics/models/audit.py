from typing import Any, Dict, List, Optional
from pydantic import Field
from ticket_forensics.models.base import MongoBaseModel


class TicketAnalysisRecord(MongoBaseModel):
    """
    One row of the ticket-analysis audit trail.
    Written once per analyzed ticket and never read back by the pipeline.
    """
    user_id: str
    user_email: Optional[str] = None

    # Request
    ticket_body: str
    target_domain: str
    am_persona: str
    target_query: Optional[str] = None
    location: Optional[str] = None
    page_metadata: Optional[Dict[str, Any]] = None

    # Verdict
    verdict: str
    root_cause: str
    strategy: Optional[str] = None
    evidence: List[str] = Field(default_factory=list)
    confidence: float
    draft_email: str
    nine_month_check: Dict[str, Any] = Field(default_factory=dict)

    # Trail
    forensic_data: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
    model_used: str
    latency_ms: int


class InteractionLogRecord(MongoBaseModel):
    """Audit row for a streamed chat interaction."""
    user_id: str
    client_id: Optional[str] = None
    interaction_type: str
    prompt_hash: Optional[str] = None
    prompt_preview: Optional[str] = Field(None, max_length=500)
    response_preview: Optional[str] = Field(None, max_length=500)
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    model_used: str
    constraint_violations: List[str] = Field(default_factory=list)
