"""
Audit Logger

Best-effort persistence of the request/response/warning trail. The audit
trail is not part of a request's success contract: nothing in this module
ever raises to the caller. Failures go to the error log.
"""

import asyncio
import hashlib
from typing import Optional, Set

from loguru import logger

from ticket_forensics.models.audit import InteractionLogRecord, TicketAnalysisRecord
from ticket_forensics.models.request import AnalysisRequest
from ticket_forensics.models.user import CurrentUser
from ticket_forensics.models.verdict import AnalysisResponse
from ticket_forensics.repositories.interaction_logs import InteractionLogRepository
from ticket_forensics.repositories.ticket_analyses import TicketAnalysisRepository

PREVIEW_CHARS = 500


def hash_prompt(prompt: str) -> str:
    """Short stable fingerprint for grouping identical prompts."""
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:16]


def preview(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return text[:PREVIEW_CHARS]


def build_analysis_record(
    request: AnalysisRequest,
    response: AnalysisResponse,
    user: CurrentUser,
) -> TicketAnalysisRecord:
    return TicketAnalysisRecord(
        user_id=user.id,
        user_email=user.email,
        ticket_body=request.ticket_body,
        target_domain=request.target_domain,
        am_persona=request.am_persona.value,
        target_query=request.target_query,
        location=request.location,
        page_metadata=request.page_metadata.to_wire() if request.page_metadata else None,
        verdict=response.verdict.value,
        root_cause=response.root_cause,
        strategy=response.strategy,
        evidence=response.evidence,
        confidence=response.confidence,
        draft_email=response.draft_email,
        nine_month_check=response.nine_month_check.to_wire(),
        forensic_data=response.forensic_data.to_wire(),
        warnings=response.warnings,
        model_used=response.model_used,
        latency_ms=response.latency_ms,
    )


class AuditLogger:
    """
    Writes audit records without ever failing the request.

    Usage:
        >>> audit = AuditLogger(TicketAnalysisRepository(db), InteractionLogRepository(db))
        >>> await audit.record_analysis(request, response, user)   # awaited, never raises
        >>> audit.dispatch_interaction(record)                    # fire-and-forget
    """

    def __init__(
        self,
        analysis_repository: Optional[TicketAnalysisRepository] = None,
        interaction_repository: Optional[InteractionLogRepository] = None,
        enabled: bool = True,
    ):
        self.analysis_repository = analysis_repository
        self.interaction_repository = interaction_repository
        self.enabled = enabled
        # Detached tasks are only weakly referenced by the event loop
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def disabled(cls) -> "AuditLogger":
        return cls(enabled=False)

    async def record_analysis(
        self,
        request: AnalysisRequest,
        response: AnalysisResponse,
        user: CurrentUser,
    ) -> None:
        """Persist one ticket analysis. Awaited by the caller; never raises."""
        if not self.enabled or self.analysis_repository is None:
            logger.debug("Audit log disabled, skipping ticket analysis record")
            return

        try:
            record = build_analysis_record(request, response, user)
            await self.analysis_repository.create(record)
            logger.bind(record_id=record.id).debug(f"Ticket analysis audited for {request.target_domain}")
        except Exception as e:
            logger.bind(target_domain=request.target_domain, user_id=user.id).error(
                f"Failed to log ticket analysis: {e}"
            )

    def dispatch_interaction(self, record: InteractionLogRecord) -> Optional[asyncio.Task]:
        """
        Schedule an interaction-log write without waiting for it.

        Returns:
            The detached task (None when auditing is disabled)
        """
        if not self.enabled or self.interaction_repository is None:
            logger.debug("Audit log disabled, skipping interaction record")
            return None

        task = asyncio.create_task(self._write_interaction(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write_interaction(self, record: InteractionLogRecord) -> None:
        try:
            await self.interaction_repository.create(record)
        except Exception as e:
            logger.bind(user_id=record.user_id, interaction_type=record.interaction_type).error(
                f"Failed to log AI interaction: {e}"
            )

    async def drain(self) -> None:
        """Wait for in-flight interaction writes (used at shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
