"""
Ticket Analyzer
The orchestrator behind POST /api/ai/analyze-ticket.

Pipeline:
    Evidence (concurrent, fail-soft) + Nine-Month Rule → Context → Prompt
    → Rate Limiter → Model → Parse & Validate → Response → Audit
"""
import datetime as dt
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from ticket_forensics.agents.model_invoker import ModelInvoker
from ticket_forensics.agents.prompts import build_forensics_prompt, build_ticket_user_prompt
from ticket_forensics.core.context_builder import (
    build_constraint_context,
    dump_forensic_context,
    dump_page_context,
)
from ticket_forensics.core.errors import RateLimitExceededError
from ticket_forensics.core.handbook_rules import NineMonthPolicy, check_nine_month_rule
from ticket_forensics.core.handbook_validator import validate_against_handbook
from ticket_forensics.core.response_parser import parse_model_output
from ticket_forensics.models.request import AnalysisRequest
from ticket_forensics.models.user import CurrentUser
from ticket_forensics.models.verdict import AnalysisResponse
from ticket_forensics.services.audit_logger import AuditLogger
from ticket_forensics.services.evidence_gatherer import EvidenceGatherer
from ticket_forensics.utils.observability import log_analysis_event, log_pipeline_step
from ticket_forensics.utils.rate_limiter import FixedWindowRateLimiter, RateLimitResult


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


@dataclass
class TicketAnalysisResult:
    """Response plus the admission decision (for X-RateLimit-* headers)."""
    response: AnalysisResponse
    rate_limit: RateLimitResult
    used_fallback: bool = False


class TicketAnalyzer:
    """
    Coordinates evidence, Handbook rules and the model for one ticket.

    Every collaborator is injected so tests can substitute stubs.

    Usage:
        >>> analyzer = TicketAnalyzer(gatherer, invoker, limiter, audit_logger)
        >>> result = await analyzer.analyze(request, user)
        >>> print(result.response.verdict)
    """

    def __init__(
        self,
        evidence_gatherer: EvidenceGatherer,
        model_invoker: ModelInvoker,
        rate_limiter: FixedWindowRateLimiter,
        audit_logger: AuditLogger,
        policy: NineMonthPolicy = NineMonthPolicy(),
        max_competitors: int = 5,
        queue_lead_months: int = 3,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self.evidence_gatherer = evidence_gatherer
        self.model_invoker = model_invoker
        self.rate_limiter = rate_limiter
        self.audit_logger = audit_logger
        self.policy = policy
        self.max_competitors = max_competitors
        self.queue_lead_months = queue_lead_months
        self.clock = clock

    async def analyze(self, request: AnalysisRequest, user: CurrentUser) -> TicketAnalysisResult:
        """
        Analyze one validated ticket.

        Raises:
            RateLimitExceededError: Admission denied; the model was not called
            ModelInvocationError: The model call failed
        """
        start_time = time.time()
        now = self.clock()
        today = now.date()

        # Phase 1: deterministic evidence
        evidence, warnings = await self.evidence_gatherer.gather(request, now=now)
        nine_month = check_nine_month_rule(request.page_metadata, today, self.policy)

        # Phase 2: context and prompts
        system_prompt = build_forensics_prompt(
            persona=request.am_persona,
            forensic_context_json=dump_forensic_context(evidence, nine_month, self.max_competitors),
            page_context_json=dump_page_context(request.page_metadata),
            extra_context=build_constraint_context(
                request.page_metadata,
                request.target_query,
                nine_month,
                today,
                self.queue_lead_months,
            ),
        )
        user_prompt = build_ticket_user_prompt(request)

        # Phase 3: admission control, then the model
        rate_limit = await self.rate_limiter.check(user.id)
        if not rate_limit.allowed:
            raise RateLimitExceededError(user.id, rate_limit.retry_after, self.rate_limiter.max_requests)

        raw_output = await self.model_invoker.generate(system_prompt, user_prompt)

        # Phase 4: parse and validate
        parsed = parse_model_output(raw_output)
        warnings.extend(parsed.warnings)

        violations = validate_against_handbook(parsed.verdict, nine_month)
        warnings.extend(violation.as_warning() for violation in violations)

        # Phase 5: response; the deterministic nine-month result always wins
        response = AnalysisResponse(
            **parsed.verdict.model_dump(),
            nine_month_check=nine_month,
            forensic_data=evidence,
            warnings=warnings,
            model_used=self.model_invoker.model_name,
            latency_ms=int((time.time() - start_time) * 1000),
        )

        # Phase 6: audit (awaited, best-effort)
        await self.audit_logger.record_analysis(request, response, user)

        log_pipeline_step(
            component="TicketAnalyzer",
            target_domain=request.target_domain,
            action="analyze",
            duration_ms=(time.time() - start_time) * 1000,
            verdict=response.verdict.value,
            warnings=len(warnings),
            used_fallback=parsed.used_fallback,
        )
        log_analysis_event(
            "verdict_issued",
            request.target_domain,
            verdict=response.verdict.value,
            confidence=response.confidence,
            violations=[violation.rule for violation in violations],
        )
        if parsed.used_fallback:
            logger.warning(f"Fallback verdict issued for {request.target_domain}")

        return TicketAnalysisResult(
            response=response,
            rate_limit=rate_limit,
            used_fallback=parsed.used_fallback,
        )
