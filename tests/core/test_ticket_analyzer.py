"""
Tests for the ticket analysis orchestrator.
All collaborators are stubs; no network, model or database is touched.
"""
import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from ticket_forensics.core.errors import ModelInvocationError, RateLimitExceededError
from ticket_forensics.core.ticket_analyzer import TicketAnalyzer
from ticket_forensics.models.verdict import VerdictType
from ticket_forensics.services.audit_logger import AuditLogger
from ticket_forensics.services.evidence_gatherer import (
    NO_TARGET_QUERY_WARNING,
    SERPER_NOT_CONFIGURED_WARNING,
)
from ticket_forensics.utils.fallback_responses import PARSE_FAILURE_WARNING

from conftest import NOW, VALID_VERDICT, StubInvoker


@pytest.fixture
def make_analyzer(evidence_gatherer, rate_limiter, disabled_audit_logger):
    def _make(invoker, audit_logger=None):
        return TicketAnalyzer(
            evidence_gatherer=evidence_gatherer,
            model_invoker=invoker,
            rate_limiter=rate_limiter,
            audit_logger=audit_logger or disabled_audit_logger,
            clock=lambda: NOW,
        )
    return _make


class TestTicketAnalyzer:

    async def test_ticket_without_query_or_provider(self, make_analyzer, stub_invoker, ticket_request, user):
        """Unconfigured ranking provider and no query still produce a verdict."""
        result = await make_analyzer(stub_invoker).analyze(ticket_request, user)

        response = result.response
        assert response.forensic_data.market_check is None
        assert response.warnings[:2] == [SERPER_NOT_CONFIGURED_WARNING, NO_TARGET_QUERY_WARNING]
        assert len(stub_invoker.calls) == 1
        assert response.verdict == VerdictType.ALGO_IMPACT
        assert response.confidence == 0.72
        assert response.model_used == "stub-model"
        assert response.latency_ms >= 0
        assert result.used_fallback is False

    async def test_algo_overlay_reaches_prompt(self, make_analyzer, stub_invoker, ticket_request, user):
        result = await make_analyzer(stub_invoker).analyze(ticket_request, user)

        system_prompt, user_prompt = stub_invoker.calls[0]
        assert "December 2024 Core Update" in system_prompt
        assert '"marketCheck": null' in system_prompt
        assert "## Ticket Body\nrankings dropped for our main keyword" in user_prompt
        assert len(result.response.forensic_data.algo_overlay.updates_in_range) == 2

    async def test_rate_limit_denies_before_model(self, make_analyzer, stub_invoker, ticket_request, user):
        analyzer = make_analyzer(stub_invoker)

        for _ in range(3):
            await analyzer.analyze(ticket_request, user)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await analyzer.analyze(ticket_request, user)

        assert len(stub_invoker.calls) == 3
        assert exc_info.value.limit == 3
        assert exc_info.value.retry_after >= 1

    async def test_rate_limit_is_per_user(self, make_analyzer, stub_invoker, ticket_request, user):
        analyzer = make_analyzer(stub_invoker)
        for _ in range(3):
            await analyzer.analyze(ticket_request, user)

        other = user.model_copy(update={"id": "am-7"})
        result = await analyzer.analyze(ticket_request, other)

        assert result.rate_limit.remaining == 2

    async def test_remaining_counts_down(self, make_analyzer, stub_invoker, ticket_request, user):
        analyzer = make_analyzer(stub_invoker)

        first = await analyzer.analyze(ticket_request, user)
        second = await analyzer.analyze(ticket_request, user)

        assert first.rate_limit.remaining == 2
        assert second.rate_limit.remaining == 1

    async def test_model_failure_propagates(self, make_analyzer, failing_invoker, ticket_request, user):
        audit = MagicMock(spec=AuditLogger)
        audit.record_analysis = AsyncMock()

        with pytest.raises(ModelInvocationError):
            await make_analyzer(failing_invoker, audit).analyze(ticket_request, user)

        audit.record_analysis.assert_not_called()

    async def test_malformed_output_uses_fallback(self, make_analyzer, ticket_request, user):
        invoker = StubInvoker(output="Sorry, I cannot help with that.")

        result = await make_analyzer(invoker).analyze(ticket_request, user)

        assert result.used_fallback is True
        assert result.response.verdict == VerdictType.NEEDS_INVESTIGATION
        assert result.response.warnings[-1] == PARSE_FAILURE_WARNING

    async def test_locked_page_refresh_flagged_not_changed(self, make_analyzer, ticket_request, locked_page, user):
        """A content refresh for a locked page is returned unchanged with a warning."""
        invoker = StubInvoker(output=json.dumps({**VALID_VERDICT, "strategy": "CONTENT_REFRESH"}))
        request = ticket_request.model_copy(update={"page_metadata": locked_page})

        result = await make_analyzer(invoker).analyze(request, user)

        response = result.response
        assert response.nine_month_check.is_locked is True
        assert response.strategy == "CONTENT_REFRESH"
        assert any(w.startswith("Validation: NINE_MONTH_RULE: ") for w in response.warnings)
        assert "9-MONTH LOCK ACTIVE" in invoker.calls[0][0]

    async def test_nine_month_check_is_deterministic(self, make_analyzer, ticket_request, locked_page, user):
        """The model's own nineMonthCheck claim is ignored."""
        output = json.dumps({**VALID_VERDICT, "nineMonthCheck": {"isLocked": False, "reason": "looks fine"}})
        request = ticket_request.model_copy(update={"page_metadata": locked_page})

        result = await make_analyzer(StubInvoker(output=output)).analyze(request, user)

        assert result.response.nine_month_check.is_locked is True
        assert str(result.response.nine_month_check.unlocks_on) == "2025-08-10"

    async def test_audit_record_written(self, make_analyzer, stub_invoker, ticket_request, user):
        repo = MagicMock()
        repo.create = AsyncMock()

        await make_analyzer(stub_invoker, AuditLogger(analysis_repository=repo)).analyze(ticket_request, user)

        record = repo.create.call_args.args[0]
        assert record.user_id == "am-42"
        assert record.verdict == "ALGO_IMPACT"
        assert SERPER_NOT_CONFIGURED_WARNING in record.warnings

    async def test_audit_failure_does_not_fail_request(self, make_analyzer, stub_invoker, ticket_request, user):
        repo = MagicMock()
        repo.create = AsyncMock(side_effect=RuntimeError("mongo down"))

        result = await make_analyzer(stub_invoker, AuditLogger(analysis_repository=repo)).analyze(
            ticket_request, user
        )

        assert result.response.verdict == VerdictType.ALGO_IMPACT

    async def test_wire_format(self, make_analyzer, stub_invoker, ticket_request, user):
        result = await make_analyzer(stub_invoker).analyze(ticket_request, user)

        wire = result.response.to_wire()
        assert set(wire) >= {
            "verdict", "rootCause", "strategy", "evidence", "confidence", "draftEmail",
            "nineMonthCheck", "forensicData", "warnings", "modelUsed", "latencyMs",
        }
        assert wire["forensicData"]["marketCheck"] is None
