"""Tests for the best-effort audit trail."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from ticket_forensics.core.errors import PersistenceError
from ticket_forensics.models.audit import InteractionLogRecord
from ticket_forensics.models.evidence import ForensicEvidence
from ticket_forensics.models.request import PageMetadata
from ticket_forensics.models.verdict import AnalysisResponse, NineMonthCheckResult
from ticket_forensics.services.audit_logger import (
    AuditLogger,
    build_analysis_record,
    hash_prompt,
    preview,
)

from conftest import VALID_VERDICT


@pytest.fixture
def analysis_response():
    return AnalysisResponse(
        **{k: v for k, v in VALID_VERDICT.items()},
        nine_month_check=NineMonthCheckResult(is_locked=False, reason="Page metadata not provided"),
        forensic_data=ForensicEvidence(),
        warnings=["No targetQuery provided - live SERP check skipped"],
        model_used="stub-model",
        latency_ms=850,
    )


@pytest.fixture
def interaction_record():
    return InteractionLogRecord(user_id="am-42", interaction_type="BRIEFING", model_used="stub-model")


@pytest.fixture
def analysis_repo():
    repo = MagicMock()
    repo.create = AsyncMock()
    return repo


@pytest.fixture
def interaction_repo():
    repo = MagicMock()
    repo.create = AsyncMock()
    return repo


class TestHelpers:

    def test_hash_prompt_is_stable_and_short(self):
        assert hash_prompt("why did traffic drop?") == hash_prompt("why did traffic drop?")
        assert hash_prompt("a") != hash_prompt("b")
        assert len(hash_prompt("a")) == 16

    def test_preview_truncates(self):
        assert len(preview("x" * 2000)) == 500
        assert preview("short") == "short"
        assert preview(None) is None

    def test_build_analysis_record(self, ticket_request, analysis_response, user):
        request = ticket_request.model_copy(update={"page_metadata": PageMetadata(url="https://example.com/a")})

        record = build_analysis_record(request, analysis_response, user)

        assert record.user_id == "am-42"
        assert record.user_email == "am@agency.test"
        assert record.am_persona == "TECHNICAL_TOM"
        assert record.verdict == "ALGO_IMPACT"
        assert record.page_metadata["url"] == "https://example.com/a"
        assert record.nine_month_check["isLocked"] is False
        assert record.warnings == analysis_response.warnings


class TestRecordAnalysis:

    async def test_writes_record(self, analysis_repo, ticket_request, analysis_response, user):
        audit = AuditLogger(analysis_repository=analysis_repo)

        await audit.record_analysis(ticket_request, analysis_response, user)

        analysis_repo.create.assert_awaited_once()
        assert analysis_repo.create.call_args.args[0].target_domain == "example.com"

    async def test_failure_is_swallowed(self, analysis_repo, ticket_request, analysis_response, user):
        analysis_repo.create.side_effect = PersistenceError("Insert into ticket_analyses failed")
        audit = AuditLogger(analysis_repository=analysis_repo)

        # Must not raise
        await audit.record_analysis(ticket_request, analysis_response, user)

    async def test_disabled_is_noop(self, analysis_repo, ticket_request, analysis_response, user):
        audit = AuditLogger(analysis_repository=analysis_repo, enabled=False)

        await audit.record_analysis(ticket_request, analysis_response, user)

        analysis_repo.create.assert_not_called()


class TestDispatchInteraction:

    async def test_disabled_returns_none(self, interaction_record):
        assert AuditLogger.disabled().dispatch_interaction(interaction_record) is None

    async def test_write_happens_in_background(self, interaction_repo, interaction_record):
        audit = AuditLogger(interaction_repository=interaction_repo)

        task = audit.dispatch_interaction(interaction_record)
        await task

        interaction_repo.create.assert_awaited_once_with(interaction_record)

    async def test_failure_does_not_propagate(self, interaction_repo, interaction_record):
        interaction_repo.create.side_effect = PersistenceError("boom")
        audit = AuditLogger(interaction_repository=interaction_repo)

        task = audit.dispatch_interaction(interaction_record)
        await task

        assert task.exception() is None

    async def test_drain_waits_for_pending_writes(self, interaction_repo, interaction_record):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_create(record):
            started.set()
            await release.wait()

        interaction_repo.create.side_effect = slow_create
        audit = AuditLogger(interaction_repository=interaction_repo)

        task = audit.dispatch_interaction(interaction_record)
        await started.wait()
        assert not task.done()

        release.set()
        await audit.drain()

        assert task.done()
