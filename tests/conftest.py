import json
import pytest
import datetime as dt
from typing import AsyncIterator, List, Optional, Sequence

from ticket_forensics.agents.model_invoker import ModelInvoker
from ticket_forensics.core.errors import ModelInvocationError
from ticket_forensics.models.chat import ChatTurn
from ticket_forensics.models.request import AMPersona, AnalysisRequest, PageMetadata
from ticket_forensics.models.user import CurrentUser
from ticket_forensics.services.algo_calendar import AlgoCalendar
from ticket_forensics.services.audit_logger import AuditLogger
from ticket_forensics.services.evidence_gatherer import EvidenceGatherer
from ticket_forensics.services.market_check import MarketChecker
from ticket_forensics.utils.rate_limiter import FixedWindowRateLimiter, InMemoryCounterStore

TODAY = dt.date(2025, 1, 15)
NOW = dt.datetime(2025, 1, 15, 12, 0, tzinfo=dt.UTC)

VALID_VERDICT = {
    "verdict": "ALGO_IMPACT",
    "rootCause": "Ranking decline is correlated with the December 2024 Core Update rollout.",
    "strategy": "DIGITAL_PR",
    "evidence": ["December 2024 Core Update rolled out during the drop window"],
    "confidence": 0.72,
    "draftEmail": "Hi team, the drop lines up with Google's December core update. We are monitoring closely.",
}


class StubInvoker(ModelInvoker):
    """Returns canned text and records every call."""

    def __init__(self, output: str = "", chunks: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.output = output
        self.chunks = chunks or []
        self.error = error
        self.calls: List[tuple] = []

    @property
    def model_name(self) -> str:
        return "stub-model"

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.output

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        history: Sequence[ChatTurn] = (),
    ) -> AsyncIterator[str]:
        self.calls.append((system_prompt, user_prompt, list(history)))
        if self.error:
            raise self.error
        for chunk in self.chunks:
            yield chunk


@pytest.fixture
def ticket_request():
    """Scenario A request: no query, nothing configured."""
    return AnalysisRequest(
        ticket_body="rankings dropped for our main keyword",
        target_domain="example.com",
        am_persona=AMPersona.TECHNICAL_TOM,
    )


@pytest.fixture
def locked_page():
    """Page re-optimized two months before TODAY."""
    return PageMetadata(
        url="https://example.com/plumbing",
        last_optimization_date=dt.date(2024, 11, 10),
    )


@pytest.fixture
def user():
    return CurrentUser(id="am-42", email="am@agency.test")


@pytest.fixture
def valid_verdict_text():
    return "Here is my assessment:\n" + json.dumps(VALID_VERDICT) + "\nLet me know if you need more."


@pytest.fixture
def stub_invoker(valid_verdict_text):
    return StubInvoker(output=valid_verdict_text)


@pytest.fixture
def failing_invoker():
    return StubInvoker(error=ModelInvocationError("Model call failed: upstream 503"))


@pytest.fixture
def rate_limiter():
    return FixedWindowRateLimiter(InMemoryCounterStore(), max_requests=3, window_seconds=60)


@pytest.fixture
def evidence_gatherer():
    """Unconfigured Serper, built-in algorithm calendar."""
    return EvidenceGatherer(MarketChecker(api_key=None), AlgoCalendar(), lookback_days=30)


@pytest.fixture
def disabled_audit_logger():
    return AuditLogger.disabled()


@pytest.fixture
def stub_invoker_factory():
    return StubInvoker
