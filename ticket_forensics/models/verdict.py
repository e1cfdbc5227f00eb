import datetime as dt
from enum import StrEnum
from typing import List, Optional
from pydantic import Field
from ticket_forensics.models.base import ApiModel
from ticket_forensics.models.evidence import ForensicEvidence


class VerdictType(StrEnum):
    FALSE_ALARM = "FALSE_ALARM"
    TECHNICAL_FAILURE = "TECHNICAL_FAILURE"
    COMPETITOR_WIN = "COMPETITOR_WIN"
    ALGO_IMPACT = "ALGO_IMPACT"
    CANNIBALIZATION = "CANNIBALIZATION"
    NEEDS_INVESTIGATION = "NEEDS_INVESTIGATION"


VERDICT_DESCRIPTIONS = {
    VerdictType.FALSE_ALARM: "The concern is not valid or is expected behavior",
    VerdictType.TECHNICAL_FAILURE: "Website or technical issues causing the problem",
    VerdictType.COMPETITOR_WIN: "Competitors have improved and are outranking",
    VerdictType.ALGO_IMPACT: "Google algorithm update is affecting rankings",
    VerdictType.CANNIBALIZATION: "Multiple pages competing for the same keywords",
    VerdictType.NEEDS_INVESTIGATION: "More data or manual review is required",
}


class StrategyType(StrEnum):
    MINI_HOMEPAGE = "MINI_HOMEPAGE"
    AREAS_WE_SERVE = "AREAS_WE_SERVE"
    CONTENT_REFRESH = "CONTENT_REFRESH"
    DIGITAL_PR = "DIGITAL_PR"
    WEB_HEALTH_FIX = "WEB_HEALTH_FIX"
    UNMAP_AND_CREATE = "UNMAP_AND_CREATE"


STRATEGY_DESCRIPTIONS = {
    StrategyType.MINI_HOMEPAGE: "Create dedicated homepage for specific location",
    StrategyType.AREAS_WE_SERVE: "Build out geo-specific service area pages",
    StrategyType.CONTENT_REFRESH: "Update existing page content (requires 9-month rule)",
    StrategyType.DIGITAL_PR: "Build authority through PR and backlinks",
    StrategyType.WEB_HEALTH_FIX: "Fix technical issues (404s, Schema, Core Web Vitals)",
    StrategyType.UNMAP_AND_CREATE: "Remove generic page from geo-grid, create dedicated page",
}


class NineMonthCheckResult(ApiModel):
    """Deterministic content-freshness lock for the page under discussion."""
    is_locked: bool
    reason: str
    unlocks_on: Optional[dt.date] = None


class AIVerdict(ApiModel):
    """The formal output contract for the forensics model."""
    verdict: VerdictType
    root_cause: str
    strategy: Optional[str] = None
    evidence: List[str]
    confidence: float = Field(ge=0, le=1.0)
    draft_email: str


class AnalysisResponse(AIVerdict):
    """What the Forensics Console receives for one ticket."""
    nine_month_check: NineMonthCheckResult
    forensic_data: ForensicEvidence
    warnings: List[str] = Field(default_factory=list)
    model_used: str
    latency_ms: int = Field(ge=0)
