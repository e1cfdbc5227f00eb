import datetime as dt
from enum import StrEnum
from typing import List, Optional
from pydantic import Field
from ticket_forensics.models.base import ApiModel


class SerpFeature(StrEnum):
    KNOWLEDGE_GRAPH = "knowledgeGraph"
    PEOPLE_ALSO_ASK = "peopleAlsoAsk"
    LOCAL_PACK = "localPack"
    RELATED_SEARCHES = "relatedSearches"
    FEATURED_SNIPPET = "featuredSnippet"


class Difficulty(StrEnum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class Competitor(ApiModel):
    domain: str
    position: int = Field(ge=1)
    url: str
    title: str = ""


class MarketCheckResult(ApiModel):
    """Live ranking verification for one domain + query. Lives for one request."""
    query: str
    location: Optional[str] = None
    target_domain: str
    is_ranking: bool
    position: Optional[int] = Field(None, ge=1)
    ranking_url: Optional[str] = None
    top_competitors: List[Competitor] = Field(default_factory=list)
    serp_features: List[SerpFeature] = Field(default_factory=list)
    difficulty: Difficulty
    checked_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))


class AlgoUpdateType(StrEnum):
    CORE = "CORE"
    SPAM = "SPAM"
    HELPFUL_CONTENT = "HELPFUL_CONTENT"
    LINK = "LINK"
    REVIEWS = "REVIEWS"
    LOCAL = "LOCAL"
    OTHER = "OTHER"


class ImpactLevel(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class AlgoUpdate(ApiModel):
    """A known search-algorithm update from the calendar."""
    date: dt.date
    name: str
    type: AlgoUpdateType
    impact_level: ImpactLevel
    description: Optional[str] = None
    rollout_days: int = Field(14, ge=0)

    @property
    def rollout_end(self) -> dt.date:
        return self.date + dt.timedelta(days=self.rollout_days)

    def overlaps(self, start: dt.date, end: dt.date) -> bool:
        """True when the rollout period intersects [start, end]."""
        return self.date <= end and self.rollout_end >= start


class AlgoOverlayResult(ApiModel):
    window_start: dt.date
    window_end: dt.date
    updates_in_range: List[AlgoUpdate] = Field(default_factory=list)


class ForensicEvidence(ApiModel):
    """
    Deterministic facts gathered for one ticket.
    A missing field means the probe was skipped or failed; the reason is in warnings.
    """
    market_check: Optional[MarketCheckResult] = None
    algo_overlay: Optional[AlgoOverlayResult] = None
