"""
Market Check

Live SERP verification through the Serper.dev Google Search API.
Used to verify or debunk "we're not ranking anymore" claims from clients.

Results are computed per request and never cached: the point of the check is
to see the SERP as it is right now.
"""
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
from loguru import logger

from ticket_forensics.config import get_settings
from ticket_forensics.core.errors import UpstreamEvidenceError
from ticket_forensics.models.evidence import (
    Competitor,
    Difficulty,
    MarketCheckResult,
    SerpFeature,
)

MAX_COMPETITORS = 10
FEATURED_SNIPPET_MIN_CHARS = 300
LARGE_DOMAINS = ("wikipedia.org", "amazon.com", "yelp.com", "facebook.com", "linkedin.com")


def normalize_domain(domain: str) -> str:
    """Lowercase and strip a leading www. for comparison."""
    return re.sub(r"^www\.", "", domain.strip().lower())


def extract_domain(url: str) -> str:
    """Hostname of a URL, tolerating scheme-less input."""
    parsed = urlparse(url if "://" in url else f"https://{url}")
    if parsed.hostname:
        return parsed.hostname
    match = re.match(r"^(?:https?://)?([^/]+)", url)
    return match.group(1) if match else url


def detect_serp_features(response: Dict[str, Any]) -> List[SerpFeature]:
    features: List[SerpFeature] = []
    if response.get("knowledgeGraph"):
        features.append(SerpFeature.KNOWLEDGE_GRAPH)
    if response.get("peopleAlsoAsk"):
        features.append(SerpFeature.PEOPLE_ALSO_ASK)
    if response.get("places"):
        features.append(SerpFeature.LOCAL_PACK)
    if response.get("relatedSearches"):
        features.append(SerpFeature.RELATED_SEARCHES)
    if any(len(r.get("snippet") or "") > FEATURED_SNIPPET_MIN_CHARS for r in response.get("organic", [])):
        features.append(SerpFeature.FEATURED_SNIPPET)
    return features


def assess_difficulty(serp_features: List[SerpFeature], competitors: List[Competitor]) -> Difficulty:
    """
    Ordinal ranking difficulty from SERP features and who holds the top spots.

    Knowledge graph and local pack push organic results down (+2 each),
    featured snippets and People Also Ask take clicks (+1 each), and every
    large platform in the top 5 adds +1.
    """
    score = 0
    if SerpFeature.KNOWLEDGE_GRAPH in serp_features:
        score += 2
    if SerpFeature.LOCAL_PACK in serp_features:
        score += 2
    if SerpFeature.FEATURED_SNIPPET in serp_features:
        score += 1
    if SerpFeature.PEOPLE_ALSO_ASK in serp_features:
        score += 1

    for competitor in competitors[:5]:
        if any(large in competitor.domain for large in LARGE_DOMAINS):
            score += 1

    if score >= 5:
        return Difficulty.HARD
    if score >= 2:
        return Difficulty.MEDIUM
    return Difficulty.EASY


def process_market_check(
    response: Dict[str, Any],
    target_domain: str,
    query: str,
    location: Optional[str] = None,
) -> MarketCheckResult:
    """
    Turn a raw Serper response into a MarketCheckResult.

    The first organic hit on the target domain is its ranking; every other
    organic hit is a competitor, in SERP order.
    """
    normalized_target = normalize_domain(target_domain)
    target_hit: Optional[Dict[str, Any]] = None
    competitors: List[Competitor] = []

    for result in response.get("organic", []):
        link = result.get("link") or ""
        result_domain = normalize_domain(extract_domain(link))

        if result_domain == normalized_target and target_hit is None:
            target_hit = result
        else:
            competitors.append(Competitor(
                domain=result_domain,
                position=result["position"],
                url=link,
                title=result.get("title") or "",
            ))

    competitors.sort(key=lambda c: c.position)
    competitors = competitors[:MAX_COMPETITORS]
    serp_features = detect_serp_features(response)

    return MarketCheckResult(
        query=query,
        location=location,
        target_domain=target_domain,
        is_ranking=target_hit is not None,
        position=target_hit["position"] if target_hit else None,
        ranking_url=target_hit.get("link") if target_hit else None,
        top_competitors=competitors,
        serp_features=serp_features,
        difficulty=assess_difficulty(serp_features, competitors),
    )


class MarketChecker:
    """
    Ranking-verification provider backed by Serper.dev.

    Usage:
        >>> checker = MarketChecker(api_key="...")
        >>> if checker.is_configured:
        ...     result = await checker.verify_ranking("example.com", "plumber austin")
        ...     print(result.position)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        default_gl: Optional[str] = None,
        num_results: Optional[int] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_key: Serper API key (None means the provider is unconfigured)
            api_url: Search endpoint
            default_gl: Country code for localized results
            num_results: Organic results to request
            timeout: Request timeout in seconds
            http_client: Shared client (tests inject one with a mock transport)
        """
        settings = get_settings()
        self.api_key = api_key
        self.api_url = api_url or settings.serper_api_url
        self.default_gl = default_gl or settings.serper_default_gl
        self.num_results = num_results or settings.serper_num_results
        self.timeout = timeout or settings.serper_timeout_seconds
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str, location: Optional[str] = None) -> Dict[str, Any]:
        """
        Execute a search against the Serper API.

        Raises:
            UpstreamEvidenceError: When unconfigured, on transport errors or non-2xx responses
        """
        if not self.is_configured:
            raise UpstreamEvidenceError("market_check", "SERPER_API_KEY is not set")

        payload: Dict[str, Any] = {"q": query, "gl": self.default_gl, "num": self.num_results}
        if location:
            payload["location"] = location
        headers = {"X-API-KEY": self.api_key, "Content-Type": "application/json"}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.api_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamEvidenceError("market_check", f"Serper request failed: {e}") from e

        if response.status_code >= 400:
            raise UpstreamEvidenceError(
                "market_check",
                f"Serper API error ({response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamEvidenceError("market_check", "Serper returned invalid JSON") from e

    async def verify_ranking(
        self,
        domain: str,
        query: str,
        location: Optional[str] = None,
    ) -> MarketCheckResult:
        """
        Verify whether a domain ranks for a query right now.

        Raises:
            UpstreamEvidenceError: If the search fails or the payload is malformed
        """
        raw = await self.search(query, location=location)

        try:
            result = process_market_check(raw, domain, query, location)
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamEvidenceError("market_check", f"Unexpected Serper payload: {e}") from e

        logger.bind(difficulty=result.difficulty, features=result.serp_features).debug(
            f"Market check for {domain} on '{query}': "
            f"{'#' + str(result.position) if result.is_ranking else 'not ranking'}"
        )
        return result
