"""
Handbook Rules

Deterministic business rules from the SEO Handbook, evaluated in code so they
hold regardless of what the model says.

Nine-Month Rule:
- A page whose content was substantively re-optimized within the lockout
  window must not get another content refresh.
- A newly created page is also locked while it settles in the index.

Mapping Rule:
- A generic page ranking for a geo-modified query should be unmapped from the
  geo-grid and replaced with a dedicated location page.
"""

import calendar
import datetime as dt
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from ticket_forensics.models.request import PageMetadata, PageType
from ticket_forensics.models.verdict import NineMonthCheckResult, StrategyType


@dataclass(frozen=True)
class NineMonthPolicy:
    """
    Lockout windows for the Nine-Month Rule.

    Attributes:
        optimization_lockout_months: Months a lastOptimizationDate keeps the page locked
        new_page_lockout_months: Months a createdDate keeps the page locked
    """
    optimization_lockout_months: int = 9
    new_page_lockout_months: int = 6

    @classmethod
    def from_settings(cls, settings) -> "NineMonthPolicy":
        return cls(
            optimization_lockout_months=settings.optimization_lockout_months,
            new_page_lockout_months=settings.new_page_lockout_months,
        )


def add_months(day: dt.date, months: int) -> dt.date:
    """Calendar month arithmetic, clamping to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last_day))


def check_nine_month_rule(
    page_metadata: Optional[PageMetadata],
    today: dt.date,
    policy: NineMonthPolicy = NineMonthPolicy(),
) -> NineMonthCheckResult:
    """
    Evaluate the content-refresh lock for a page.

    Args:
        page_metadata: Page under discussion (may be absent)
        today: Evaluation date
        policy: Lockout windows

    Returns:
        NineMonthCheckResult; unlocks_on is set only when the page is locked
    """
    if page_metadata is None:
        return NineMonthCheckResult(
            is_locked=False,
            reason="Page metadata not provided - cannot evaluate the 9-month rule",
        )

    optimized = page_metadata.last_optimization_date
    created = page_metadata.created_date

    if optimized is None and created is None:
        return NineMonthCheckResult(
            is_locked=False,
            reason="No optimization or creation dates in page metadata - page is eligible",
        )

    locks = []

    if optimized is not None:
        unlocks_on = add_months(optimized, policy.optimization_lockout_months)
        if unlocks_on > today:
            locks.append((
                unlocks_on,
                f"Page was optimized on {optimized.isoformat()}, within the last "
                f"{policy.optimization_lockout_months} months",
            ))

    if created is not None:
        unlocks_on = add_months(created, policy.new_page_lockout_months)
        if unlocks_on > today:
            locks.append((
                unlocks_on,
                f"Page was created on {created.isoformat()}, within the last "
                f"{policy.new_page_lockout_months} months",
            ))

    if not locks:
        return NineMonthCheckResult(
            is_locked=False,
            reason="Last substantive change is outside the lockout window - page is eligible",
        )

    # Later expiry wins
    unlocks_on, reason = max(locks, key=lambda lock: lock[0])
    return NineMonthCheckResult(
        is_locked=True,
        reason=f"{reason}. Content refresh blocked until {unlocks_on.isoformat()}",
        unlocks_on=unlocks_on,
    )


def get_queue_timeline(today: dt.date, lead_months: int = 3) -> dt.date:
    """Earliest date newly requested work can be scheduled."""
    return add_months(today, lead_months)


US_STATES = {
    "alabama": "al", "alaska": "ak", "arizona": "az", "arkansas": "ar",
    "california": "ca", "colorado": "co", "connecticut": "ct", "delaware": "de",
    "florida": "fl", "georgia": "ga", "hawaii": "hi", "idaho": "id",
    "illinois": "il", "indiana": "in", "iowa": "ia", "kansas": "ks",
    "kentucky": "ky", "louisiana": "la", "maine": "me", "maryland": "md",
    "massachusetts": "ma", "michigan": "mi", "minnesota": "mn", "mississippi": "ms",
    "missouri": "mo", "montana": "mt", "nebraska": "ne", "nevada": "nv",
    "new hampshire": "nh", "new jersey": "nj", "new mexico": "nm", "new york": "ny",
    "north carolina": "nc", "north dakota": "nd", "ohio": "oh", "oklahoma": "ok",
    "oregon": "or", "pennsylvania": "pa", "rhode island": "ri", "south carolina": "sc",
    "south dakota": "sd", "tennessee": "tn", "texas": "tx", "utah": "ut",
    "vermont": "vt", "virginia": "va", "washington": "wa", "west virginia": "wv",
    "wisconsin": "wi", "wyoming": "wy",
}

_STATE_ALTERNATION = "|".join(
    sorted((re.escape(name) for name in [*US_STATES, *US_STATES.values()]), key=len, reverse=True)
)
_GEO_PATTERNS = [
    re.compile(r"\bnear me\b"),
    re.compile(r"\bin [a-z][a-z .'-]+$"),
    re.compile(rf",\s*(?:{_STATE_ALTERNATION})\b"),
    re.compile(r"\b\d{5}(?:-\d{4})?\b"),
]


def is_geo_query(query: Optional[str]) -> bool:
    """
    True when a query carries a location modifier.

    Examples:
        >>> is_geo_query("plumber near me")
        True
        >>> is_geo_query("emergency plumber in austin")
        True
        >>> is_geo_query("plumber austin, tx")
        True
        >>> is_geo_query("how to fix a leaky faucet")
        False
    """
    if not query:
        return False
    normalized = query.strip().lower()
    return any(pattern.search(normalized) for pattern in _GEO_PATTERNS)


_GEO_PATH_SEGMENTS = ("locations", "location", "areas-we-serve", "service-areas", "service-area", "areas")
_SERVICE_PATH_SEGMENTS = ("services", "service")
# Only full state names: two-letter codes collide with ordinary slug words
_STATE_SLUG = re.compile(
    r"(?:^|-)(?:" + "|".join(re.escape(name.replace(" ", "-")) for name in US_STATES) + r")$"
)


def detect_page_type(url: Optional[str]) -> PageType:
    """Classify a page from its URL shape."""
    if not url:
        return PageType.GENERIC

    path = urlparse(url if "://" in url else f"https://{url}").path.strip("/").lower()
    if not path:
        return PageType.HOMEPAGE

    segments = path.split("/")
    if any(segment in _GEO_PATH_SEGMENTS for segment in segments):
        return PageType.GEO
    if _STATE_SLUG.search(segments[-1]):
        return PageType.GEO
    if segments[0] in _SERVICE_PATH_SEGMENTS:
        return PageType.SERVICE
    return PageType.GENERIC


@dataclass
class MappingCheckResult:
    """Outcome of the Mapping Rule for one page/query pair."""
    violates: bool
    page_type: PageType
    is_geo_query: bool
    reason: str
    recommended_strategy: Optional[StrategyType] = None


def check_mapping_rule(page_metadata: Optional[PageMetadata], query: Optional[str]) -> MappingCheckResult:
    """
    A generic page must not be the ranking target for a geo query.

    The declared pageType wins over URL detection.
    """
    page_type = PageType.GENERIC
    if page_metadata is not None:
        page_type = page_metadata.page_type or detect_page_type(page_metadata.url)

    geo = is_geo_query(query)

    if page_type == PageType.GENERIC and geo:
        return MappingCheckResult(
            violates=True,
            page_type=page_type,
            is_geo_query=geo,
            reason="Generic page is mapped to a geo-modified query; unmap it and create a dedicated location page",
            recommended_strategy=StrategyType.UNMAP_AND_CREATE,
        )

    return MappingCheckResult(
        violates=False,
        page_type=page_type,
        is_geo_query=geo,
        reason="Page type is appropriate for the query",
    )
