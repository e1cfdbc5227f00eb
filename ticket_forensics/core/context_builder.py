"""
Constraint Context Builder

Merges the gathered evidence and the Handbook rule outcomes into the compact
blocks the forensics prompt is grounded on.
"""

import datetime as dt
import json
from typing import Any, Dict, Optional

from ticket_forensics.core.handbook_rules import check_mapping_rule, get_queue_timeline
from ticket_forensics.models.evidence import ForensicEvidence
from ticket_forensics.models.request import PageMetadata
from ticket_forensics.models.verdict import NineMonthCheckResult


def build_forensic_context(
    evidence: ForensicEvidence,
    nine_month: NineMonthCheckResult,
    max_competitors: int = 5,
) -> Dict[str, Any]:
    """
    Trimmed, JSON-ready summary of the verified facts.

    Competitors are capped at max_competitors and reduced to domain and
    position to bound prompt size.
    """
    market_check = None
    if evidence.market_check is not None:
        result = evidence.market_check
        market_check = {
            "isRanking": result.is_ranking,
            "position": result.position,
            "topCompetitors": [
                {"domain": competitor.domain, "position": competitor.position}
                for competitor in result.top_competitors[:max_competitors]
            ],
            "serpFeatures": [feature.value for feature in result.serp_features],
            "difficulty": result.difficulty.value,
        }

    recent_updates = []
    if evidence.algo_overlay is not None:
        recent_updates = [
            update.to_wire() for update in evidence.algo_overlay.updates_in_range
        ]

    return {
        "marketCheck": market_check,
        "recentAlgoUpdates": recent_updates,
        "nineMonthRule": nine_month.to_wire(),
    }


def dump_forensic_context(
    evidence: ForensicEvidence,
    nine_month: NineMonthCheckResult,
    max_competitors: int = 5,
) -> str:
    return json.dumps(build_forensic_context(evidence, nine_month, max_competitors), indent=2)


def dump_page_context(page_metadata: Optional[PageMetadata]) -> Optional[str]:
    if page_metadata is None:
        return None
    return json.dumps(page_metadata.to_wire(), indent=2)


def build_constraint_context(
    page_metadata: Optional[PageMetadata],
    target_query: Optional[str],
    nine_month: NineMonthCheckResult,
    today: dt.date,
    queue_lead_months: int = 3,
) -> str:
    """
    Handbook status block appended to the system prompt.

    States the content lock and when new work could be queued, and the
    Mapping Rule outcome when a query is known.
    """
    lines = ["## Handbook Status"]

    if nine_month.is_locked:
        lines.append(f"- 9-MONTH LOCK ACTIVE: {nine_month.reason}")
        lines.append("- Do NOT recommend CONTENT_REFRESH for this page.")
    else:
        lines.append(f"- 9-month rule: not locked ({nine_month.reason})")

    queue_date = get_queue_timeline(today, queue_lead_months)
    lines.append(f"- New work requested today can be queued for {queue_date.isoformat()} at the earliest.")

    if target_query:
        mapping = check_mapping_rule(page_metadata, target_query)
        if mapping.violates:
            lines.append(
                f"- MAPPING RULE: {mapping.reason}. Recommended strategy: {mapping.recommended_strategy.value}"
            )
        else:
            lines.append(f"- Mapping rule: {mapping.reason} (page type {mapping.page_type.value})")

    return "\n".join(lines)
