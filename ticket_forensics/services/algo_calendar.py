"""
Algorithm Update Calendar

Known Google search-algorithm updates, used to correlate a ranking change
with an update rollout. The built-in dataset can be replaced with a JSON file
(a list of objects shaped like AlgoUpdate) via ALGO_CALENDAR_PATH.
"""
import datetime as dt
import json
from pathlib import Path
from typing import Iterable, List, Optional
from loguru import logger
from pydantic import TypeAdapter
from ticket_forensics.models.evidence import AlgoUpdate, AlgoUpdateType, ImpactLevel


def _update(date: str, name: str, kind: AlgoUpdateType, impact: ImpactLevel,
            description: str, rollout_days: int) -> AlgoUpdate:
    return AlgoUpdate(
        date=dt.date.fromisoformat(date),
        name=name,
        type=kind,
        impact_level=impact,
        description=description,
        rollout_days=rollout_days,
    )


# Source: Google Search Status Dashboard, SEO industry tracking
GOOGLE_UPDATES: List[AlgoUpdate] = [
    _update("2025-08-26", "August 2025 Spam Update", AlgoUpdateType.SPAM, ImpactLevel.MEDIUM,
            "Spam update enforcing spam policies across languages", 27),
    _update("2025-06-30", "June 2025 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Broad core update", 17),
    _update("2025-03-13", "March 2025 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Core algorithm update improving search quality", 14),
    _update("2024-12-19", "December 2024 Spam Update", AlgoUpdateType.SPAM, ImpactLevel.MEDIUM,
            "Spam update targeting policy violations", 7),
    _update("2024-12-12", "December 2024 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Core update shortly after the November rollout", 6),
    _update("2024-11-11", "November 2024 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Major core update affecting content quality signals", 25),
    _update("2024-08-15", "August 2024 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Core update with focus on helpful content", 18),
    _update("2024-06-20", "June 2024 Spam Update", AlgoUpdateType.SPAM, ImpactLevel.MEDIUM,
            "Spam update targeting link manipulation", 7),
    _update("2024-03-05", "March 2024 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Major core update with helpful content integration", 45),
    _update("2024-03-05", "March 2024 Spam Update", AlgoUpdateType.SPAM, ImpactLevel.HIGH,
            "Aggressive spam update targeting scaled content abuse", 14),
    _update("2023-11-08", "November 2023 Reviews Update", AlgoUpdateType.REVIEWS, ImpactLevel.MEDIUM,
            "Final standalone reviews update before core integration", 14),
    _update("2023-11-02", "November 2023 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Core update improving content quality assessment", 25),
    _update("2023-10-05", "October 2023 Spam Update", AlgoUpdateType.SPAM, ImpactLevel.MEDIUM,
            "Spam update targeting cloaking and hacked content", 14),
    _update("2023-10-04", "October 2023 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Core update with ranking system improvements", 14),
    _update("2023-09-14", "September 2023 Helpful Content Update", AlgoUpdateType.HELPFUL_CONTENT,
            ImpactLevel.HIGH, "Helpful content update improving classifier", 14),
    _update("2023-08-22", "August 2023 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Core update affecting content quality signals", 16),
    _update("2023-04-12", "April 2023 Reviews Update", AlgoUpdateType.REVIEWS, ImpactLevel.MEDIUM,
            "Reviews update for product and service reviews", 13),
    _update("2023-03-15", "March 2023 Core Update", AlgoUpdateType.CORE, ImpactLevel.HIGH,
            "Broad core algorithm update", 13),
    _update("2023-02-21", "February 2023 Product Reviews Update", AlgoUpdateType.REVIEWS,
            ImpactLevel.MEDIUM, "Product reviews update expanding to multiple languages", 14),
]


class AlgoCalendar:
    """
    Read-only view over a list of algorithm updates.

    Usage:
        >>> calendar = AlgoCalendar()
        >>> calendar.get_updates_in_range(dt.date(2024, 11, 1), dt.date(2024, 11, 30))
        [AlgoUpdate(name='November 2024 Core Update', ...)]
    """

    def __init__(self, updates: Optional[Iterable[AlgoUpdate]] = None):
        self.updates = sorted(
            GOOGLE_UPDATES if updates is None else updates,
            key=lambda update: update.date,
        )

    @classmethod
    def from_json_file(cls, path: str | Path) -> "AlgoCalendar":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        updates = TypeAdapter(List[AlgoUpdate]).validate_python(raw)
        logger.info(f"Loaded {len(updates)} algorithm updates from {path}")
        return cls(updates)

    def get_updates_in_range(self, start: dt.date, end: dt.date) -> List[AlgoUpdate]:
        """
        Updates whose rollout period intersects [start, end], oldest first.

        An update that started before the window but was still rolling out
        inside it is included.
        """
        if start > end:
            raise ValueError(f"Invalid window: {start} is after {end}")
        return [update for update in self.updates if update.overlaps(start, end)]
