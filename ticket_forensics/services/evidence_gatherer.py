"""
Evidence Gatherer

Runs the independent evidence probes for one ticket. Each probe sits inside
its own failure boundary: a failing or unconfigured probe leaves its field of
ForensicEvidence empty and adds a warning, and never blocks the other probe.
"""

import asyncio
import datetime as dt
import time
from typing import List, Optional, Tuple

from loguru import logger

from ticket_forensics.core.errors import UpstreamEvidenceError
from ticket_forensics.models.evidence import AlgoOverlayResult, ForensicEvidence, MarketCheckResult
from ticket_forensics.models.request import AnalysisRequest
from ticket_forensics.services.algo_calendar import AlgoCalendar
from ticket_forensics.services.market_check import MarketChecker
from ticket_forensics.utils.observability import log_pipeline_step

SERPER_NOT_CONFIGURED_WARNING = "SERPER_API_KEY not configured - live SERP check unavailable"
NO_TARGET_QUERY_WARNING = "No targetQuery provided - live SERP check skipped"


class EvidenceGatherer:
    """
    Bulkhead around the market check and the algorithm overlay.

    Usage:
        >>> gatherer = EvidenceGatherer(MarketChecker(api_key=key), AlgoCalendar())
        >>> evidence, warnings = await gatherer.gather(request)
    """

    def __init__(
        self,
        market_checker: MarketChecker,
        algo_calendar: AlgoCalendar,
        lookback_days: int = 30,
    ):
        self.market_checker = market_checker
        self.algo_calendar = algo_calendar
        self.lookback_days = lookback_days

    async def gather(
        self,
        request: AnalysisRequest,
        now: Optional[dt.datetime] = None,
    ) -> Tuple[ForensicEvidence, List[str]]:
        """
        Run both probes concurrently.

        Args:
            request: Validated analysis request
            now: Reference time for the overlay window (defaults to current UTC time)

        Returns:
            (evidence, warnings). Warnings list the market check first, then the overlay.
        """
        now = now or dt.datetime.now(dt.UTC)
        start_time = time.time()

        (market_check, market_warnings), (algo_overlay, algo_warnings) = await asyncio.gather(
            self._run_market_check(request),
            self._run_algo_overlay(now.date()),
        )

        evidence = ForensicEvidence(market_check=market_check, algo_overlay=algo_overlay)
        warnings = market_warnings + algo_warnings

        log_pipeline_step(
            component="evidence_gatherer",
            target_domain=request.target_domain,
            action="gathered",
            duration_ms=(time.time() - start_time) * 1000,
            market_check=market_check is not None,
            algo_updates=len(algo_overlay.updates_in_range) if algo_overlay else None,
            warnings=len(warnings),
        )
        return evidence, warnings

    async def _run_market_check(
        self, request: AnalysisRequest
    ) -> Tuple[Optional[MarketCheckResult], List[str]]:
        warnings: List[str] = []

        # Skipped, not attempted: each missing precondition gets its own warning
        if not self.market_checker.is_configured:
            warnings.append(SERPER_NOT_CONFIGURED_WARNING)
        if not request.target_query:
            warnings.append(NO_TARGET_QUERY_WARNING)
        if warnings:
            return None, warnings

        try:
            result = await self.market_checker.verify_ranking(
                request.target_domain,
                request.target_query,
                location=request.location,
            )
            return result, warnings
        except UpstreamEvidenceError as e:
            logger.warning(f"Market check failed for {request.target_domain}: {e}")
            return None, [f"Market check failed: {e}"]
        except Exception as e:
            logger.exception(f"Unexpected market check error for {request.target_domain}")
            return None, [f"Market check failed: {e}"]

    async def _run_algo_overlay(self, today: dt.date) -> Tuple[Optional[AlgoOverlayResult], List[str]]:
        window_start = today - dt.timedelta(days=self.lookback_days)
        try:
            updates = self.algo_calendar.get_updates_in_range(window_start, today)
        except Exception as e:
            logger.warning(f"Algo overlay failed: {e}")
            return None, [f"Algo overlay failed: {e}"]

        return AlgoOverlayResult(
            window_start=window_start,
            window_end=today,
            updates_in_range=updates,
        ), []
