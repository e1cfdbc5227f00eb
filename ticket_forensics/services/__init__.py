"""
Services Layer
Evidence probes and the audit trail for the forensics engine.
"""
from .algo_calendar import AlgoCalendar
from .audit_logger import AuditLogger
from .evidence_gatherer import EvidenceGatherer
from .market_check import MarketChecker

__all__ = [
    "AlgoCalendar",
    "AuditLogger",
    "EvidenceGatherer",
    "MarketChecker",
]
