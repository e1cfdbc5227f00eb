"""
Repositories Layer
Audit-trail persistence for the forensics engine.
"""
from .connection import db_manager, DatabaseManager
from .base import BaseRepository
from .ticket_analyses import TicketAnalysisRepository
from .interaction_logs import InteractionLogRepository

__all__ = [
    "db_manager",
    "DatabaseManager",
    "BaseRepository",
    "TicketAnalysisRepository",
    "InteractionLogRepository",
]
