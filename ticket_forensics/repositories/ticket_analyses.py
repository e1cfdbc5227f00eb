"""
Ticket Analysis Repository
Audit trail of every analyzed ticket.
"""
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.audit import TicketAnalysisRecord


class TicketAnalysisRepository(BaseRepository[TicketAnalysisRecord]):
    """Repository for the ticket_analyses collection."""

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "ticket_analyses", TicketAnalysisRecord)

