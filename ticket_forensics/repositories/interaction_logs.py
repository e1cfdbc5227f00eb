"""
Interaction Log Repository
Audit trail of streamed chat interactions.
"""
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.audit import InteractionLogRecord


class InteractionLogRepository(BaseRepository[InteractionLogRecord]):
    """Repository for the ai_interaction_logs collection."""

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "ai_interaction_logs", InteractionLogRecord)

