"""
Generic Repository Base Class
Async insert operations on MongoDB collections.
"""
from typing import Generic, TypeVar, Type
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
import datetime as dt

from ..core.errors import PersistenceError
from ..models.base import MongoBaseModel
from ..utils.observability import logger

# Generic type for domain models
T = TypeVar("T", bound=MongoBaseModel)


class BaseRepository(Generic[T]):
    """
    Generic async repository for MongoDB collections.
    Provides type-safe operations for audit records.

    Usage:
        class TicketAnalysisRepository(BaseRepository[TicketAnalysisRecord]):
            def __init__(self, database: AsyncIOMotorDatabase):
                super().__init__(database, "ticket_analyses", TicketAnalysisRecord)
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        collection_name: str,
        model_class: Type[T]
    ):
        """
        Initialize repository with database connection and model type.

        Args:
            database: Motor database instance
            collection_name: MongoDB collection name
            model_class: Pydantic model class for type safety
        """
        self.database = database
        self.collection: AsyncIOMotorCollection = database[collection_name]
        self.model_class = model_class
        self.collection_name = collection_name

    async def create(self, document: T) -> T:
        """
        Insert a new document into the collection.

        Args:
            document: Domain model instance to persist

        Returns:
            The created document with `_id` populated

        Raises:
            PersistenceError: If the write fails
        """
        now = dt.datetime.now(dt.UTC)
        document.created_at = now
        document.updated_at = now

        doc_dict = document.model_dump(
            by_alias=True,
            exclude={"id"},
            exclude_none=True)

        try:
            result = await self.collection.insert_one(doc_dict)
        except PyMongoError as e:
            raise PersistenceError(f"Insert into {self.collection_name} failed: {e}") from e

        logger.bind(document_id=str(result.inserted_id)).debug(
            f"Created document in {self.collection_name}"
        )

        document.id = str(result.inserted_id)
        return document

