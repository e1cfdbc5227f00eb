"""
MongoDB Connection Management
Singleton Motor client with connection pooling and lifecycle management.
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from ..config import settings
from ..utils.observability import logger


class DatabaseManager:
    """
    Singleton MongoDB client manager with async Motor.
    Holds the audit trail collections and the shared rate-limit counters.
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[AsyncIOMotorClient] = None
    _database: Optional[AsyncIOMotorDatabase] = None

    def __new__(cls) -> "DatabaseManager":
        """Enforce singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def is_connected(self) -> bool:
        return self._database is not None

    async def connect(self) -> None:
        """
        Initialize MongoDB connection with configured pool settings.
        Idempotent - safe to call multiple times.
        """
        if self._client:
            try:
                await self._client.admin.command("ping")
                logger.debug("Reusing healthy MongoDB connection")
                return
            except Exception:
                logger.warning("MongoDB connection lost. Rebuilding client...")
                self._client = None
                self._database = None

        logger.bind(
            database=settings.mongodb_database,
            max_pool_size=settings.mongodb_max_pool_size,
            environment=settings.environment
        ).info("Connecting to MongoDB")
        self._client = AsyncIOMotorClient(
            settings.mongodb_uri,
            maxPoolSize=settings.mongodb_max_pool_size,
            minPoolSize=settings.mongodb_min_pool_size,
            serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
        )

        self._database = self._client[settings.mongodb_database]

    async def disconnect(self) -> None:
        """
        Close MongoDB connection and cleanup resources.
        Idempotent - safe to call multiple times.
        """
        if self._client is None:
            logger.debug("MongoDB client already disconnected")
            return

        logger.info("Closing MongoDB connection")
        self._client.close()
        self._client = None
        self._database = None

    async def ping(self) -> bool:
        """True when the server answers; used by the readiness probe."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance.
        Raises RuntimeError if not connected.
        """
        if self._database is None:
            raise RuntimeError(
                "Database not connected. Call await db_manager.connect() first."
            )
        return self._database

    async def create_indexes(self) -> None:
        """
        Create all required indexes.
        Should be called during application startup.
        """
        db = self.database

        logger.info("Creating MongoDB indexes")

        # Ticket analyses: audit lookups by user and by domain
        await db.ticket_analyses.create_index(
            [("user_id", 1), ("created_at", -1)],
            name="idx_analysis_user_created"
        )
        await db.ticket_analyses.create_index(
            [("target_domain", 1), ("created_at", -1)],
            name="idx_analysis_domain_created"
        )

        # Chat interaction logs
        await db.ai_interaction_logs.create_index(
            [("user_id", 1), ("created_at", -1)],
            name="idx_interaction_user_created"
        )
        await db.ai_interaction_logs.create_index(
            "client_id",
            name="idx_interaction_client",
            sparse=True
        )

        # Rate-limit windows expire on their own once reset_at has passed
        await db.rate_limits.create_index(
            "reset_at",
            name="idx_rate_limit_ttl",
            expireAfterSeconds=0
        )

        logger.info("MongoDB indexes created successfully")


# Singleton instance
db_manager = DatabaseManager()
