"""
Database Connection Tests
Tests for MongoDB client lifecycle and connection management.
Motor clients connect lazily, so none of these need a running server.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from motor.motor_asyncio import AsyncIOMotorDatabase

from ticket_forensics.repositories.connection import DatabaseManager, db_manager
from ticket_forensics.config import settings


pytestmark = pytest.mark.asyncio


class TestDatabaseManager:
    """Test suite for DatabaseManager singleton."""

    async def test_singleton_pattern(self):
        """DatabaseManager should return same instance."""
        manager1 = DatabaseManager()
        manager2 = DatabaseManager()

        assert manager1 is manager2
        assert manager1 is db_manager

    async def test_connect_initializes_database(self):
        """Connect should initialize the Motor client and database."""
        manager = DatabaseManager()
        await manager.disconnect()

        await manager.connect()

        assert manager.is_connected is True
        assert isinstance(manager.database, AsyncIOMotorDatabase)
        assert manager.database.name == settings.mongodb_database

    async def test_disconnect_cleans_up(self):
        """Disconnect should close client and clear references."""
        manager = DatabaseManager()

        await manager.connect()
        await manager.disconnect()

        assert manager._client is None
        assert manager.is_connected is False

    async def test_disconnect_is_idempotent(self):
        """Multiple disconnect calls should not raise errors."""
        manager = DatabaseManager()

        await manager.connect()
        await manager.disconnect()
        await manager.disconnect()

        assert manager._client is None

    async def test_database_property_raises_when_not_connected(self):
        """Accessing database before connect should raise RuntimeError."""
        manager = DatabaseManager()
        await manager.disconnect()

        with pytest.raises(RuntimeError, match="Database not connected"):
            _ = manager.database

    async def test_ping_without_client(self):
        manager = DatabaseManager()
        await manager.disconnect()

        assert await manager.ping() is False

    async def test_ping_failure_reports_false(self):
        manager = DatabaseManager()
        client = MagicMock()
        client.admin.command = AsyncMock(side_effect=Exception("server selection timeout"))
        manager._client = client

        assert await manager.ping() is False

    async def test_create_indexes_creates_all_indexes(self):
        """create_indexes should index the audit and rate-limit collections."""
        manager = DatabaseManager()
        database = MagicMock()
        for name in ("ticket_analyses", "ai_interaction_logs", "rate_limits"):
            getattr(database, name).create_index = AsyncMock()
        manager._database = database

        await manager.create_indexes()

        assert database.ticket_analyses.create_index.await_count == 2
        assert database.ai_interaction_logs.create_index.await_count == 2
        database.rate_limits.create_index.assert_awaited_once_with(
            "reset_at", name="idx_rate_limit_ttl", expireAfterSeconds=0
        )


@pytest.fixture(scope="function", autouse=True)
async def cleanup_db_manager():
    """Ensure db_manager is in clean state after each test."""
    yield
    if db_manager._client is not None:
        db_manager._client.close()
    db_manager._client = None
    db_manager._database = None
