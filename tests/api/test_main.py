"""
Tests for application wiring and lifecycle.
"""
import json
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

from ticket_forensics.api.main import app, build_services, connect_database
from ticket_forensics.config import Settings
from ticket_forensics.core.chat_service import ChatService
from ticket_forensics.core.ticket_analyzer import TicketAnalyzer
from ticket_forensics.repositories import db_manager
from ticket_forensics.utils.rate_limiter import InMemoryCounterStore, MongoCounterStore


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestBuildServices:
    """Tests for component wiring from settings."""

    def test_defaults_without_database(self):
        services = build_services(make_settings())

        assert isinstance(services.ticket_analyzer, TicketAnalyzer)
        assert isinstance(services.chat_service, ChatService)
        assert services.audit_logger.enabled is False
        assert isinstance(services.ticket_analyzer.rate_limiter.store, InMemoryCounterStore)

    def test_analyzer_and_chat_share_limiter(self):
        services = build_services(make_settings(rate_limit_max_requests=7))

        assert services.ticket_analyzer.rate_limiter is services.chat_service.rate_limiter
        assert services.ticket_analyzer.rate_limiter.max_requests == 7

    def test_database_enables_audit_and_shared_counters(self):
        database = MagicMock()

        services = build_services(make_settings(rate_limit_backend="mongodb"), database)

        assert services.audit_logger.enabled is True
        assert services.audit_logger.analysis_repository.collection_name == "ticket_analyses"
        assert services.audit_logger.interaction_repository.collection_name == "ai_interaction_logs"
        assert isinstance(services.ticket_analyzer.rate_limiter.store, MongoCounterStore)

    def test_mongodb_backend_without_database_falls_back(self):
        services = build_services(make_settings(rate_limit_backend="mongodb"))

        assert isinstance(services.ticket_analyzer.rate_limiter.store, InMemoryCounterStore)

    def test_audit_can_be_disabled(self):
        services = build_services(make_settings(enable_audit_log=False), MagicMock())

        assert services.audit_logger.enabled is False

    def test_policy_and_models_from_settings(self):
        services = build_services(make_settings(
            optimization_lockout_months=12,
            forensics_model="google-gla:gemini-2.5-pro",
            serper_api_key="key",
        ))

        analyzer = services.ticket_analyzer
        assert analyzer.policy.optimization_lockout_months == 12
        assert analyzer.model_invoker.model_name == "gemini-2.5-pro"
        assert analyzer.evidence_gatherer.market_checker.is_configured is True

    def test_custom_algo_calendar(self, tmp_path):
        path = tmp_path / "updates.json"
        path.write_text(json.dumps([
            {"date": "2025-01-02", "name": "Local Shake-up", "type": "LOCAL", "impactLevel": "MEDIUM"},
        ]))

        services = build_services(make_settings(algo_calendar_path=str(path)))

        updates = services.ticket_analyzer.evidence_gatherer.algo_calendar.updates
        assert [update.name for update in updates] == ["Local Shake-up"]


class TestConnectDatabase:
    """Tests for the degrade-to-no-persistence startup path."""

    async def test_not_needed(self):
        with patch.object(db_manager, "connect", AsyncMock()) as connect:
            database = await connect_database(make_settings(enable_audit_log=False))

        assert database is None
        connect.assert_not_called()

    async def test_failure_degrades(self):
        with patch.object(db_manager, "connect", AsyncMock(side_effect=Exception("no server"))), \
                patch.object(db_manager, "disconnect", AsyncMock()) as disconnect:
            database = await connect_database(make_settings())

        assert database is None
        disconnect.assert_awaited_once()

    async def test_success_returns_database(self):
        database = MagicMock()
        with patch.object(db_manager, "connect", AsyncMock()), \
                patch.object(db_manager, "create_indexes", AsyncMock()) as create_indexes, \
                patch.object(db_manager, "_database", database):
            result = await connect_database(make_settings())

        assert result is database
        create_indexes.assert_awaited_once()


class TestLifespan:

    def test_startup_populates_state(self):
        with patch("ticket_forensics.api.main.connect_database", AsyncMock(return_value=None)):
            with TestClient(app) as client:
                assert isinstance(app.state.ticket_analyzer, TicketAnalyzer)
                assert isinstance(app.state.chat_service, ChatService)
                assert client.get("/ready").status_code == 200

        del app.state.ticket_analyzer
        del app.state.chat_service
        del app.state.audit_logger
