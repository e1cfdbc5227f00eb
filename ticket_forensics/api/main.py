"""
FastAPI Application

Main entry point for the Ticket Forensics API.
Handles application lifecycle, service wiring and router mounting.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase

from ticket_forensics.agents.model_invoker import PydanticAIInvoker
from ticket_forensics.api.routes import analysis_router, chat_router, health_router
from ticket_forensics.config import Settings, settings
from ticket_forensics.core.chat_service import ChatService
from ticket_forensics.core.handbook_rules import NineMonthPolicy
from ticket_forensics.core.ticket_analyzer import TicketAnalyzer
from ticket_forensics.repositories import (
    InteractionLogRepository,
    TicketAnalysisRepository,
    db_manager,
)
from ticket_forensics.services.algo_calendar import AlgoCalendar
from ticket_forensics.services.audit_logger import AuditLogger
from ticket_forensics.services.evidence_gatherer import EvidenceGatherer
from ticket_forensics.services.market_check import MarketChecker
from ticket_forensics.utils.observability import configure_logging
from ticket_forensics.utils.rate_limiter import (
    CounterStore,
    FixedWindowRateLimiter,
    InMemoryCounterStore,
    MongoCounterStore,
)


@dataclass
class Services:
    ticket_analyzer: TicketAnalyzer
    chat_service: ChatService
    audit_logger: AuditLogger


def build_services(config: Settings, database: Optional[AsyncIOMotorDatabase] = None) -> Services:
    """
    Wire every component from settings.

    Args:
        config: Application settings
        database: Connected MongoDB database, or None to run without persistence
    """
    if database is not None and config.enable_audit_log:
        audit_logger = AuditLogger(
            TicketAnalysisRepository(database),
            InteractionLogRepository(database),
        )
    else:
        audit_logger = AuditLogger.disabled()

    store: CounterStore
    if config.rate_limit_backend == "mongodb" and database is not None:
        store = MongoCounterStore(database.rate_limits)
    else:
        if config.rate_limit_backend == "mongodb":
            logger.warning("MongoDB rate limiting requested but no database; using in-memory counters")
        store = InMemoryCounterStore()

    rate_limiter = FixedWindowRateLimiter(
        store,
        max_requests=config.rate_limit_max_requests,
        window_seconds=config.rate_limit_window_seconds,
    )

    if config.algo_calendar_path:
        algo_calendar = AlgoCalendar.from_json_file(config.algo_calendar_path)
    else:
        algo_calendar = AlgoCalendar()

    evidence_gatherer = EvidenceGatherer(
        MarketChecker(api_key=config.serper_api_key),
        algo_calendar,
        lookback_days=config.algo_lookback_days,
    )

    ticket_analyzer = TicketAnalyzer(
        evidence_gatherer=evidence_gatherer,
        model_invoker=PydanticAIInvoker(config.forensics_model, component="forensics"),
        rate_limiter=rate_limiter,
        audit_logger=audit_logger,
        policy=NineMonthPolicy.from_settings(config),
        max_competitors=config.max_competitors_in_context,
        queue_lead_months=config.queue_lead_time_months,
    )

    chat_service = ChatService(
        model_invoker=PydanticAIInvoker(config.chat_model, component="chat"),
        rate_limiter=rate_limiter,
        audit_logger=audit_logger,
        history_window=config.history_window_size,
    )

    return Services(ticket_analyzer=ticket_analyzer, chat_service=chat_service, audit_logger=audit_logger)


async def connect_database(config: Settings) -> Optional[AsyncIOMotorDatabase]:
    """Connect to MongoDB when anything needs it. Failure degrades to no persistence."""
    if not config.enable_audit_log and config.rate_limit_backend != "mongodb":
        logger.info("MongoDB not required (audit log disabled, in-memory rate limiting)")
        return None

    try:
        await db_manager.connect()
        await db_manager.create_indexes()
        return db_manager.database
    except Exception as e:
        logger.error(f"MongoDB unavailable, continuing without persistence: {e}")
        await db_manager.disconnect()
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Configure logging
    - Connect to MongoDB (audit trail, shared counters) if enabled
    - Build the analyzer and chat service into app.state

    Shutdown:
    - Wait for in-flight audit writes
    - Disconnect from MongoDB
    """
    configure_logging()
    logger.info("Starting Ticket Forensics API server...")

    database = await connect_database(settings)
    services = build_services(settings, database)

    # Store in app state for access in routes
    app.state.ticket_analyzer = services.ticket_analyzer
    app.state.chat_service = services.chat_service
    app.state.audit_logger = services.audit_logger

    if not settings.serper_configured:
        logger.warning("SERPER_API_KEY not configured - live SERP checks disabled")

    logger.info("API server ready")

    yield

    logger.info("Shutting down API server...")
    await services.audit_logger.drain()
    await db_manager.disconnect()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Ticket Forensics API",
    description="Forensic analysis of SEO support tickets with Handbook-constrained AI verdicts",
    version="0.1.0",
    lifespan=lifespan
)

# Mount routers
app.include_router(health_router)
app.include_router(analysis_router)
app.include_router(chat_router)
