"""
Health and Readiness Endpoints

Kubernetes-compatible health probes for load balancers and orchestration.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from ticket_forensics.config import settings
from ticket_forensics.repositories import db_manager

router = APIRouter(tags=["Health"])

# API version - single source of truth
API_VERSION = "0.1.0"


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if service is running.
    Used by load balancers and monitoring systems.
    """
    return {
        "status": "healthy",
        "service": "ticket-forensics",
        "version": API_VERSION
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe - checks if service can handle requests.

    Verifies:
    - Ticket analyzer and chat service are initialized
    - MongoDB answers, when the audit trail or shared rate limiting needs it

    Returns 200 if ready, 503 if not ready.
    """
    if getattr(request.app.state, "ticket_analyzer", None) is None or getattr(
        request.app.state, "chat_service", None
    ) is None:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "reason": "Services not initialized"
            }
        )

    mongodb_status = "disabled"
    if db_manager.is_connected:
        if not await db_manager.ping():
            logger.error("Readiness check failed: MongoDB unreachable")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "not_ready",
                    "reason": "MongoDB unreachable"
                }
            )
        mongodb_status = "connected"

    return {
        "status": "ready",
        "mongodb": mongodb_status,
        "serper": "configured" if settings.serper_configured else "not_configured"
    }


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Ticket Forensics API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/health",
            "ready": "/ready",
            "analyze_ticket": "/api/ai/analyze-ticket (POST)",
            "chat": "/api/ai/chat (POST)"
        }
    }
