"""
API Routes

Modular route definitions for the Ticket Forensics API.
"""
from ticket_forensics.api.routes.health import router as health_router
from ticket_forensics.api.routes.analysis import router as analysis_router
from ticket_forensics.api.routes.chat import router as chat_router

__all__ = [
    "health_router",
    "analysis_router",
    "chat_router",
]
