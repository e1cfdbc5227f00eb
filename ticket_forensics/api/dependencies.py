"""
FastAPI Dependencies

Caller identity and access to the services built at startup.
"""

from fastapi import Request, HTTPException, status, Header
from typing import Optional
from loguru import logger

from ticket_forensics.config import settings
from ticket_forensics.core.chat_service import ChatService
from ticket_forensics.core.ticket_analyzer import TicketAnalyzer
from ticket_forensics.models.user import AccountManagerStyle, CurrentUser


def resolve_account_manager_style(raw: Optional[str]) -> AccountManagerStyle:
    try:
        return AccountManagerStyle((raw or "").strip().upper())
    except ValueError:
        if raw:
            logger.bind(style=raw).debug("Unknown account manager style, using COLLABORATIVE")
        return AccountManagerStyle.COLLABORATIVE


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_style: Optional[str] = Header(None),
) -> CurrentUser:
    """
    Identity asserted by the upstream auth gateway.

    The gateway authenticates the session and forwards X-User-Id,
    X-User-Email and the profile's X-User-Style (SUCCINCT, COLLABORATIVE or
    EXECUTIVE; anything else means COLLABORATIVE). Without an id the
    request is attributed to "anonymous", unless REQUIRE_AUTHENTICATION is
    enabled.

    Raises:
        HTTPException: 401 if authentication is required and no id was sent
    """
    user_id = (x_user_id or "").strip()
    style = resolve_account_manager_style(x_user_style)

    if not user_id:
        if settings.require_authentication:
            logger.warning("Rejected request without X-User-Id header")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required"
            )
        return CurrentUser(email=x_user_email, account_manager_style=style)

    return CurrentUser(id=user_id, email=x_user_email, account_manager_style=style)


def get_ticket_analyzer(request: Request) -> TicketAnalyzer:
    return request.app.state.ticket_analyzer


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service
