"""
Strategist Chat Endpoint

POST /api/ai/chat - streams a plain-text reply. Pipeline warnings travel in
the X-AI-Warnings header because the body is already streaming.
"""
import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from pydantic import ValidationError

from ticket_forensics.api.dependencies import get_chat_service, get_current_user
from ticket_forensics.api.routes.analysis import (
    rate_limit_headers,
    rate_limited_response,
    read_json_body,
    validation_error_response,
)
from ticket_forensics.core.chat_service import ChatService
from ticket_forensics.core.errors import (
    AnalysisValidationError,
    ModelInvocationError,
    RateLimitExceededError,
)
from ticket_forensics.models.chat import ChatRequest
from ticket_forensics.models.request import describe_validation_errors
from ticket_forensics.models.user import CurrentUser

router = APIRouter(prefix="/api/ai", tags=["Chat"])


def validate_chat_request(body) -> ChatRequest:
    if not isinstance(body, dict):
        raise AnalysisValidationError(["Request body must be a JSON object"])
    try:
        return ChatRequest.model_validate(body)
    except ValidationError as e:
        raise AnalysisValidationError(describe_validation_errors(e)) from e


@router.post("/chat")
async def chat(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Stream a chat reply.

    Returns:
        text/plain chunked stream; 400 on invalid body, 429 on rate limit,
        500 if the model fails before the first token
    """
    try:
        body = await read_json_body(request)
        chat_request = validate_chat_request(body)
    except AnalysisValidationError as e:
        return validation_error_response(e)

    try:
        chat_stream = await chat_service.start(chat_request, user)
    except RateLimitExceededError as e:
        return rate_limited_response(e)
    except ModelInvocationError as e:
        logger.error(f"Chat model invocation failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process request", "details": str(e)},
        )

    headers = {
        "Cache-Control": "no-cache",
        **rate_limit_headers(chat_stream.rate_limit, chat_service.rate_limiter.max_requests),
    }
    if chat_stream.warnings:
        headers["X-AI-Warnings"] = json.dumps(chat_stream.warnings)

    return StreamingResponse(
        chat_stream.chunks,
        media_type="text/plain; charset=utf-8",
        headers=headers,
    )
