"""
Ticket Analysis Endpoint

POST /api/ai/analyze-ticket - the Forensics Console backend.
"""
import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from ticket_forensics.api.dependencies import get_current_user, get_ticket_analyzer
from ticket_forensics.core.errors import (
    AnalysisValidationError,
    ModelInvocationError,
    RateLimitExceededError,
)
from ticket_forensics.core.ticket_analyzer import TicketAnalyzer
from ticket_forensics.models.request import validate_analysis_request
from ticket_forensics.models.user import CurrentUser
from ticket_forensics.utils.rate_limiter import RateLimitResult

router = APIRouter(prefix="/api/ai", tags=["Forensics"])


def rate_limit_headers(result: RateLimitResult, limit: int) -> dict:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.retry_after),
    }


def rate_limited_response(error: RateLimitExceededError) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": f"Too many requests. Please try again in {error.retry_after} seconds.",
            "retryAfter": error.retry_after,
        },
        headers={
            "X-RateLimit-Limit": str(error.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(error.retry_after),
            "Retry-After": str(error.retry_after),
        },
    )


def validation_error_response(error: AnalysisValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": error.errors[0], "errors": error.errors},
    )


async def read_json_body(request: Request):
    """Decoded JSON body; malformed JSON becomes a validation error."""
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise AnalysisValidationError(["Request body must be valid JSON"]) from e


@router.post("/analyze-ticket")
async def analyze_ticket(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    analyzer: TicketAnalyzer = Depends(get_ticket_analyzer),
):
    """
    Analyze a support ticket.

    Flow:
    1. Validate the body (400 before any evidence or model work)
    2. Gather evidence and evaluate the Handbook rules
    3. Admission control (429 before the model is called)
    4. Model call, parse, validate, audit

    Returns:
        AnalysisResponse JSON with X-RateLimit-* headers
    """
    try:
        body = await read_json_body(request)
        analysis_request = validate_analysis_request(body)
    except AnalysisValidationError as e:
        logger.info(f"Rejected analyze-ticket request: {e}")
        return validation_error_response(e)

    logger.bind(
        user_id=user.id,
        target_domain=analysis_request.target_domain,
        persona=analysis_request.am_persona.value,
    ).info("Incoming ticket analysis")

    try:
        result = await analyzer.analyze(analysis_request, user)
    except RateLimitExceededError as e:
        return rate_limited_response(e)
    except ModelInvocationError as e:
        logger.error(f"Model invocation failed for {analysis_request.target_domain}: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to analyze ticket", "details": str(e)},
        )
    except Exception as e:
        logger.exception(f"Analyze ticket error: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to analyze ticket", "details": str(e)},
        )

    return JSONResponse(
        status_code=200,
        content=result.response.to_wire(),
        headers=rate_limit_headers(result.rate_limit, analyzer.rate_limiter.max_requests),
    )
