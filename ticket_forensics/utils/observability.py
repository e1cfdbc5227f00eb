"""
Structured Logging & Observability
Production-grade logging that's both human-readable and machine-parseable.
"""
import sys
from loguru import logger
from typing import Any
from ticket_forensics.config import get_settings


def configure_logging():
    """
    Configure loguru for production observability.

    In development: Human-readable colorized output
    In production: Structured JSON logs for ingestion (ELK, Datadog, etc.)
    """
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if not settings.enable_structured_logging:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            level=settings.log_level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,  # Output as JSON
        )

    logger.info(f"Logging configured: level={settings.log_level}, structured={settings.enable_structured_logging}")


def log_pipeline_step(
    component: str,
    target_domain: str,
    action: str,
    duration_ms: float | None = None,
    **context
):
    """
    Structured logging for a forensics pipeline step.

    Args:
        component: Name of the component (e.g., "EvidenceGatherer")
        target_domain: Domain the ticket is about
        action: What was performed (e.g., "market_check", "parse_response")
        duration_ms: Execution time in milliseconds
        **context: Additional context (verdict, warning count, etc.)

    Example:
        >>> log_pipeline_step(
        ...     component="TicketAnalyzer",
        ...     target_domain="example.com",
        ...     action="analyze",
        ...     duration_ms=812.4,
        ...     verdict="ALGO_IMPACT"
        ... )
    """
    log_data = {
        "component": component,
        "target_domain": target_domain,
        "action": action,
    }

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)

    log_data.update(context)

    logger.bind(**log_data).info(f"{component} | {action}")


def log_llm_call(
    component: str,
    model: str,
    prompt_chars: int,
    output_chars: int,
    duration_ms: float,
    success: bool = True,
    error: str | None = None
):
    """
    Structured logging for generative model calls.

    Token counts are estimated from character counts (~4 chars per token);
    the exact usage is provider specific.

    Args:
        component: Which component made the call
        model: Model identifier (e.g., "gemini-2.0-flash")
        prompt_chars: Size of system + user prompt
        output_chars: Size of the generated text
        duration_ms: API latency in milliseconds
        success: Whether the call succeeded
        error: Error message if failed
    """
    input_tokens = estimate_tokens_from_chars(prompt_chars)
    output_tokens = estimate_tokens_from_chars(output_chars)

    log_data = {
        "event_type": "llm_call",
        "component": component,
        "model": model,
        "tokens_estimated": {
            "input": input_tokens,
            "output": output_tokens,
            "total": input_tokens + output_tokens
        },
        "duration_ms": round(duration_ms, 2),
        "success": success
    }

    if error:
        log_data["error"] = error

    level = "info" if success else "error"
    logger.bind(**log_data).log(
        level.upper(),
        f"LLM Call: {model} | ~{input_tokens + output_tokens} tokens | {duration_ms:.0f}ms"
    )


def log_analysis_event(
    event_type: str,
    target_domain: str,
    **details: Any
):
    """
    Log analysis outcomes for analytics.

    Examples:
        - Verdict issued
        - Fallback verdict used
        - Handbook violation detected

    Args:
        event_type: Type of event (e.g., "verdict_issued")
        target_domain: The domain involved
        **details: Event-specific data
    """
    log_data = {
        "event_type": event_type,
        "target_domain": target_domain,
        **details
    }

    logger.bind(**log_data).success(f"Analysis Event: {event_type}")


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 characters per token for English text."""
    return estimate_tokens_from_chars(len(text))


def estimate_tokens_from_chars(char_count: int) -> int:
    return -(-char_count // 4)
