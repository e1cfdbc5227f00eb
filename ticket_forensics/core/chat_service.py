"""
Chat Service
The orchestrator behind POST /api/ai/chat.

Shares the prompt rules, rate limiter, model invoker and audit trail with the
ticket analyzer, but streams plain text back instead of a structured verdict.
"""
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from ticket_forensics.agents.model_invoker import ModelInvoker
from ticket_forensics.agents.prompts import build_chat_system_prompt
from ticket_forensics.core.errors import ModelInvocationError, RateLimitExceededError
from ticket_forensics.core.handbook_validator import check_text_constraints
from ticket_forensics.models.audit import InteractionLogRecord
from ticket_forensics.models.chat import ChatRequest, ChatTurn, InteractionType
from ticket_forensics.models.user import CurrentUser
from ticket_forensics.services.audit_logger import AuditLogger, hash_prompt, preview
from ticket_forensics.utils.observability import estimate_tokens
from ticket_forensics.utils.output_sanitizer import CodeArtifactFilter
from ticket_forensics.utils.rate_limiter import FixedWindowRateLimiter, RateLimitResult


def resolve_interaction_type(raw: Optional[str]) -> Tuple[InteractionType, Optional[str]]:
    """Map the requested interaction type, falling back to ANALYSIS with a warning."""
    if raw is None or not raw.strip():
        return InteractionType.ANALYSIS, None
    try:
        return InteractionType(raw.strip().upper()), None
    except ValueError:
        return InteractionType.ANALYSIS, f"Unknown interactionType '{raw}' - using ANALYSIS"


def sanitize_history(raw_history: List[Any], window: int) -> Tuple[List[ChatTurn], List[str]]:
    """Validate history turns, dropping malformed ones and keeping the last `window` turns."""
    warnings: List[str] = []
    turns: List[ChatTurn] = []
    dropped = 0

    for entry in raw_history:
        try:
            turns.append(ChatTurn.model_validate(entry))
        except ValidationError:
            dropped += 1

    if dropped:
        warnings.append(f"Dropped {dropped} invalid conversation history entries")

    if len(turns) > window:
        turns = turns[-window:]
        warnings.append(f"Conversation history truncated to the last {window} turns")

    return turns, warnings


@dataclass
class ChatStream:
    """A started chat reply: warnings for the header, then the text stream."""
    chunks: AsyncIterator[str]
    rate_limit: RateLimitResult
    interaction_type: InteractionType
    warnings: List[str] = field(default_factory=list)


class ChatService:
    """
    Streams a strategist chat reply with code artifacts filtered out.

    Usage:
        >>> service = ChatService(invoker, limiter, audit_logger)
        >>> chat = await service.start(chat_request, user)
        >>> async for text in chat.chunks:
        ...     send(text)
    """

    def __init__(
        self,
        model_invoker: ModelInvoker,
        rate_limiter: FixedWindowRateLimiter,
        audit_logger: AuditLogger,
        history_window: int = 20,
    ):
        self.model_invoker = model_invoker
        self.rate_limiter = rate_limiter
        self.audit_logger = audit_logger
        self.history_window = history_window

    async def start(self, chat_request: ChatRequest, user: CurrentUser) -> ChatStream:
        """
        Prepare prompts, pass admission control and open the model stream.

        The first chunk is awaited here, so a model failure before any text
        surfaces as an exception instead of an empty 200 stream.

        Raises:
            RateLimitExceededError: Admission denied; the model was not called
            ModelInvocationError: The model failed before producing text
        """
        interaction_type, type_warning = resolve_interaction_type(chat_request.interaction_type)
        history, warnings = sanitize_history(chat_request.conversation_history, self.history_window)
        if type_warning:
            warnings.insert(0, type_warning)

        rate_limit = await self.rate_limiter.check(user.id)
        if not rate_limit.allowed:
            raise RateLimitExceededError(user.id, rate_limit.retry_after, self.rate_limiter.max_requests)

        system_prompt = build_chat_system_prompt(interaction_type, user.account_manager_style)
        start_time = time.time()
        stream = self.model_invoker.stream(system_prompt, chat_request.message, history)

        try:
            first_chunk = await anext(stream)
        except StopAsyncIteration:
            first_chunk = ""

        logger.bind(interaction_type=interaction_type.value, history_turns=len(history)).info(
            f"Chat stream opened for {user.id}"
        )

        return ChatStream(
            chunks=self._relay(stream, first_chunk, chat_request, user, interaction_type, start_time),
            rate_limit=rate_limit,
            interaction_type=interaction_type,
            warnings=warnings,
        )

    async def _relay(
        self,
        stream: AsyncIterator[str],
        first_chunk: str,
        chat_request: ChatRequest,
        user: CurrentUser,
        interaction_type: InteractionType,
        start_time: float,
    ) -> AsyncIterator[str]:
        artifact_filter = CodeArtifactFilter()
        raw_parts = [first_chunk]

        try:
            cleaned = artifact_filter.feed(first_chunk)
            if cleaned:
                yield cleaned
            async for chunk in stream:
                raw_parts.append(chunk)
                cleaned = artifact_filter.feed(chunk)
                if cleaned:
                    yield cleaned
        except ModelInvocationError as e:
            # Headers are already sent; end the body early
            logger.error(f"Chat stream interrupted for {user.id}: {e}")

        tail = artifact_filter.flush()
        if tail:
            yield tail

        raw_response = "".join(raw_parts)
        violations = check_text_constraints(raw_response)
        if artifact_filter.removed_artifacts:
            logger.warning(f"Removed {artifact_filter.removed_artifacts} code artifacts from chat reply")

        self.audit_logger.dispatch_interaction(InteractionLogRecord(
            user_id=user.id,
            client_id=chat_request.client_id,
            interaction_type=interaction_type.value,
            prompt_hash=hash_prompt(chat_request.message),
            prompt_preview=preview(chat_request.message),
            response_preview=preview(raw_response),
            input_tokens=estimate_tokens(chat_request.message),
            output_tokens=estimate_tokens(raw_response),
            latency_ms=int((time.time() - start_time) * 1000),
            model_used=self.model_invoker.model_name,
            constraint_violations=[violation.rule for violation in violations],
        ))
