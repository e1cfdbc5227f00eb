"""
Model Invoker

Injectable access to the generative model. The orchestrators only see the
ModelInvoker interface, so tests substitute a stub or a pydantic-ai TestModel.

There is no retry and no backoff here: a failed call is fatal to the request
and surfaces as ModelInvocationError.
"""

import time
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Sequence, Union

from loguru import logger
from pydantic_ai import Agent
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart
from pydantic_ai.models import Model

from ticket_forensics.core.errors import ModelInvocationError
from ticket_forensics.models.chat import ChatTurn
from ticket_forensics.utils.observability import log_llm_call


class ModelInvoker(ABC):
    """Prompt in, text out (or a stream of text deltas)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Short model identifier reported as modelUsed."""
        pass

    @abstractmethod
    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """
        Run one completion.

        Raises:
            ModelInvocationError: On any backend failure
        """
        pass

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        history: Sequence[ChatTurn] = (),
    ) -> AsyncIterator[str]:
        """
        Stream text deltas for a conversational turn.

        Raises:
            ModelInvocationError: On any backend failure, possibly mid-stream
        """
        pass


def to_message_history(history: Sequence[ChatTurn]) -> List[ModelMessage]:
    """Convert chat turns into pydantic-ai message history."""
    messages: List[ModelMessage] = []
    for turn in history:
        if turn.role == "user":
            messages.append(ModelRequest(parts=[UserPromptPart(content=turn.content)]))
        else:
            messages.append(ModelResponse(parts=[TextPart(content=turn.content)]))
    return messages


class PydanticAIInvoker(ModelInvoker):
    """
    ModelInvoker backed by a pydantic-ai Agent.

    The Agent is built per call because the system prompt changes per request
    and provider credentials are only needed when a call is actually made.

    Usage:
        >>> invoker = PydanticAIInvoker("google-gla:gemini-2.0-flash")
        >>> text = await invoker.generate(system_prompt, user_prompt)
    """

    def __init__(self, model: Union[str, Model] = "google-gla:gemini-2.0-flash", component: str = "forensics"):
        self.model = model
        self.component = component

    @property
    def model_name(self) -> str:
        if isinstance(self.model, str):
            return self.model.split(":", 1)[-1]
        return self.model.model_name

    def _build_agent(self, system_prompt: str) -> Agent:
        return Agent(self.model, instructions=system_prompt)

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        start_time = time.time()
        prompt_chars = len(system_prompt) + len(user_prompt)

        try:
            agent = self._build_agent(system_prompt)
            result = await agent.run(user_prompt)
        except Exception as e:
            log_llm_call(
                component=self.component,
                model=self.model_name,
                prompt_chars=prompt_chars,
                output_chars=0,
                duration_ms=(time.time() - start_time) * 1000,
                success=False,
                error=str(e),
            )
            raise ModelInvocationError(f"Model call failed: {e}") from e

        output = result.output
        log_llm_call(
            component=self.component,
            model=self.model_name,
            prompt_chars=prompt_chars,
            output_chars=len(output),
            duration_ms=(time.time() - start_time) * 1000,
        )
        return output

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        history: Sequence[ChatTurn] = (),
    ) -> AsyncIterator[str]:
        start_time = time.time()
        prompt_chars = len(system_prompt) + len(user_prompt) + sum(len(t.content) for t in history)
        output_chars = 0
        error: Optional[str] = None

        try:
            agent = self._build_agent(system_prompt)
            async with agent.run_stream(user_prompt, message_history=to_message_history(history)) as result:
                async for delta in result.stream_text(delta=True):
                    output_chars += len(delta)
                    yield delta
        except Exception as e:
            error = str(e)
            raise ModelInvocationError(f"Model stream failed: {e}") from e
        finally:
            log_llm_call(
                component=self.component,
                model=self.model_name,
                prompt_chars=prompt_chars,
                output_chars=output_chars,
                duration_ms=(time.time() - start_time) * 1000,
                success=error is None,
                error=error,
            )
            logger.debug(f"Stream closed after {output_chars} chars")
