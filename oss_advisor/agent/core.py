"""
Agent Core
==========

The orchestrator that answers one chat message.

Agent Loop:
    User Message (+ optional chat id)
         │
         ▼
    Recall relevant turns from memory (best-effort)
         │
         ▼
    Extract user facts, annotate identity questions
         │
         ▼
    ┌──────────── deadline (whole loop) ─────────────┐
    │  attempt: circuit breaker ─► model with tools   │
    │     │                                           │
    │  failed & retryable & attempts left?            │
    │     Yes: back off, try again                    │
    │     No:  give up                                │
    └─────────────────────────────────────────────────┘
         │                         │
      answer                 apology with error
         │
         ▼
    Save user turn + answer to memory (background, best-effort)

Requests without a chat id get a throwaway "temp_session_..." id. No
client can ever send that id again, so those requests skip memory
entirely.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable

from oss_advisor.agent.context import (
    ContextAssembler,
    ContextExtractor,
    UserContext,
    annotate_input,
)
from oss_advisor.agent.model import ToolCallingModel
from oss_advisor.memory import ConversationTurn, MemoryStore, TurnRole
from oss_advisor.resilience import CircuitBreaker, RetryPolicy, with_retry
from oss_advisor.utils.errors import AgentTimeoutError, EmptyModelResponseError
from oss_advisor.utils.logger import Logger

logger = Logger("Agent")

APOLOGY_TEMPLATE = (
    "I apologize, but I'm experiencing technical difficulties. "
    "Please try again in a moment. (Error: {error})"
)
EPHEMERAL_PREFIX = "temp_session_"
DEFAULT_INPUT = "How can I help you?"


@dataclass
class AgentRun:
    """
    Everything that happened while answering one message.

    Attributes:
        conversation_id: The chat id used (generated when ephemeral)
        ephemeral: True if the caller did not supply a chat id
        output: Text returned to the caller (answer or apology)
        context: User facts extracted for this request
        attempts: Model attempts made
        succeeded: False when output is an apology
        error: The last error when the request failed
    """
    conversation_id: str
    ephemeral: bool
    output: str
    context: UserContext
    attempts: int
    succeeded: bool
    error: Exception | None = None


class AgentOrchestrator:
    """
    Answers chat messages with memory, tools and failure protection.

    The memory store, model and circuit breaker are shared by all
    requests; everything else (retry count, deadline, user context) is
    per request.

    Example:
        agent = AgentOrchestrator(model=model, memory=memory, circuit_breaker=breaker)

        answer = await agent.run("Find good first issues in react", "chat-42")
    """

    def __init__(
        self,
        model: ToolCallingModel,
        memory: MemoryStore,
        circuit_breaker: CircuitBreaker,
        retry_policy: RetryPolicy | None = None,
        extractor: ContextExtractor | None = None,
        assembler: ContextAssembler | None = None,
        timeout_seconds: float = 30.0,
        memory_k: int = 6,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Args:
            model: The tool-calling model capability
            memory: Conversation memory
            circuit_breaker: Process-wide breaker guarding the model
            retry_policy: Retry classification and backoff
            extractor: Derives user facts from history
            assembler: Builds model messages
            timeout_seconds: Deadline for the whole retry loop
            memory_k: How many prior turns to recall
            sleep: Backoff sleep (replaceable in tests)
        """
        self.model = model
        self.memory = memory
        self.circuit_breaker = circuit_breaker
        self.retry_policy = retry_policy or RetryPolicy()
        self.extractor = extractor or ContextExtractor()
        self.assembler = assembler or ContextAssembler()
        self.timeout_seconds = timeout_seconds
        self.memory_k = memory_k
        self._sleep = sleep
        self._pending_writes: set[asyncio.Task] = set()

    async def run(self, user_input: str, conversation_id: str | None = None) -> str:
        """Answer a message. Never raises for model, tool or memory failures."""
        result = await self.run_with_details(user_input, conversation_id)
        return result.output

    async def run_with_details(
        self,
        user_input: str,
        conversation_id: str | None = None
    ) -> AgentRun:
        ephemeral = not conversation_id
        chat_id = conversation_id or f"{EPHEMERAL_PREFIX}{uuid.uuid4().hex}"

        logger.info(f"Running agent with input: \"{user_input[:50]}\" (chat: {chat_id})")

        history = [] if ephemeral else await self._recall(chat_id, user_input)
        context = self.extractor.extract(history)
        agent_input = annotate_input(user_input, context) or DEFAULT_INPUT
        messages = self.assembler.build_messages(history, agent_input, context)

        attempts = 0

        async def attempt() -> str:
            nonlocal attempts
            attempts += 1
            output = await self.model.invoke(messages)
            if not output:
                raise EmptyModelResponseError()
            return output

        call = with_retry(
            self.circuit_breaker.wrap(attempt),
            self.retry_policy,
            sleep=self._sleep,
            on_attempt_failed=self._log_failed_attempt,
        )

        deadline = asyncio.timeout(self.timeout_seconds)
        try:
            async with deadline:
                output = await call()
        except Exception as e:
            # A TimeoutError raised by the model itself is an ordinary failure
            error = AgentTimeoutError(self.timeout_seconds) if deadline.expired() else e
            logger.error("All retry attempts failed", error, {"attempts": attempts})
            return self._failed_run(chat_id, ephemeral, context, attempts, error)

        if not ephemeral:
            self._schedule_save(chat_id, user_input, output)

        return AgentRun(
            conversation_id=chat_id,
            ephemeral=ephemeral,
            output=output,
            context=context,
            attempts=attempts,
            succeeded=True,
        )

    def _failed_run(
        self,
        chat_id: str,
        ephemeral: bool,
        context: UserContext,
        attempts: int,
        error: Exception
    ) -> AgentRun:
        return AgentRun(
            conversation_id=chat_id,
            ephemeral=ephemeral,
            output=APOLOGY_TEMPLATE.format(error=error),
            context=context,
            attempts=attempts,
            succeeded=False,
            error=error,
        )

    def _log_failed_attempt(self, attempt: int, error: Exception) -> None:
        logger.warning(
            f"Attempt {attempt}/{self.retry_policy.max_attempts} failed",
            {"error_type": type(error).__name__, "message": str(error)}
        )

    async def _recall(self, chat_id: str, user_input: str) -> list[ConversationTurn]:
        result = await self.memory.search(chat_id, user_input, self.memory_k)
        if not result.ok:
            logger.warning("Memory retrieval failed but continuing", {"error": str(result.error)})
        return result.value_or([])

    # ==========================================================================
    # Background memory writes
    # ==========================================================================

    def _schedule_save(self, chat_id: str, user_input: str, output: str) -> None:
        task = asyncio.create_task(self._save(chat_id, user_input, output))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _save(self, chat_id: str, user_input: str, output: str) -> None:
        logger.debug(f"Saving memory for chat {chat_id}")

        results = [
            await self.memory.append(chat_id, TurnRole.USER, user_input),
            await self.memory.append(chat_id, TurnRole.ASSISTANT, output, responding_to=user_input),
        ]
        for result in results:
            if not result.ok:
                logger.warning("Memory save failed but continuing", {"error": str(result.error)})

    async def drain(self) -> None:
        """Wait for all scheduled memory writes to finish."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
