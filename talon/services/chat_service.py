"""Chat orchestration: retrieved context + recent history -> generation.

For every user message :class:`ChatOrchestrator`:

  1. RETRIEVE -- asks the :class:`RetrievalAssembler` for a context block
                 built from document chunks and knowledge entries.
  2. PROMPT   -- builds the system instruction: persona, then the context
                 clause (only when retrieval found something), then the
                 closing instruction.  With no context the instruction is
                 simply persona + closing.
  3. HISTORY  -- keeps only the last ``history_turns`` prior messages.
  4. GENERATE -- sends system + history + new message to the LLM and
                 relays its text verbatim.

Retrieval problems only shrink the context.  A generation failure is
surfaced as a :class:`GenerationError` whose message is safe to show to
the user; upstream detail goes to the log.
"""

from __future__ import annotations

import structlog

from talon.config.tuning import ChatConfig
from talon.interfaces.llm_provider import ILLMProvider
from talon.models.chat import ChatReply, ChatTurn
from talon.services.retrieval.assembler import RetrievalAssembler
from talon.utils.errors import GenerationError, InvalidInputError, LLMError

logger = structlog.get_logger(logger_name=__name__)

_CONTEXT_INTRO = "Use the following context information to inform your response:"


class ChatOrchestrator:
    """Grounds each chat turn in retrieved context and delegates to the LLM."""

    def __init__(
        self,
        config: ChatConfig | None,
        assembler: RetrievalAssembler,
        llm: ILLMProvider,
    ) -> None:
        self._config = config or ChatConfig()
        self._assembler = assembler
        self._llm = llm

    def build_system_prompt(self, context: str) -> str:
        """Return the system instruction, including *context* when non-empty."""
        parts = [self._config.persona.strip()]
        if context.strip():
            parts.append(f"{_CONTEXT_INTRO}\n\n{context.strip()}")
        parts.append(self._config.closing_instruction.strip())
        return "\n\n".join(p for p in parts if p)

    def build_messages(
        self,
        message: str,
        history: list[ChatTurn],
        context: str,
    ) -> list[dict[str, str]]:
        """Assemble the ordered message list sent to the generation service."""
        limit = self._config.history_turns
        recent = history[-limit:] if limit > 0 else []

        messages = [{"role": "system", "content": self.build_system_prompt(context)}]
        messages.extend({"role": turn.role.value, "content": turn.content} for turn in recent)
        messages.append({"role": "user", "content": message})
        return messages

    async def respond(self, message: str, history: list[ChatTurn] | None = None) -> ChatReply:
        """Answer *message* in the context of the prior *history*.

        Raises
        ------
        InvalidInputError
            If *message* is blank.
        GenerationError
            If the generation service fails.
        """
        if not message or not message.strip():
            raise InvalidInputError(message="Message is required")
        history = history or []

        context = await self._assembler.assemble(message)
        messages = self.build_messages(message, history, context.text)

        try:
            response = await self._llm.chat(
                messages,
                temperature=self._config.temperature,
                max_tokens=self._config.max_output_tokens,
            )
        except LLMError as exc:
            logger.error(
                "chat_generation_failed",
                provider=self._llm.get_provider_name(),
                error=str(exc),
                message_length=len(message),
            )
            raise GenerationError(provider_name=self._llm.get_provider_name()) from exc

        logger.info(
            "chat_turn_complete",
            provider=self._llm.get_provider_name(),
            history_turns=min(len(history), self._config.history_turns),
            document_chunks=context.stats.document_chunks,
            knowledge_entries=context.stats.knowledge_entries,
            response_length=len(response),
        )
        return ChatReply(response=response, contexts_used=context.stats)
