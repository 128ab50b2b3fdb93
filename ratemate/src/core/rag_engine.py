"""
RateMate - Answer Pipeline
============================
Orchestrates one question → answer exchange:

    1. Validate   → reject a blank question that has no image
    2. History    → client-supplied prior turns, else the stored ones
    3. Embed      → query vector (hard failure if unavailable)
    4. Retrieve   → parallel multi-collection search (never fails)
    5. Prompt     → system + stats, last N prior turns, context, question
    6. Complete   → chat model; errors become an apologetic answer
    7. Persist    → append the user/assistant pair to the session
    8. Return     → the answer text

History policy
--------------
The prompt carries *prior* turns only.  The in-flight question is
represented exactly once, by the final structured user message; a client
history that already ends with that same question has it dropped.

Usage:
    from ratemate.src.core.rag_engine import AnswerPipeline
    pipeline = AnswerPipeline(providers, InMemoryConversationStore())
    answer = await pipeline.answer("session-id", "What is the current 30-year rate?")
"""

from __future__ import annotations

import time

from ratemate.config.prompt_templates import CLIENT_NOT_INITIALIZED_ANSWER, CONTEXT_PROMPT_TEMPLATE, CORPUS_STATS_TEMPLATE, DEGRADED_ANSWER_TEMPLATE, EMBEDDING_ERROR_DETAIL, EMPTY_QUESTION_DETAIL, NO_RESPONSE_CONTENT, SYSTEM_PROMPT_TEMPLATE
from ratemate.config.settings import settings
from ratemate.src.core.context_assembler import ContextAssembler, format_context_block
from ratemate.src.core.conversation_store import ConversationStore
from ratemate.src.core.models import ASSISTANT_ROLE, SYSTEM_ROLE, USER_ROLE, ConversationTurn, CorpusStats, PromptMessage, RetrievedContextItem
from ratemate.src.core.providers import ProviderRegistry, ProviderUnavailableError
from ratemate.src.utils.logger import get_logger
from ratemate.src.utils.text_utils import error_reason

logger = get_logger(__name__)


class EmptyQuestionError(ValueError):
    """Blank question submitted without an image."""

    def __init__(self, message: str = EMPTY_QUESTION_DETAIL) -> None:
        super().__init__(message)


class EmbeddingError(RuntimeError):
    """No query embedding could be produced for the question."""

    def __init__(self, message: str = EMBEDDING_ERROR_DETAIL) -> None:
        super().__init__(message)


def build_user_message(question: str, image_data: str | None = None) -> PromptMessage:
    """Final structured user message: a text part plus an optional image part."""
    content: list[dict] = [{"type": "text", "text": question}]
    if image_data:
        content.append({"type": "image_url", "image_url": {"url": image_data, "detail": "auto"}})
    return {"role": USER_ROLE, "content": content}


def build_prompt(question: str, stats: CorpusStats, history: list[ConversationTurn], context: list[RetrievedContextItem], image_data: str | None = None, history_turns: int | None = None, max_context_length: int | None = None) -> list[PromptMessage]:
    """
    Assemble the message list sent to the completion provider.

    Order: system instructions (with corpus stats), the last
    *history_turns* prior turns, an optional context system message, and
    the final user message.
    """
    history_turns = history_turns if history_turns is not None else settings.PROMPT_HISTORY_TURNS
    stats_line = CORPUS_STATS_TEMPLATE.format(posts=stats.posts, comments=stats.comments, attachments=stats.attachments)

    messages: list[PromptMessage] = [{"role": SYSTEM_ROLE, "content": SYSTEM_PROMPT_TEMPLATE.format(stats=stats_line)}]
    if history_turns > 0:
        messages.extend({"role": turn.role, "content": turn.content} for turn in history[-history_turns:])

    if context:
        block = format_context_block(context, max_context_length)
        messages.append({"role": SYSTEM_ROLE, "content": CONTEXT_PROMPT_TEMPLATE.format(context=block)})

    messages.append(build_user_message(question, image_data))
    return messages


def prior_turns(question: str, client_history: list[ConversationTurn] | None, stored_history: list[ConversationTurn]) -> list[ConversationTurn]:
    """Pick the history for this prompt and strip an echoed in-flight question."""
    if client_history is None:
        return list(stored_history)
    turns = list(client_history)
    if turns and turns[-1].role == USER_ROLE and turns[-1].content == question:
        turns.pop()
    return turns


class AnswerPipeline:
    """
    Retrieval-augmented answer orchestrator.

    Parameters
    ----------
    providers
        Startup-resolved provider capabilities.
    store
        Any ``ConversationStore`` implementation.
    assembler
        Optional custom ``ContextAssembler``; built from the registry's
        vector store by default.
    """

    __slots__ = ("_providers", "_store", "_assembler")

    def __init__(self, providers: ProviderRegistry, store: ConversationStore, assembler: ContextAssembler | None = None) -> None:
        self._providers = providers
        self._store = store
        self._assembler = assembler or ContextAssembler(providers.vector_store)


    @staticmethod
    def validate(question: str | None, image_data: str | None) -> str:
        question = question or ""
        if not question.strip() and not image_data:
            raise EmptyQuestionError()
        return question


    async def answer(self, session_id: str, question: str | None, image_data: str | None = None, client_history: list[ConversationTurn] | None = None) -> str:
        """
        Run the full pipeline for one question.

        Raises
        ------
        EmptyQuestionError
            Blank question and no image.
        EmbeddingError
            The embedding provider is unavailable or failed.
        """
        t_start = time.perf_counter()

        # ── 1. Validate ───────────────────────────────────────────────
        question = self.validate(question, image_data)

        # ── 2. History ────────────────────────────────────────────────
        stored = await self._store.get(session_id) if client_history is None else []
        history = prior_turns(question, client_history, stored)
        logger.info("[ASK] Session '%s': %d prior turn(s) (%s).", session_id, len(history), "client" if client_history is not None else "stored")

        # ── 3. Embed + 4. Retrieve ────────────────────────────────────
        t_search = time.perf_counter()
        context = await self._retrieve(question)
        search_ms = (time.perf_counter() - t_search) * 1000

        # ── 5. Prompt ─────────────────────────────────────────────────
        stats = await self._assembler.corpus_stats()
        messages = build_prompt(question, stats, history, context, image_data)

        # ── 6. Complete ───────────────────────────────────────────────
        t_llm = time.perf_counter()
        answer = await self._complete(messages)
        llm_ms = (time.perf_counter() - t_llm) * 1000

        # ── 7. Persist ────────────────────────────────────────────────
        try:
            await self._store.append(session_id, [ConversationTurn(role=USER_ROLE, content=question), ConversationTurn(role=ASSISTANT_ROLE, content=answer)])
        except Exception:
            logger.exception("[ASK] Failed to persist turns for session '%s'.", session_id)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[ASK] Pipeline total: %.1fms (retrieval=%.1f, llm=%.1f, context_items=%d)", total_ms, search_ms, llm_ms, len(context))
        return answer


    async def _retrieve(self, question: str) -> list[RetrievedContextItem]:
        # An image-only question has no text to search with
        if not question.strip():
            logger.info("[ASK] Blank question with image, skipping retrieval.")
            return []

        try:
            embedder = self._providers.embedder.require()
        except ProviderUnavailableError as exc:
            logger.error("[ASK] %s", exc)
            raise EmbeddingError() from exc

        query_vector = await embedder.embed(question)
        if not query_vector:
            logger.error("[ASK] Failed to generate embedding for the question.")
            raise EmbeddingError()

        return await self._assembler.assemble(query_vector)


    async def _complete(self, messages: list[PromptMessage]) -> str:
        try:
            llm = self._providers.chat.require()
        except ProviderUnavailableError as exc:
            logger.error("[ASK] %s", exc)
            return CLIENT_NOT_INITIALIZED_ANSWER

        try:
            text = await llm.complete(messages)
        except Exception as exc:
            logger.exception("[ASK] Completion call failed.")
            return DEGRADED_ANSWER_TEMPLATE.format(reason=error_reason(exc))

        return text or NO_RESPONSE_CONTENT
