"""
RateMate - External Providers
===============================
Contracts for the black-box collaborators the pipeline consumes, their
Gemini / LanceDB implementations, and the ``ProviderRegistry`` that
resolves each of them once at startup.

Architecture
------------
``Capability``
    An optional provider handle.  Either holds a live client or the reason
    it could not be built.  ``require()`` returns the client or raises
    ``ProviderUnavailableError``, so call sites never juggle ``None``.

``GeminiEmbeddingProvider``
    text → vector via ``GoogleGenerativeAIEmbeddings``.  Returns ``None``
    on any provider error or timeout.

``GeminiCompletionProvider``
    chat-completions style messages (text and inline image parts) →
    text via ``ChatGoogleGenerativeAI``.  Raises on provider errors; the
    caller decides how to degrade.

``GeminiDocumentProvider``
    Provider-native PDF question answering through the ``google-genai``
    Files API.

``resolve_providers``
    Builds every capability.  A missing ``GOOGLE_API_KEY`` or a failing
    client constructor is logged and turned into an unavailable capability
    instead of crashing the process.
"""

from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from typing import Any, Callable, Generic, Protocol, TypeVar, runtime_checkable

from ratemate.config.settings import Settings, settings
from ratemate.src.core.models import ASSISTANT_ROLE, SYSTEM_ROLE, PromptMessage
from ratemate.src.utils.logger import get_logger
from ratemate.src.utils.text_utils import normalize_for_embedding

logger = get_logger(__name__)

T = TypeVar("T")


class ProviderUnavailableError(RuntimeError):
    """A provider needed by the request was not initialised at startup."""


# ══════════════════════════════════════════════════════════════════════
#  CONTRACTS
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> list[float] | None: ...


@runtime_checkable
class CompletionProvider(Protocol):
    async def complete(self, messages: list[PromptMessage]) -> str: ...


@runtime_checkable
class DocumentQAProvider(Protocol):
    async def answer_pdf(self, data: bytes, question: str, filename: str = "document.pdf") -> str: ...


@runtime_checkable
class VectorSearchEngine(Protocol):
    async def search(self, collection: str, query_vector: list[float], threshold: float = 0.0, limit: int = 10) -> list[dict[str, Any]]: ...

    async def count(self, collection: str) -> int: ...


class Capability(Generic[T]):
    """Optional provider handle resolved once at startup."""

    __slots__ = ("name", "_client", "reason")

    def __init__(self, name: str, client: T | None = None, reason: str = "") -> None:
        self.name = name
        self._client = client
        self.reason = reason


    @classmethod
    def unavailable(cls, name: str, reason: str) -> Capability[T]:
        return cls(name, None, reason)


    @property
    def available(self) -> bool:
        return self._client is not None


    def require(self) -> T:
        if self._client is None:
            raise ProviderUnavailableError(f"{self.name} client not initialized: {self.reason}")
        return self._client


    def __repr__(self) -> str:
        state = "available" if self.available else f"unavailable ({self.reason})"
        return f"Capability({self.name!r}, {state})"


# ══════════════════════════════════════════════════════════════════════
#  GEMINI IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════════════


class GeminiEmbeddingProvider:
    """Query embeddings via LangChain's Gemini integration."""

    __slots__ = ("_embedder", "_dimension", "_timeout")

    def __init__(self, api_key: str, model: str, dimension: int, timeout: float) -> None:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        self._embedder = GoogleGenerativeAIEmbeddings(model=model, google_api_key=api_key)
        self._dimension = dimension
        self._timeout = timeout


    async def embed(self, text: str) -> list[float] | None:
        try:
            return await asyncio.wait_for(self._embedder.aembed_query(normalize_for_embedding(text), output_dimensionality=self._dimension), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("[EMBED] Embedding call timed out after %.1fs.", self._timeout)
        except Exception:
            logger.exception("[EMBED] Error generating embedding.")
        return None


def to_langchain_messages(messages: list[PromptMessage]) -> list[Any]:
    """Convert chat-completions style dicts into LangChain message objects."""
    from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

    converted: list[Any] = []
    for message in messages:
        role = message["role"]
        content = message["content"]
        if role == SYSTEM_ROLE:
            converted.append(SystemMessage(content=content))
        elif role == ASSISTANT_ROLE:
            converted.append(AIMessage(content=content))
        else:
            converted.append(HumanMessage(content=content))
    return converted


def _response_text(content: Any) -> str:
    """Flatten a LangChain message ``content`` (str or parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [part if isinstance(part, str) else part.get("text", "") for part in content if isinstance(part, (str, dict))]
        return "".join(texts)
    return str(content or "")


class GeminiCompletionProvider:
    """Chat completion via ``ChatGoogleGenerativeAI``."""

    __slots__ = ("_llm", "_timeout")

    def __init__(self, api_key: str, model: str, temperature: float, max_output_tokens: int, timeout: float) -> None:
        from langchain_google_genai import ChatGoogleGenerativeAI

        self._llm = ChatGoogleGenerativeAI(model=model, temperature=temperature, max_output_tokens=max_output_tokens, google_api_key=api_key)
        self._timeout = timeout
        logger.info("LLM initialised: %s (temperature=%.1f, max_output_tokens=%d)", model, temperature, max_output_tokens)


    async def complete(self, messages: list[PromptMessage]) -> str:
        response = await asyncio.wait_for(self._llm.ainvoke(to_langchain_messages(messages)), timeout=self._timeout)
        return _response_text(getattr(response, "content", response)).strip()


class GeminiDocumentProvider:
    """Single-turn PDF question answering with the file uploaded to Gemini."""

    __slots__ = ("_client", "_model", "_timeout")

    def __init__(self, api_key: str, model: str, timeout: float) -> None:
        from google import genai

        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._timeout = timeout


    async def answer_pdf(self, data: bytes, question: str, filename: str = "document.pdf") -> str:
        from google.genai import types

        upload_config = types.UploadFileConfig(mime_type="application/pdf", display_name=filename)
        uploaded = await asyncio.wait_for(self._client.aio.files.upload(file=io.BytesIO(data), config=upload_config), timeout=self._timeout)
        try:
            response = await asyncio.wait_for(self._client.aio.models.generate_content(model=self._model, contents=[uploaded, question]), timeout=self._timeout)
            return response.text or ""
        finally:
            try:
                await asyncio.wait_for(self._client.aio.files.delete(name=uploaded.name), timeout=self._timeout)
            except Exception:
                logger.warning("[DOCS] Could not delete uploaded file '%s'.", uploaded.name)


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ProviderRegistry:
    """Every external capability the service may use."""

    embedder: Capability[EmbeddingProvider]
    chat: Capability[CompletionProvider]
    document_chat: Capability[CompletionProvider]
    document_qa: Capability[DocumentQAProvider]
    vector_store: Capability[VectorSearchEngine]

    def status(self) -> dict[str, bool]:
        capabilities = (self.embedder, self.chat, self.document_chat, self.document_qa, self.vector_store)
        return {cap.name: cap.available for cap in capabilities}


def _resolve(name: str, factory: Callable[[], T], missing: str | None = None) -> Capability[T]:
    if missing:
        logger.warning("%s is unavailable: %s", name, missing)
        return Capability.unavailable(name, missing)
    try:
        return Capability(name, factory())
    except Exception as exc:
        logger.exception("Failed to initialise %s.", name)
        return Capability.unavailable(name, str(exc) or exc.__class__.__name__)


def resolve_providers(config: Settings | None = None) -> ProviderRegistry:
    """Build all provider capabilities from *config* (defaults to ``settings``)."""
    config = config or settings
    api_key = config.GOOGLE_API_KEY.get_secret_value() if config.GOOGLE_API_KEY else ""
    missing_key = None if api_key else "GOOGLE_API_KEY is not set"
    timeout = config.PROVIDER_TIMEOUT_SECONDS

    def _vector_store() -> VectorSearchEngine:
        from ratemate.src.database.vector_store import CorpusVectorStore

        return CorpusVectorStore(db_path=str(config.LANCEDB_PATH), tables={"posts": config.POSTS_TABLE, "comments": config.COMMENTS_TABLE, "attachments": config.ATTACHMENTS_TABLE}, dimension=config.EMBEDDING_DIMENSION)

    registry = ProviderRegistry(
        embedder=_resolve("Embedding", lambda: GeminiEmbeddingProvider(api_key, config.EMBEDDING_MODEL, config.EMBEDDING_DIMENSION, timeout), missing_key),
        chat=_resolve("Chat completion", lambda: GeminiCompletionProvider(api_key, config.LLM_MODEL, config.LLM_TEMPERATURE, config.MAX_OUTPUT_TOKENS, timeout), missing_key),
        document_chat=_resolve("Document chat", lambda: GeminiCompletionProvider(api_key, config.DOCUMENT_LLM_MODEL, config.LLM_TEMPERATURE, config.DOCUMENT_MAX_OUTPUT_TOKENS, timeout), missing_key),
        document_qa=_resolve("Document QA", lambda: GeminiDocumentProvider(api_key, config.DOCUMENT_LLM_MODEL, timeout), missing_key),
        vector_store=_resolve("Vector store", _vector_store),
    )
    logger.info("Providers resolved: %s", registry.status())
    return registry
