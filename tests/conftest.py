"""
Shared fixtures and provider fakes for the RateMate test-suite.

The fakes implement the provider protocols from
``ratemate.src.core.providers`` and record how they were called, so
tests can assert on prompts and search parameters without any network.
"""

from __future__ import annotations

from typing import Any

import pytest
from ratemate.config.settings import Settings
from ratemate.src.core.conversation_store import InMemoryConversationStore
from ratemate.src.core.models import PromptMessage
from ratemate.src.core.providers import Capability, ProviderRegistry

QUERY_VECTOR = [0.1, 0.2, 0.3, 0.4]


# ===== PROVIDER FAKES =====


class FakeEmbedder:
    def __init__(self, vector: list[float] | None = None) -> None:
        self.vector = vector if vector is not None else list(QUERY_VECTOR)
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float] | None:
        self.calls.append(text)
        return self.vector


class FakeVectorStore:
    def __init__(self, results: dict[str, list[dict[str, Any]]] | None = None, counts: dict[str, int] | None = None, failing: set[str] | None = None) -> None:
        self.results = results or {}
        self.counts = counts or {}
        self.failing = failing or set()
        self.search_calls: list[tuple[str, list[float], float, int]] = []

    async def search(self, collection: str, query_vector: list[float], threshold: float = 0.0, limit: int = 10) -> list[dict[str, Any]]:
        self.search_calls.append((collection, query_vector, threshold, limit))
        if collection in self.failing:
            raise RuntimeError(f"{collection} search exploded")
        return [dict(row) for row in self.results.get(collection, [])]

    async def count(self, collection: str) -> int:
        if collection in self.failing:
            raise RuntimeError(f"{collection} count exploded")
        return self.counts.get(collection, 0)


class FakeLLM:
    def __init__(self, reply: str | None = "Mock model answer", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[list[PromptMessage]] = []

    async def complete(self, messages: list[PromptMessage]) -> str:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        if callable(self.reply):
            return self.reply(messages)
        return self.reply or ""

    @property
    def last_messages(self) -> list[PromptMessage]:
        return self.calls[-1]


class FakeDocumentQA:
    def __init__(self, reply: str = "This PDF describes a loan estimate.") -> None:
        self.reply = reply
        self.calls: list[tuple[bytes, str, str]] = []

    async def answer_pdf(self, data: bytes, question: str, filename: str = "document.pdf") -> str:
        self.calls.append((data, question, filename))
        return self.reply


def make_registry(embedder: Any = None, llm: Any = None, vector_store: Any = None, document_chat: Any = None, document_qa: Any = None) -> ProviderRegistry:
    """Registry whose ``None`` entries are unavailable capabilities."""

    def cap(name: str, client: Any) -> Capability:
        return Capability(name, client) if client is not None else Capability.unavailable(name, "not configured in test")

    return ProviderRegistry(
        embedder=cap("Embedding", embedder),
        chat=cap("Chat completion", llm),
        document_chat=cap("Document chat", document_chat),
        document_qa=cap("Document QA", document_qa),
        vector_store=cap("Vector store", vector_store),
    )


# ===== FIXTURES =====


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def vector_store() -> FakeVectorStore:
    return FakeVectorStore(
        results={
            "posts": [{"id": 7, "title": "Locked at 6.5%", "text": "We locked a 30-year fixed at 6.5%."}],
            "comments": [{"post_id": 7, "body": "Shop at least three lenders."}],
            "attachments": [{"post_id": 9, "extracted_text": "Loan Estimate page 1"}],
        },
        counts={"posts": 120, "comments": 3400, "attachments": 15},
    )


@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore(max_turns=20, idle_ttl_seconds=0)


@pytest.fixture
def registry(embedder, llm, vector_store) -> ProviderRegistry:
    return make_registry(embedder=embedder, llm=llm, vector_store=vector_store)


@pytest.fixture
def dev_settings(tmp_path) -> Settings:
    return Settings(ENV="dev", GOOGLE_API_KEY=None, LANCEDB_PATH=tmp_path / "lancedb", SESSION_BACKEND="memory")


@pytest.fixture
def prod_settings(tmp_path) -> Settings:
    return Settings(ENV="prod", GOOGLE_API_KEY=None, LANCEDB_PATH=tmp_path / "lancedb", SESSION_BACKEND="memory")
