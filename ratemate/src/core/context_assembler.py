"""
RateMate - ContextAssembler
=============================
Fans a query vector out to every corpus collection, normalizes the hits
into ``RetrievedContextItem``s, and serializes them into the
length-capped context block that goes into the prompt.

Failure policy
--------------
Searches and counts run together under ``asyncio.gather(...,
return_exceptions=True)``.  A failing branch is logged and replaced by its
default (``[]`` / ``0``); siblings are never cancelled and the assembly as
a whole never raises.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable

from ratemate.config.prompt_templates import CONTEXT_ENTRY_TEMPLATE, SOURCE_ATTACHMENT_TEMPLATE, SOURCE_COMMENT_TEMPLATE, SOURCE_POST_TEMPLATE, UNTITLED_POST
from ratemate.config.settings import settings
from ratemate.src.core.models import CorpusStats, RetrievedContextItem
from ratemate.src.core.providers import Capability, ProviderUnavailableError, VectorSearchEngine
from ratemate.src.utils.logger import get_logger
from ratemate.src.utils.text_utils import truncate

logger = get_logger(__name__)


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _map_post(row: dict[str, Any]) -> RetrievedContextItem:
    return RetrievedContextItem(source=SOURCE_POST_TEMPLATE.format(title=row.get("title") or UNTITLED_POST), content=row.get("text") or "", origin_id=_as_int(row.get("id")))


def _map_comment(row: dict[str, Any]) -> RetrievedContextItem:
    return RetrievedContextItem(source=SOURCE_COMMENT_TEMPLATE.format(post_id=row.get("post_id")), content=row.get("body") or "", origin_id=_as_int(row.get("post_id")))


def _map_attachment(row: dict[str, Any]) -> RetrievedContextItem:
    return RetrievedContextItem(source=SOURCE_ATTACHMENT_TEMPLATE.format(post_id=row.get("post_id")), content=row.get("extracted_text") or "", origin_id=_as_int(row.get("post_id")))


@dataclass(frozen=True)
class CorpusCollection:
    """A searchable collection and how its rows map to context items."""

    name: str
    to_item: Callable[[dict[str, Any]], RetrievedContextItem]


DEFAULT_COLLECTIONS: tuple[CorpusCollection, ...] = (
    CorpusCollection("posts", _map_post),
    CorpusCollection("comments", _map_comment),
    CorpusCollection("attachments", _map_attachment),
)


def format_context_block(items: list[RetrievedContextItem], max_length: int | None = None) -> str:
    """
    Serialize items as ``"SOURCE: <source>\\n<content>"`` entries separated
    by blank lines, hard-cut to *max_length* characters plus ``"..."``.
    """
    max_length = max_length if max_length is not None else settings.MAX_CONTEXT_LENGTH
    text = "\n\n".join(CONTEXT_ENTRY_TEMPLATE.format(source=item.source, content=item.content) for item in items)
    return truncate(text, max_length)


class ContextAssembler:
    """
    Parallel multi-collection retrieval.

    Parameters
    ----------
    vector_store
        Capability wrapping the similarity-search engine.
    collections
        Collections to search, in output order.
    limit, threshold
        Per-collection K and minimum similarity.  Default to
        ``MAX_RESULTS_PER_TABLE`` and ``SIMILARITY_THRESHOLD``.
    """

    __slots__ = ("_store", "_collections", "_limit", "_threshold")

    def __init__(self, vector_store: Capability[VectorSearchEngine], collections: tuple[CorpusCollection, ...] = DEFAULT_COLLECTIONS, limit: int | None = None, threshold: float | None = None) -> None:
        self._store = vector_store
        self._collections = collections
        self._limit = limit if limit is not None else settings.MAX_RESULTS_PER_TABLE
        self._threshold = threshold if threshold is not None else settings.SIMILARITY_THRESHOLD


    async def _search_collection(self, store: VectorSearchEngine, collection: CorpusCollection, query_vector: list[float]) -> list[RetrievedContextItem]:
        rows = await store.search(collection.name, query_vector, threshold=self._threshold, limit=self._limit)
        return [collection.to_item(row) for row in rows]


    async def assemble(self, query_vector: list[float]) -> list[RetrievedContextItem]:
        """Search every collection concurrently and concatenate the hits."""
        try:
            store = self._store.require()
        except ProviderUnavailableError as exc:
            logger.error("[SEARCH] %s", exc)
            return []

        t_start = time.perf_counter()
        outcomes = await asyncio.gather(*(self._search_collection(store, c, query_vector) for c in self._collections), return_exceptions=True)

        items: list[RetrievedContextItem] = []
        for collection, outcome in zip(self._collections, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("[SEARCH] Error matching %s: %s", collection.name, outcome)
                continue
            items.extend(outcome)

        logger.info("[SEARCH] %d context item(s) from %d collection(s) in %.1fms", len(items), len(self._collections), (time.perf_counter() - t_start) * 1000)
        return items


    async def corpus_stats(self) -> CorpusStats:
        """Row counts per collection, ``0`` wherever a count fails."""
        try:
            store = self._store.require()
        except ProviderUnavailableError as exc:
            logger.warning("[STATS] %s", exc)
            return CorpusStats()

        outcomes = await asyncio.gather(*(store.count(c.name) for c in self._collections), return_exceptions=True)

        counts: dict[str, int] = {}
        for collection, outcome in zip(self._collections, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("[STATS] Error counting %s: %s", collection.name, outcome)
                counts[collection.name] = 0
            else:
                counts[collection.name] = int(outcome or 0)

        return CorpusStats(**{k: v for k, v in counts.items() if k in CorpusStats.model_fields})
