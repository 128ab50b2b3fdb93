"""
RateMate - Conversation Stores
================================
Per-session bounded chat history behind a two-method interface
(``get`` / ``append``), so the answer pipeline never depends on where
turns actually live.

``InMemoryConversationStore``
    Process-wide dict.  Nothing survives a restart and nothing is shared
    between instances: a known constraint of the default deployment.
    Sessions idle longer than ``idle_ttl_seconds`` are evicted lazily.

``MongoConversationStore``
    Async store backed by MongoDB via ``motor``.  Each append is one
    atomic ``$push`` with ``$slice``; a TTL index on ``updated_at``
    expires idle sessions.

Both stores *append* to whatever is stored at write time rather than
writing back a copy read earlier, so two concurrent requests on the same
session never overwrite each other's turns.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any

from ratemate.config.settings import settings
from ratemate.src.core.models import ConversationTurn
from ratemate.src.utils.logger import get_logger

logger = get_logger(__name__)


class ConversationStore(ABC):
    """Interface for per-session conversation history."""

    @abstractmethod
    async def get(self, session_id: str) -> list[ConversationTurn]:
        """Return the session's turns in chronological order (empty if unknown)."""

    @abstractmethod
    async def append(self, session_id: str, turns: list[ConversationTurn]) -> None:
        """Append *turns* and keep only the most recent ``max_turns``."""

    async def close(self) -> None:
        """Release any held resources."""


# ══════════════════════════════════════════════════════════════════════
#  IN-MEMORY STORE
# ══════════════════════════════════════════════════════════════════════


class InMemoryConversationStore(ConversationStore):
    """
    Dict-backed history store.

    Parameters
    ----------
    max_turns
        Cap on stored turns per session.  Defaults to ``SESSION_HISTORY_LIMIT``.
    idle_ttl_seconds
        Evict sessions untouched for this long; ``0`` disables eviction.
    clock
        Monotonic time source, injectable for tests.
    """

    def __init__(self, max_turns: int | None = None, idle_ttl_seconds: int | None = None, clock=time.monotonic) -> None:
        self._max_turns = max_turns or settings.SESSION_HISTORY_LIMIT
        self._idle_ttl = idle_ttl_seconds if idle_ttl_seconds is not None else settings.SESSION_IDLE_TTL_SECONDS
        self._clock = clock
        self._histories: dict[str, list[ConversationTurn]] = {}
        # Least recently written first
        self._last_seen: OrderedDict[str, float] = OrderedDict()


    def __len__(self) -> int:
        return len(self._histories)


    def _evict_idle(self) -> None:
        if not self._idle_ttl:
            return
        cutoff = self._clock() - self._idle_ttl
        evicted = 0
        while self._last_seen:
            sid, seen = next(iter(self._last_seen.items()))
            if seen >= cutoff:
                break
            del self._last_seen[sid]
            self._histories.pop(sid, None)
            evicted += 1
        if evicted:
            logger.info("[SESSION] Evicted %d idle session(s).", evicted)


    async def get(self, session_id: str) -> list[ConversationTurn]:
        self._evict_idle()
        return list(self._histories.get(session_id, []))


    async def append(self, session_id: str, turns: list[ConversationTurn]) -> None:
        self._evict_idle()
        history = self._histories.get(session_id, []) + list(turns)
        self._histories[session_id] = history[-self._max_turns:]
        self._last_seen[session_id] = self._clock()
        self._last_seen.move_to_end(session_id)
        logger.debug("[SESSION] '%s' now holds %d turn(s).", session_id, len(self._histories[session_id]))


# ══════════════════════════════════════════════════════════════════════
#  MONGO STORE
# ══════════════════════════════════════════════════════════════════════


class MongoConversationStore(ConversationStore):
    """
    Chat-history store backed by MongoDB via ``motor``.

    Every query filters by ``session_id``.  Collection schema
    (``sessions``)::

        {
            "session_id": str,
            "messages": [{"role": str, "content": str}, ...],
            "created_at": datetime,
            "updated_at": datetime
        }
    """

    __slots__ = ("_client", "_collection", "_max_turns", "_idle_ttl")

    def __init__(self, uri: str | None = None, db_name: str | None = None, collection_name: str = "sessions", max_turns: int | None = None, idle_ttl_seconds: int | None = None, client: Any = None) -> None:
        if client is None:
            import motor.motor_asyncio

            if uri is None:
                if settings.MONGO_URI is None:
                    raise ValueError("MONGO_URI must be set when SESSION_BACKEND is 'mongo'.")
                uri = settings.MONGO_URI.get_secret_value()
            client = motor.motor_asyncio.AsyncIOMotorClient(uri)
            logger.info("MongoDB async client created.")
        self._client = client
        self._collection = client[db_name or settings.MONGO_DB_NAME][collection_name]
        self._max_turns = max_turns or settings.SESSION_HISTORY_LIMIT
        self._idle_ttl = idle_ttl_seconds if idle_ttl_seconds is not None else settings.SESSION_IDLE_TTL_SECONDS


    async def ensure_indexes(self) -> None:
        """Unique ``session_id`` index plus TTL expiry on ``updated_at``."""
        await self._collection.create_index("session_id", unique=True)
        if self._idle_ttl:
            await self._collection.create_index("updated_at", expireAfterSeconds=self._idle_ttl)


    async def get(self, session_id: str) -> list[ConversationTurn]:
        doc = await self._collection.find_one({"session_id": session_id}, {"messages": {"$slice": -self._max_turns}})
        if doc is None:
            return []
        return [ConversationTurn(**m) for m in doc.get("messages", [])]


    async def append(self, session_id: str, turns: list[ConversationTurn]) -> None:
        now = datetime.now(timezone.utc)
        messages = [turn.model_dump() for turn in turns]
        await self._collection.update_one({"session_id": session_id}, {"$push": {"messages": {"$each": messages, "$slice": -self._max_turns}}, "$set": {"updated_at": now}, "$setOnInsert": {"created_at": now}}, upsert=True)


    async def close(self) -> None:
        self._client.close()


def build_conversation_store(config=None) -> ConversationStore:
    """Instantiate the store selected by ``SESSION_BACKEND``."""
    config = config or settings
    if config.SESSION_BACKEND == "mongo":
        uri = config.MONGO_URI.get_secret_value() if config.MONGO_URI else None
        if uri is None:
            raise ValueError("MONGO_URI must be set when SESSION_BACKEND is 'mongo'.")
        return MongoConversationStore(uri=uri, db_name=config.MONGO_DB_NAME, max_turns=config.SESSION_HISTORY_LIMIT, idle_ttl_seconds=config.SESSION_IDLE_TTL_SECONDS)
    return InMemoryConversationStore(max_turns=config.SESSION_HISTORY_LIMIT, idle_ttl_seconds=config.SESSION_IDLE_TTL_SECONDS)
