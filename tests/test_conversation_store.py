"""
Tests for the conversation stores.

The in-memory store is exercised directly; the MongoDB store runs against
a mocked ``motor`` collection so the update documents can be inspected.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from ratemate.config.settings import Settings
from ratemate.src.core.conversation_store import ConversationStore, InMemoryConversationStore, MongoConversationStore, build_conversation_store
from ratemate.src.core.models import ConversationTurn


def _pair(n: int) -> list[ConversationTurn]:
    return [ConversationTurn(role="user", content=f"q{n}"), ConversationTurn(role="assistant", content=f"a{n}")]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryConversationStore:
    @pytest.mark.asyncio
    async def test_unknown_session_is_empty(self):
        store = InMemoryConversationStore(max_turns=20, idle_ttl_seconds=0)

        assert await store.get("nobody") == []

    @pytest.mark.asyncio
    async def test_append_preserves_order(self):
        store = InMemoryConversationStore(max_turns=20, idle_ttl_seconds=0)

        await store.append("s1", _pair(1))
        await store.append("s1", _pair(2))

        assert [t.content for t in await store.get("s1")] == ["q1", "a1", "q2", "a2"]

    @pytest.mark.asyncio
    async def test_history_capped_at_most_recent_turns(self):
        store = InMemoryConversationStore(max_turns=20, idle_ttl_seconds=0)

        for n in range(1, 16):
            await store.append("s1", _pair(n))

        history = await store.get("s1")
        assert len(history) == 20
        assert history[0] == ConversationTurn(role="user", content="q6")
        assert history[-1] == ConversationTurn(role="assistant", content="a15")

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self):
        store = InMemoryConversationStore(max_turns=20, idle_ttl_seconds=0)

        await store.append("a", _pair(1))
        await store.append("b", _pair(2))

        assert [t.content for t in await store.get("a")] == ["q1", "a1"]
        assert [t.content for t in await store.get("b")] == ["q2", "a2"]

    @pytest.mark.asyncio
    async def test_get_returns_a_copy(self):
        store = InMemoryConversationStore(max_turns=20, idle_ttl_seconds=0)
        await store.append("s1", _pair(1))

        history = await store.get("s1")
        history.clear()

        assert len(await store.get("s1")) == 2

    @pytest.mark.asyncio
    async def test_idle_sessions_are_evicted(self):
        clock = FakeClock()
        store = InMemoryConversationStore(max_turns=20, idle_ttl_seconds=60, clock=clock)
        await store.append("old", _pair(1))

        clock.now += 30
        await store.append("fresh", _pair(2))
        clock.now += 45

        assert await store.get("old") == []
        assert len(await store.get("fresh")) == 2
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_eviction(self):
        clock = FakeClock()
        store = InMemoryConversationStore(max_turns=20, idle_ttl_seconds=0, clock=clock)
        await store.append("s1", _pair(1))

        clock.now += 10**9

        assert len(await store.get("s1")) == 2

    @pytest.mark.asyncio
    async def test_rewritten_session_outlives_later_idle_ones(self):
        clock = FakeClock()
        store = InMemoryConversationStore(max_turns=20, idle_ttl_seconds=60, clock=clock)
        await store.append("first", _pair(1))
        clock.now += 10
        await store.append("second", _pair(2))
        clock.now += 40
        await store.append("first", _pair(3))
        clock.now += 25

        assert await store.get("second") == []
        assert len(await store.get("first")) == 4
        assert list(store._last_seen) == ["first"]


@pytest.fixture
def mongo_collection():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.update_one = AsyncMock()
    collection.create_index = AsyncMock()
    return collection


@pytest.fixture
def mongo_store(mongo_collection):
    client = MagicMock()
    client.__getitem__.return_value.__getitem__.return_value = mongo_collection
    return MongoConversationStore(db_name="ratemate_test", max_turns=20, idle_ttl_seconds=3600, client=client)


class TestMongoConversationStore:
    def test_is_a_conversation_store(self, mongo_store):
        assert isinstance(mongo_store, ConversationStore)

    @pytest.mark.asyncio
    async def test_get_unknown_session(self, mongo_store, mongo_collection):
        assert await mongo_store.get("s1") == []

        query, projection = mongo_collection.find_one.await_args.args
        assert query == {"session_id": "s1"}
        assert projection == {"messages": {"$slice": -20}}

    @pytest.mark.asyncio
    async def test_get_parses_messages(self, mongo_store, mongo_collection):
        mongo_collection.find_one.return_value = {"session_id": "s1", "messages": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]}

        history = await mongo_store.get("s1")

        assert history == [ConversationTurn(role="user", content="hi"), ConversationTurn(role="assistant", content="hello")]

    @pytest.mark.asyncio
    async def test_append_is_a_single_capped_push(self, mongo_store, mongo_collection):
        await mongo_store.append("s1", _pair(1))

        mongo_collection.update_one.assert_awaited_once()
        query, update = mongo_collection.update_one.await_args.args
        assert query == {"session_id": "s1"}
        assert update["$push"]["messages"] == {
            "$each": [{"role": "user", "content": "q1"}, {"role": "assistant", "content": "a1"}],
            "$slice": -20,
        }
        assert "updated_at" in update["$set"]
        assert "created_at" in update["$setOnInsert"]
        assert mongo_collection.update_one.await_args.kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_ensure_indexes_adds_ttl(self, mongo_store, mongo_collection):
        await mongo_store.ensure_indexes()

        calls = mongo_collection.create_index.await_args_list
        assert calls[0].args == ("session_id",)
        assert calls[0].kwargs == {"unique": True}
        assert calls[1].args == ("updated_at",)
        assert calls[1].kwargs == {"expireAfterSeconds": 3600}


class TestBuildConversationStore:
    def test_memory_backend(self, dev_settings):
        store = build_conversation_store(dev_settings)

        assert isinstance(store, InMemoryConversationStore)

    def test_mongo_backend_requires_uri(self, tmp_path):
        config = Settings(SESSION_BACKEND="mongo", MONGO_URI=None, LANCEDB_PATH=tmp_path)

        with pytest.raises(ValueError, match="MONGO_URI"):
            build_conversation_store(config)
