"""In-memory realtime store tests."""

import pytest

from queueline.services.realtime import MemoryStore
from queueline.services.realtime.base import generate_push_id, normalize, write_at


class TestTreeHelpers:
    def test_normalize_drops_empty(self):
        assert normalize({"a": None, "b": {}, "c": {"d": None}}) is None
        assert normalize({"a": 1, "b": None}) == {"a": 1}

    def test_write_prunes_empty_parents(self):
        tree = write_at(None, ["queues", "waiting", "x"], {"name": "A"})
        assert tree == {"queues": {"waiting": {"x": {"name": "A"}}}}
        assert write_at(tree, ["queues", "waiting", "x"], None) is None

    def test_push_id_shape(self):
        first = generate_push_id()
        assert len(first) == 20
        assert first != generate_push_id()


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_set_and_get(self):
        store = MemoryStore()
        await store.set("queues/waiting/a", {"name": "Alice"})
        assert await store.get("queues/waiting/a") == {"name": "Alice"}
        assert await store.get("queues/waiting") == {"a": {"name": "Alice"}}
        assert await store.get("queues/serving") is None

    @pytest.mark.asyncio
    async def test_get_returns_copy(self):
        store = MemoryStore({"a": {"b": 1}})
        value = await store.get("a")
        value["b"] = 2
        assert await store.get("a/b") == 1

    @pytest.mark.asyncio
    async def test_set_none_deletes(self):
        store = MemoryStore({"a": {"b": 1}})
        await store.set("a/b", None)
        assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_multi_path_update(self):
        store = MemoryStore({"queues": {"waiting": {"x": {"name": "A"}}}})
        await store.update("queues", {"waiting/x": None, "serving/x": {"name": "A"}})
        assert await store.get("queues") == {"serving": {"x": {"name": "A"}}}

    @pytest.mark.asyncio
    async def test_update_requires_children(self):
        with pytest.raises(ValueError):
            await MemoryStore().update("queues", {})

    @pytest.mark.asyncio
    async def test_transaction_returns_committed_value(self):
        store = MemoryStore({"counter": 1})
        result = await store.transaction("counter", lambda current: (current or 0) + 1)
        assert result == 2
        assert await store.get("counter") == 2

    @pytest.mark.asyncio
    async def test_transaction_error_aborts(self):
        store = MemoryStore({"counter": 1})

        def fail(current):
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await store.transaction("counter", fail)
        assert await store.get("counter") == 1


class TestListeners:
    @pytest.mark.asyncio
    async def test_initial_value_delivered(self):
        store = MemoryStore({"a": 1})
        seen = []
        store.listen("a", seen.append)
        store.listen("missing", seen.append)
        assert seen == [1, None]

    @pytest.mark.asyncio
    async def test_changes_delivered_in_order(self):
        store = MemoryStore()
        seen = []
        store.listen("queues/waiting", seen.append)
        await store.set("queues/waiting/a", {"n": 1})
        await store.set("queues/waiting/b", {"n": 2})
        await store.set("queues/serving/c", {"n": 3})  # unrelated path
        assert seen == [None, {"a": {"n": 1}}, {"a": {"n": 1}, "b": {"n": 2}}]

    @pytest.mark.asyncio
    async def test_parent_write_reaches_child_listener(self):
        store = MemoryStore()
        seen = []
        store.listen("queues/waiting/a", seen.append)
        await store.update("queues", {"waiting/a": {"n": 1}})
        assert seen == [None, {"n": 1}]

    @pytest.mark.asyncio
    async def test_no_delivery_after_close(self):
        store = MemoryStore()
        seen = []
        handle = store.listen("a", seen.append)
        handle.close()
        await store.set("a", 1)
        assert seen == [None]
        assert store.listener_count() == 0

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_block_others(self):
        store = MemoryStore()
        seen = []

        def broken(value):
            if value is not None:
                raise RuntimeError("boom")

        store.listen("a", broken)
        store.listen("a", seen.append)
        await store.set("a", 1)
        assert seen == [None, 1]
