"""Contract tests shared by the in-memory and SQLite item stores."""

from __future__ import annotations

import pytest
import pytest_asyncio

from apex_mcp.domain.context.store import CacheMemoryStore, ItemStore, SQLiteItemStore
from apex_mcp.domain.errors import StoreUnavailableError


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def item_store(request, tmp_path):
    if request.param == "memory":
        return CacheMemoryStore()
    store = SQLiteItemStore(str(tmp_path / "items.db"))
    await store.initialize()
    return store


class TestItemStoreContract:
    def test_satisfies_protocol(self, item_store) -> None:
        assert isinstance(item_store, ItemStore)

    @pytest.mark.asyncio
    async def test_put_then_get(self, item_store) -> None:
        await item_store.put("context:1", '{"a": 1}', 60)
        assert await item_store.get("context:1") == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, item_store) -> None:
        assert await item_store.get("nope") is None

    @pytest.mark.asyncio
    async def test_put_replaces_value(self, item_store) -> None:
        await item_store.put("k", "old", 60)
        await item_store.put("k", "new", 60)
        assert await item_store.get("k") == "new"

    @pytest.mark.asyncio
    async def test_zero_ttl_expires_immediately(self, item_store) -> None:
        await item_store.put("k", "v", 0)
        assert await item_store.get("k") is None

    @pytest.mark.asyncio
    async def test_put_refreshes_expiry(self, item_store) -> None:
        await item_store.put("k", "v", 0)
        await item_store.put("k", "v", 60)
        assert await item_store.get("k") == "v"

    @pytest.mark.asyncio
    async def test_delete(self, item_store) -> None:
        await item_store.put("k", "v", 60)
        await item_store.delete("k")
        assert await item_store.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self, item_store) -> None:
        await item_store.delete("never-written")

    @pytest.mark.asyncio
    async def test_clear_expired_and_stats(self, item_store) -> None:
        await item_store.put("live", "v", 60)
        await item_store.put("dead", "v", 0)

        stats = await item_store.get_stats()
        assert stats["total_keys"] == 2
        assert stats["active_keys"] == 1

        assert await item_store.clear_expired() == 1
        stats = await item_store.get_stats()
        assert stats["total_keys"] == 1
        assert stats["expired_keys"] == 0


class TestSQLiteItemStore:
    @pytest.mark.asyncio
    async def test_values_survive_new_instance(self, tmp_path) -> None:
        path = str(tmp_path / "items.db")
        first = SQLiteItemStore(path)
        await first.initialize()
        await first.put("client:c1:contexts", '["a"]', 60)

        second = SQLiteItemStore(path)
        await second.initialize()
        assert await second.get("client:c1:contexts") == '["a"]'
        assert (await second.get_stats())["backend"] == "sqlite"

    @pytest.mark.asyncio
    async def test_uninitialized_database_raises_store_error(self, tmp_path) -> None:
        store = SQLiteItemStore(str(tmp_path / "empty.db"))
        with pytest.raises(StoreUnavailableError) as excinfo:
            await store.get("k")
        assert excinfo.value.operation == "get"
        assert excinfo.value.key == "k"

    @pytest.mark.asyncio
    async def test_unopenable_path_raises_store_error(self, tmp_path) -> None:
        store = SQLiteItemStore(str(tmp_path / "missing-dir" / "items.db"))
        with pytest.raises(StoreUnavailableError):
            await store.initialize()


@pytest.mark.asyncio
async def test_memory_store_stats_report_backend() -> None:
    store = CacheMemoryStore()
    assert (await store.get_stats())["backend"] == "memory"
