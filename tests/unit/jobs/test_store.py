"""Tests for the in-memory TTL job store."""

import asyncio

import pytest

from magic_actions.config import get_settings
from magic_actions.jobs.store import (
    InMemoryJobStore,
    get_job_store,
    reset_job_store,
    set_job_store,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ttl_store(clock):
    return InMemoryJobStore(clock=clock)


class TestRecords:
    @pytest.mark.asyncio
    async def test_put_get(self, ttl_store):
        await ttl_store.put("job:1", {"status": "queued"}, 60)
        assert await ttl_store.get("job:1") == {"status": "queued"}

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, ttl_store):
        assert await ttl_store.get("job:missing") is None
        assert not await ttl_store.exists("job:missing")

    @pytest.mark.asyncio
    async def test_record_expires_after_ttl(self, ttl_store, clock):
        await ttl_store.put("job:1", {"status": "completed"}, 60)

        clock.advance(59)
        assert await ttl_store.exists("job:1")

        clock.advance(1)
        assert await ttl_store.get("job:1") is None

    @pytest.mark.asyncio
    async def test_write_resets_ttl(self, ttl_store, clock):
        await ttl_store.put("job:1", {"status": "queued"}, 60)
        clock.advance(50)
        await ttl_store.put("job:1", {"status": "processing"}, 60)
        clock.advance(50)

        assert await ttl_store.get("job:1") == {"status": "processing"}

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, ttl_store):
        await ttl_store.put("job:1", {"result": {"tags": ["a"]}}, 60)

        record = await ttl_store.get("job:1")
        record["result"]["tags"].append("b")

        assert await ttl_store.get("job:1") == {"result": {"tags": ["a"]}}

    @pytest.mark.asyncio
    async def test_delete(self, ttl_store):
        await ttl_store.put("job:1", {"x": 1}, 60)
        await ttl_store.delete("job:1")
        await ttl_store.delete("job:never")
        assert await ttl_store.get("job:1") is None

    @pytest.mark.asyncio
    async def test_record_count_skips_expired(self, ttl_store, clock):
        await ttl_store.put("a", {}, 10)
        await ttl_store.put("b", {}, 100)
        clock.advance(20)
        assert ttl_store.record_count() == 1


class TestOrderedSets:
    @pytest.mark.asyncio
    async def test_append_unique_keeps_order(self, ttl_store):
        assert await ttl_store.append_unique("batch:1:members", "j1", 60)
        assert await ttl_store.append_unique("batch:1:members", "j2", 60)
        assert not await ttl_store.append_unique("batch:1:members", "j1", 60)

        assert await ttl_store.members("batch:1:members") == ["j1", "j2"]

    @pytest.mark.asyncio
    async def test_concurrent_appends_all_land_once(self, ttl_store):
        """Concurrent appends of distinct ids all land; duplicates are stored once."""
        ids = [f"job-{i}" for i in range(20)]
        await asyncio.gather(
            *(ttl_store.append_unique("members", job_id, 60) for job_id in ids + ids)
        )

        members = await ttl_store.members("members")
        assert sorted(members) == sorted(ids)
        assert len(members) == len(ids)

    @pytest.mark.asyncio
    async def test_set_expires(self, ttl_store, clock):
        await ttl_store.append_unique("members", "j1", 30)
        clock.advance(31)
        assert await ttl_store.members("members") == []

    @pytest.mark.asyncio
    async def test_remove_member(self, ttl_store):
        await ttl_store.append_unique("members", "j1", 60)
        await ttl_store.append_unique("members", "j2", 60)

        await ttl_store.remove_member("members", "j1")
        await ttl_store.remove_member("unknown", "j1")

        assert await ttl_store.members("members") == ["j2"]


class TestExpirySweep:
    @pytest.mark.asyncio
    async def test_writes_free_expired_keys(self, ttl_store, clock):
        for i in range(1000):
            await ttl_store.put(f"job:{i}", {"status": "completed"}, 10)
            await ttl_store.append_unique(f"context:entry:{i}", f"job:{i}", 10)

        clock.advance(100)
        await ttl_store.put("job:fresh", {"status": "queued"}, 10)

        assert ttl_store.record_count() == 1
        assert list(ttl_store._records) == ["job:fresh"]
        assert ttl_store._sets == {}

    @pytest.mark.asyncio
    async def test_sweep_is_throttled(self, clock):
        store = InMemoryJobStore(clock=clock, sweep_interval=60)
        await store.put("job:old", {"status": "completed"}, 1)

        clock.advance(2)
        await store.put("job:new", {"status": "queued"}, 60)
        assert len(store._records) == 2

        assert store.purge_expired() == 1
        assert list(store._records) == ["job:new"]

    @pytest.mark.asyncio
    async def test_purge_keeps_live_keys(self, ttl_store, clock):
        await ttl_store.put("job:1", {"status": "queued"}, 60)
        await ttl_store.append_unique("batch:b1:members", "job:1", 60)

        clock.advance(30)

        assert ttl_store.purge_expired() == 0
        assert await ttl_store.members("batch:b1:members") == ["job:1"]


class TestSingleton:
    def test_defaults_to_memory(self, monkeypatch):
        monkeypatch.setenv("JOB_STORE_BACKEND", "memory")
        get_settings.cache_clear()
        try:
            reset_job_store()
            assert isinstance(get_job_store(), InMemoryJobStore)
            assert get_job_store() is get_job_store()
        finally:
            get_settings.cache_clear()

    def test_set_job_store(self):
        custom = InMemoryJobStore()
        set_job_store(custom)
        assert get_job_store() is custom
