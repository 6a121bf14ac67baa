"""Concurrency tests for the session pool."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from fleet_admin.models import HealthState, HostRecord, Session
from fleet_admin.services.pool import SessionPool


@pytest.fixture
def slow_connector() -> MagicMock:
    """Connector whose connect takes 0.1s."""
    connector = MagicMock()

    async def slow_connect(address: str) -> Session:
        await asyncio.sleep(0.1)
        return Session(address=address, handle=MagicMock(), health=HealthState.HEALTHY)

    connector.connect = AsyncMock(side_effect=slow_connect)
    connector.probe = AsyncMock()
    connector.close = AsyncMock()
    return connector


class TestPoolConcurrency:
    """Test concurrent access to the session pool."""

    @pytest.mark.asyncio
    async def test_concurrent_same_address_connects_once(
        self, slow_connector: MagicMock
    ) -> None:
        """Two concurrent acquires for one address share a single connect."""
        pool = SessionPool(slow_connector)
        host = HostRecord(name="web-01", address="web-01.example.local")

        first, second = await asyncio.gather(pool.acquire(host), pool.acquire(host))

        assert slow_connector.connect.await_count == 1
        assert pool.count() == 1
        assert first is second

    @pytest.mark.asyncio
    async def test_same_address_under_different_names(
        self, slow_connector: MagicMock
    ) -> None:
        """Pooling is keyed by address, not host name."""
        pool = SessionPool(slow_connector)
        alias_a = HostRecord(name="web", address="web-01.example.local")
        alias_b = HostRecord(name="web-primary", address="web-01.example.local")

        await asyncio.gather(pool.acquire(alias_a), pool.acquire(alias_b))

        assert slow_connector.connect.await_count == 1
        assert pool.count() == 1

    @pytest.mark.asyncio
    async def test_concurrent_different_addresses_do_not_block(
        self, slow_connector: MagicMock, hosts: list[HostRecord]
    ) -> None:
        """Different addresses connect in parallel, not serially."""
        pool = SessionPool(slow_connector)

        loop = asyncio.get_running_loop()
        start = loop.time()
        await asyncio.gather(*(pool.acquire(h) for h in hosts))
        elapsed = loop.time() - start

        # ~0.1s when parallel, ~0.3s when serial
        assert elapsed < 0.25, f"Expected parallel connects, got {elapsed:.3f}s"
        assert pool.count() == 3

    @pytest.mark.asyncio
    async def test_many_concurrent_acquires_mixed(
        self, slow_connector: MagicMock, hosts: list[HostRecord]
    ) -> None:
        """Ten acquires over three hosts create exactly three sessions."""
        pool = SessionPool(slow_connector)
        targets = [hosts[i % 3] for i in range(10)]

        sessions = await asyncio.gather(*(pool.acquire(h) for h in targets))

        assert slow_connector.connect.await_count == 3
        assert pool.count() == 3
        by_address = {s.address: s for s in sessions}
        for target, session in zip(targets, sessions):
            assert session is by_address[target.address]

    @pytest.mark.asyncio
    async def test_evict_during_acquire_waits_for_creation(
        self, slow_connector: MagicMock
    ) -> None:
        """Eviction holds the same per-address lock as creation."""
        pool = SessionPool(slow_connector)
        host = HostRecord(name="web-01", address="web-01.example.local")

        acquire_task = asyncio.create_task(pool.acquire(host))
        await asyncio.sleep(0.01)
        await pool.evict(host.address)
        session = await acquire_task

        # The evict ran after the session was pooled, so it closed it
        slow_connector.close.assert_awaited_once_with(session)
        assert pool.count() == 0


def session_connector(
    probe_delay: dict[str, float] | None = None, close_delay: float = 0.0
) -> MagicMock:
    """Connector with per-address probe latency and a uniform close latency."""
    connector = MagicMock()
    delays = probe_delay or {}

    async def connect(address: str) -> Session:
        return Session(address=address, handle=MagicMock(), health=HealthState.HEALTHY)

    async def probe(session: Session) -> None:
        await asyncio.sleep(delays.get(session.address, 0))

    async def close(session: Session) -> None:
        await asyncio.sleep(close_delay)

    connector.connect = AsyncMock(side_effect=connect)
    connector.probe = AsyncMock(side_effect=probe)
    connector.close = AsyncMock(side_effect=close)
    return connector


class TestEvictionConcurrency:
    """Eviction paths racing acquires for other addresses."""

    @pytest.mark.asyncio
    async def test_lru_skips_session_under_health_check(self) -> None:
        """A session mid-probe is never chosen as the LRU victim."""
        connector = session_connector(probe_delay={"a.local": 0.1})
        pool = SessionPool(connector, max_size=1)
        a = HostRecord(name="a", address="a.local")
        b = HostRecord(name="b", address="b.local")
        original = await pool.acquire(a)

        reused, created = await asyncio.gather(pool.acquire(a), pool.acquire(b))

        assert reused is original
        assert created.address == "b.local"
        connector.close.assert_not_awaited()
        assert sorted(pool.active_addresses) == ["a.local", "b.local"]

    @pytest.mark.asyncio
    async def test_lru_picks_next_idle_session(self) -> None:
        """With the oldest session busy, the next oldest idle one is evicted."""
        connector = session_connector(probe_delay={"a.local": 0.1})
        pool = SessionPool(connector, max_size=2)
        a = HostRecord(name="a", address="a.local")
        b = HostRecord(name="b", address="b.local")
        c = HostRecord(name="c", address="c.local")
        first = await pool.acquire(a)
        second = await pool.acquire(b)

        reused, _ = await asyncio.gather(pool.acquire(a), pool.acquire(c))

        assert reused is first
        connector.close.assert_awaited_once_with(second)
        assert sorted(pool.active_addresses) == ["a.local", "c.local"]

    @pytest.mark.asyncio
    async def test_oversized_pool_shrinks_on_next_acquire(self) -> None:
        connector = session_connector(probe_delay={"a.local": 0.1})
        pool = SessionPool(connector, max_size=1)
        a = HostRecord(name="a", address="a.local")
        b = HostRecord(name="b", address="b.local")
        await pool.acquire(a)
        await asyncio.gather(pool.acquire(a), pool.acquire(b))
        assert pool.count() == 2

        await pool.acquire(HostRecord(name="c", address="c.local"))

        assert pool.active_addresses == ["c.local"]
        assert connector.close.await_count == 2

    @pytest.mark.asyncio
    async def test_evict_with_slow_close_races_lru(self) -> None:
        """An explicit evict in progress is not closed a second time by the LRU."""
        connector = session_connector(close_delay=0.1)
        pool = SessionPool(connector, max_size=1)
        a = HostRecord(name="a", address="a.local")
        b = HostRecord(name="b", address="b.local")
        session_a = await pool.acquire(a)

        _, session_b = await asyncio.gather(pool.evict(a.address), pool.acquire(b))

        connector.close.assert_awaited_once_with(session_a)
        assert pool.active_addresses == ["b.local"]
        assert session_b.address == "b.local"

    @pytest.mark.asyncio
    async def test_sweep_with_slow_close_races_acquire(self) -> None:
        connector = session_connector(close_delay=0.1)
        pool = SessionPool(connector, max_size=1)
        a = HostRecord(name="a", address="a.local")
        b = HostRecord(name="b", address="b.local")
        session_a = await pool.acquire(a)

        removed, _ = await asyncio.gather(
            pool.sweep_idle(timedelta(seconds=-1)), pool.acquire(b)
        )

        connector.close.assert_awaited_once_with(session_a)
        assert removed == 1
        assert pool.active_addresses == ["b.local"]

    @pytest.mark.asyncio
    async def test_locks_released_after_eviction(self, hosts: list[HostRecord]) -> None:
        pool = SessionPool(session_connector(), max_size=2)

        for host in hosts:
            await pool.acquire(host)
        assert set(pool._address_locks) == set(pool.active_addresses)

        await pool.flush()

        assert pool._address_locks == {}
        assert pool._lock_users == {}
