"""Per-address session pool with lazy health checks.

Locking Strategy:
- Per-address locks: Serialize get-or-create, probe, eviction and sweep
  for one address. Every path that closes or removes an entry holds the
  lock of that entry's address.
- `_lock_users`: Number of tasks holding or waiting for each address lock.
  Reserving and releasing a lock never awaits, so the bookkeeping is
  atomic on the event loop. A lock is dropped once it has no users and
  its address has no pooled entry.
- LRU eviction only picks victims whose lock has no users, so the victim
  lock is taken without waiting and two acquires can never wait on each
  other's address.

Health:
- No background timer; every acquire probes the pooled session first
- A failed probe evicts (close, then remove) and falls through to connect

LRU Eviction:
- Uses OrderedDict with move_to_end() for O(1) LRU tracking
- Eviction happens when pool reaches max_size before creating new session
- If every pooled session is busy the pool grows past max_size until a
  later acquire can evict
"""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from fleet_admin.models import PoolEntry, Session
from fleet_admin.services.connection import HealthCheckFailure

if TYPE_CHECKING:
    from fleet_admin.models import HostRecord
    from fleet_admin.protocols import Connector

logger = logging.getLogger(__name__)


class SessionPool:
    """Session cache keyed by host address with size limit and LRU eviction."""

    def __init__(
        self,
        connector: "Connector",
        max_size: int = 100,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize pool.

        Args:
            connector: Default session factory used on cache miss
            max_size: Maximum number of pooled sessions (must be > 0)
            clock: Source of the current time for idle tracking

        Raises:
            ValueError: If max_size is not positive
        """
        if max_size <= 0:
            raise ValueError(f"max_size must be > 0, got {max_size}")

        self.connector = connector
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, PoolEntry] = OrderedDict()
        self._address_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

        logger.info("SessionPool initialized (max_size=%d)", max_size)

    def _reserve(self, address: str) -> asyncio.Lock:
        """Register interest in an address lock, creating it if needed."""
        lock = self._address_locks.get(address)
        if lock is None:
            lock = self._address_locks[address] = asyncio.Lock()
        self._lock_users[address] = self._lock_users.get(address, 0) + 1
        return lock

    def _release(self, address: str) -> None:
        users = self._lock_users[address] - 1
        if users:
            self._lock_users[address] = users
            return
        del self._lock_users[address]
        if address not in self._entries:
            del self._address_locks[address]

    @asynccontextmanager
    async def _address_guard(self, address: str) -> AsyncIterator[None]:
        """Hold the lock for one address."""
        lock = self._reserve(address)
        try:
            async with lock:
                yield
        finally:
            self._release(address)

    def _is_busy(self, address: str) -> bool:
        return self._lock_users.get(address, 0) > 0

    async def _close(self, entry: PoolEntry) -> None:
        connector = entry.connector or self.connector
        try:
            await connector.close(entry.session)
        except Exception as e:
            logger.warning("Error closing session to %s: %s", entry.session.address, e)

    async def _remove(self, address: str) -> bool:
        """Close and drop the entry for an address. Caller holds its lock."""
        entry = self._entries.get(address)
        if entry is None:
            return False
        try:
            await self._close(entry)
        finally:
            if self._entries.get(address) is entry:
                del self._entries[address]
        return True

    async def _evict_lru_if_needed(self) -> None:
        """Evict least recently used idle sessions while at capacity."""
        while len(self._entries) >= self.max_size:
            victim = next(
                (address for address in self._entries if not self._is_busy(address)),
                None,
            )
            if victim is None:
                logger.warning(
                    "Pool at capacity (%d/%d) and every session is in use, "
                    "growing past max_size",
                    len(self._entries),
                    self.max_size,
                )
                return

            logger.info(
                "Pool at capacity (%d/%d), evicting LRU: %s",
                len(self._entries),
                self.max_size,
                victim,
            )
            # The victim has no users, so its lock is free and taken at once
            async with self._address_guard(victim):
                await self._remove(victim)

    async def acquire(
        self,
        host: "HostRecord",
        connector: "Connector | None" = None,
    ) -> Session:
        """Get a freshly probed or freshly created session for a host.

        Args:
            host: Target host
            connector: Session factory overriding the pool default when a
                new session has to be created

        Returns:
            Healthy session

        Raises:
            ConnectionError: If a new session could not be established
        """
        connector = connector or self.connector
        address = host.address

        async with self._address_guard(address):
            entry = self._entries.get(address)

            if entry is not None:
                try:
                    await (entry.connector or connector).probe(entry.session)
                except HealthCheckFailure as e:
                    logger.info(
                        "Session to %s (%s) failed health probe, evicting: %s",
                        host.name,
                        address,
                        e.cause,
                    )
                    await self._remove(address)
                else:
                    if self._entries.get(address) is entry:
                        entry.touch(self._clock())
                        self._entries.move_to_end(address)
                        logger.debug(
                            "Reusing session to %s (pool_size=%d)",
                            host.name,
                            len(self._entries),
                        )
                        return entry.session
                    logger.warning("Session to %s left the pool during its probe", host.name)

            await self._evict_lru_if_needed()

            logger.info("Connecting to %s (%s)", host.name, address)
            # Network I/O happens here - only blocks same address, not all hosts
            session = await connector.connect(address)

            try:
                now = self._clock()
                session.last_used_at = now
                self._entries[address] = PoolEntry(
                    session=session, last_used=now, connector=connector
                )
            except BaseException:
                await self._close(PoolEntry(session=session, connector=connector))
                raise

            logger.info(
                "Pooled session to %s (pool_size=%d/%d)",
                host.name,
                len(self._entries),
                self.max_size,
            )
            return session

    async def evict(self, address: str) -> None:
        """Close and remove one session. No-op if absent.

        Args:
            address: Address of the session to remove.
        """
        async with self._address_guard(address):
            if address not in self._entries:
                logger.debug("No session to evict for %s (not in pool)", address)
                return

            logger.info(
                "Evicting session to %s (pool_size=%d)",
                address,
                len(self._entries) - 1,
            )
            await self._remove(address)

    async def sweep_idle(self, max_idle: timedelta) -> int:
        """Close sessions unused for longer than ``max_idle``.

        Args:
            max_idle: Maximum idle time before a session is closed

        Returns:
            Number of sessions removed
        """
        cutoff = self._clock() - max_idle
        removed = 0

        for address in list(self._entries):
            async with self._address_guard(address):
                entry = self._entries.get(address)
                if entry is None or entry.last_used >= cutoff:
                    continue

                logger.info(
                    "Closing idle session to %s (idle since %s, pool_size=%d)",
                    address,
                    entry.last_used.isoformat(timespec="seconds"),
                    len(self._entries) - 1,
                )
                if await self._remove(address):
                    removed += 1

        if removed:
            logger.debug(
                "Idle sweep complete: removed %d session(s), %d remaining",
                removed,
                len(self._entries),
            )
        return removed

    async def flush(self) -> None:
        """Close all sessions."""
        addresses = list(self._entries)

        if addresses:
            logger.info("Closing all %d session(s)", len(addresses))
            for address in addresses:
                await self.evict(address)

    def count(self) -> int:
        """Return the current number of pooled sessions."""
        return len(self._entries)

    def last_used(self, address: str) -> datetime | None:
        """Return when the session for an address was last handed out."""
        entry = self._entries.get(address)
        return entry.last_used if entry else None

    @property
    def active_addresses(self) -> list[str]:
        """Return addresses with pooled sessions, least recently used first."""
        return list(self._entries.keys())
