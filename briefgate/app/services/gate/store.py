"""Pluggable storage for gate records.

The quota counter and cooldown throttle keep their algorithms in Python and
delegate persistence to a ``GateStore``. The composition root decides the
persistence scope: ``InMemoryGateStore`` for a single process (the default),
``RedisGateStore`` when several instances must share one gate.
"""

import asyncio
import json
import math
from abc import ABC, abstractmethod
from collections import OrderedDict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from briefgate.app.core.config import settings
from briefgate.app.core.logging import get_logger
from briefgate.app.services.gate.models import CooldownRecord, QuotaRecord

logger = get_logger(__name__)


class GateStore(ABC):
    """Abstract base class for gate record stores."""

    @abstractmethod
    async def get_quota(self, key: str) -> Optional[QuotaRecord]:
        """Return the stored quota record, or None."""

    @abstractmethod
    async def put_quota(self, key: str, record: QuotaRecord) -> None:
        """Create or overwrite the quota record."""

    @abstractmethod
    async def get_cooldown(self, key: str) -> Optional[CooldownRecord]:
        """Return the stored cooldown record, or None."""

    @abstractmethod
    async def put_cooldown(
        self, key: str, record: CooldownRecord, now: Optional[datetime] = None
    ) -> None:
        """Create or overwrite the cooldown record.

        ``now`` is the caller's clock reading when the record was made; stores
        that expire records measure the remaining window from it.
        """

    @abstractmethod
    def lock(self, key: str):
        """Return an async context manager giving exclusive access to ``key``."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop all records."""

    async def ping(self) -> bool:
        """Check that the store is reachable."""
        return True

    async def close(self) -> None:
        """Release connections held by the store."""


class _KeyLock:
    """An ``asyncio.Lock`` plus the number of tasks holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class InMemoryGateStore(GateStore):
    """Process-wide dictionaries of gate records.

    Records are lost on restart and are not shared between processes. Running
    several workers multiplies the effective quota by the worker count.

    Memory is bounded:
    - Each record map holds at most ``max_entries`` keys; past that, records
      from earlier days and expired cooldowns go first, then the least
      recently used ones (``OrderedDict`` LRU)
    - A per-key lock lives only while some task holds or waits for it
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self._max_entries = max_entries or settings.gate_store_max_entries
        self._quotas: OrderedDict[str, QuotaRecord] = OrderedDict()
        self._cooldowns: OrderedDict[str, CooldownRecord] = OrderedDict()
        self._locks: Dict[str, _KeyLock] = {}

    async def get_quota(self, key: str) -> Optional[QuotaRecord]:
        record = self._quotas.get(key)
        if record is None:
            return None
        self._quotas.move_to_end(key)
        # Hand out a copy so callers mutate only through put_quota
        return QuotaRecord(identity=record.identity, day=record.day, count=record.count)

    async def put_quota(self, key: str, record: QuotaRecord) -> None:
        self._quotas[key] = QuotaRecord(identity=record.identity, day=record.day, count=record.count)
        self._quotas.move_to_end(key)
        if len(self._quotas) > self._max_entries:
            self._drop_stale_quotas(record.day)
            self._evict_lru(self._quotas, "quota")

    async def get_cooldown(self, key: str) -> Optional[CooldownRecord]:
        record = self._cooldowns.get(key)
        if record is None:
            return None
        self._cooldowns.move_to_end(key)
        return CooldownRecord(identity=record.identity, next_allowed_at=record.next_allowed_at)

    async def put_cooldown(
        self, key: str, record: CooldownRecord, now: Optional[datetime] = None
    ) -> None:
        self._cooldowns[key] = CooldownRecord(
            identity=record.identity, next_allowed_at=record.next_allowed_at
        )
        self._cooldowns.move_to_end(key)
        if len(self._cooldowns) > self._max_entries:
            if now is not None:
                self._drop_expired_cooldowns(now)
            self._evict_lru(self._cooldowns, "cooldown")

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            # Idle (no holder, no waiter): the next caller starts a fresh lock
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    async def clear(self) -> None:
        self._quotas.clear()
        self._cooldowns.clear()

    def _drop_stale_quotas(self, today: str) -> int:
        stale = [k for k, r in self._quotas.items() if r.day != today]
        for key in stale:
            del self._quotas[key]
        return len(stale)

    def _drop_expired_cooldowns(self, now: datetime) -> int:
        expired = [k for k, r in self._cooldowns.items() if r.next_allowed_at <= now]
        for key in expired:
            del self._cooldowns[key]
        return len(expired)

    def _evict_lru(self, storage: "OrderedDict[str, Any]", kind: str) -> None:
        if len(storage) <= self._max_entries:
            return
        # Trim to 80% so eviction runs in batches, keeping the newest record
        target = max(1, int(self._max_entries * 0.8))
        evicted = 0
        while len(storage) > target:
            storage.popitem(last=False)
            evicted += 1
        logger.warning(
            f"In-memory gate store full: evicted {evicted} least recently used {kind} records"
        )

    async def cleanup(self, today: str, now: datetime) -> int:
        """Remove quota records from past days and expired cooldowns.

        Returns:
            Number of records removed.
        """
        return self._drop_stale_quotas(today) + self._drop_expired_cooldowns(now)


class RedisGateStore(GateStore):
    """Redis-backed gate store shared by every instance.

    Records are JSON values with TTLs so stale days and expired cooldowns
    disappear on their own. Strict mode uses Redis locks instead of
    process-local ones.
    """

    QUOTA_TTL_SECONDS = 86400 * 2  # long enough to outlive the UTC day it belongs to

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        lock_timeout: Optional[float] = None,
    ) -> None:
        self._redis = redis_client
        self._redis_url = redis_url or settings.redis_url
        self._prefix = key_prefix or settings.redis_key_prefix
        self._lock_timeout = lock_timeout or settings.gate_lock_timeout_seconds

    def _get_redis(self) -> Any:
        if self._redis is None:
            import redis.asyncio as aioredis
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    def _quota_key(self, key: str) -> str:
        return f"{self._prefix}:quota:{key}"

    def _cooldown_key(self, key: str) -> str:
        return f"{self._prefix}:cooldown:{key}"

    def _lock_key(self, key: str) -> str:
        return f"{self._prefix}:lock:{key}"

    async def get_quota(self, key: str) -> Optional[QuotaRecord]:
        raw = await self._get_redis().get(self._quota_key(key))
        if raw is None:
            return None
        return QuotaRecord.from_dict(json.loads(raw))

    async def put_quota(self, key: str, record: QuotaRecord) -> None:
        await self._get_redis().setex(
            self._quota_key(key), self.QUOTA_TTL_SECONDS, json.dumps(record.to_dict())
        )

    async def get_cooldown(self, key: str) -> Optional[CooldownRecord]:
        raw = await self._get_redis().get(self._cooldown_key(key))
        if raw is None:
            return None
        return CooldownRecord.from_dict(json.loads(raw))

    async def put_cooldown(
        self, key: str, record: CooldownRecord, now: Optional[datetime] = None
    ) -> None:
        if now is None:
            now = datetime.now(timezone.utc)
        remaining = (record.next_allowed_at - now).total_seconds()
        ttl = max(1, math.ceil(remaining) + 1)
        await self._get_redis().setex(
            self._cooldown_key(key), ttl, json.dumps(record.to_dict())
        )

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._get_redis().lock(
            self._lock_key(key),
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_timeout,
        )
        async with lock:
            yield

    async def clear(self) -> None:
        redis = self._get_redis()
        async for name in redis.scan_iter(match=f"{self._prefix}:*"):
            await redis.delete(name)

    async def ping(self) -> bool:
        try:
            return bool(await self._get_redis().ping())
        except Exception as e:
            logger.warning(f"Redis gate store ping failed: {e}")
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


_gate_store: Optional[GateStore] = None


def create_gate_store(use_redis: Optional[bool] = None) -> GateStore:
    """Build the store selected by configuration."""
    should_use_redis = use_redis if use_redis is not None else settings.redis_enabled
    if should_use_redis:
        logger.info("Using Redis gate store")
        return RedisGateStore()
    logger.debug("Using in-memory gate store")
    return InMemoryGateStore()


def get_gate_store() -> GateStore:
    """Get the process-wide gate store, creating it on first use."""
    global _gate_store
    if _gate_store is None:
        _gate_store = create_gate_store()
    return _gate_store


def reset_gate_store() -> None:
    """Forget the process-wide store (used by tests)."""
    global _gate_store
    _gate_store = None
