"""Daily quota counter.

Caps admitted operations per identity per UTC calendar day. A record dated
before today is treated as absent, so exhaustion never carries over the day
boundary. Rejected attempts are not counted.
"""

from typing import Optional

from briefgate.app.core.utils import Clock, SystemClock, utc_date_key
from briefgate.app.services.gate.models import QuotaDecision, QuotaRecord
from briefgate.app.services.gate.store import GateStore


class DailyQuotaCounter:
    """Per-identity daily counter backed by a ``GateStore``.

    The read-modify-write in ``try_consume`` is not atomic by itself; callers
    that need strict admission hold ``store.lock(...)`` around it.
    """

    def __init__(self, store: GateStore, namespace: str = "default", clock: Optional[Clock] = None):
        self.store = store
        self.namespace = namespace
        self.clock = clock or SystemClock()

    def key(self, identity: str) -> str:
        return f"{self.namespace}:{identity}"

    async def try_consume(self, identity: str, daily_limit: int) -> QuotaDecision:
        """Consume one unit of today's quota if any is left.

        Args:
            identity: Client identity
            daily_limit: Maximum admitted operations per UTC day

        Returns:
            QuotaDecision with the remaining count after this call
        """
        today = utc_date_key(self.clock.now())
        key = self.key(identity)
        record = await self.store.get_quota(key)

        if record is None or record.day != today:
            await self.store.put_quota(key, QuotaRecord(identity=identity, day=today, count=1))
            return QuotaDecision(admitted=True, remaining=daily_limit - 1, limit=daily_limit, day=today)

        if record.count >= daily_limit:
            return QuotaDecision(admitted=False, remaining=0, limit=daily_limit, day=today)

        record.count += 1
        await self.store.put_quota(key, record)
        return QuotaDecision(
            admitted=True,
            remaining=daily_limit - record.count,
            limit=daily_limit,
            day=today,
        )

    async def peek(self, identity: str, daily_limit: int) -> QuotaDecision:
        """Report what ``try_consume`` would decide, without consuming.

        ``remaining`` is the count left before this hypothetical request.
        """
        today = utc_date_key(self.clock.now())
        record = await self.store.get_quota(self.key(identity))
        used = record.count if record is not None and record.day == today else 0
        remaining = max(0, daily_limit - used)
        return QuotaDecision(admitted=remaining > 0, remaining=remaining, limit=daily_limit, day=today)
