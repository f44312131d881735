"""Cooldown throttle.

Enforces a minimum gap between two admitted operations of the same identity,
independent of the daily count.
"""

from datetime import timedelta
from typing import Optional, Union

from briefgate.app.core.utils import Clock, SystemClock
from briefgate.app.services.gate.models import CooldownDecision, CooldownRecord
from briefgate.app.services.gate.store import GateStore


def _as_timedelta(cooldown: Union[timedelta, int, float]) -> timedelta:
    if isinstance(cooldown, timedelta):
        return cooldown
    return timedelta(seconds=cooldown)


class CooldownThrottle:
    """Per-identity ``next_allowed_at`` timestamps backed by a ``GateStore``."""

    def __init__(self, store: GateStore, namespace: str = "default", clock: Optional[Clock] = None):
        self.store = store
        self.namespace = namespace
        self.clock = clock or SystemClock()

    def key(self, identity: str) -> str:
        return f"{self.namespace}:{identity}"

    async def check(self, identity: str) -> CooldownDecision:
        """Decide admission without starting a new cooldown window."""
        record = await self.store.get_cooldown(self.key(identity))
        if record is None:
            return CooldownDecision(admitted=True)

        now = self.clock.now()
        if now < record.next_allowed_at:
            return CooldownDecision(admitted=False, wait_remaining=record.next_allowed_at - now)
        return CooldownDecision(admitted=True)

    async def start(self, identity: str, cooldown: Union[timedelta, int, float]) -> CooldownRecord:
        """Start a cooldown window now, overwriting any previous one."""
        now = self.clock.now()
        record = CooldownRecord(identity=identity, next_allowed_at=now + _as_timedelta(cooldown))
        await self.store.put_cooldown(self.key(identity), record, now=now)
        return record

    async def try_admit(self, identity: str, cooldown: Union[timedelta, int, float]) -> CooldownDecision:
        """Admit if the previous window expired and start a new one.

        The stored timestamp is written only when admitting.
        """
        decision = await self.check(identity)
        if decision.admitted:
            await self.start(identity, cooldown)
        return decision
