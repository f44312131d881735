"""Request gate for one gated operation.

Composes the cooldown throttle and the daily quota counter. Admission order:
cooldown first, then quota. A request refused by the quota never starts a
cooldown window.

Cooldown assignment policies:
- ``on-admission`` (default): the window starts as soon as both gates admit,
  before the upstream call runs. A slow upstream call cannot let a second
  request through, so at most one upstream call per identity is in flight
  while the cooldown is positive.
- ``on-success``: the window starts only after the upstream call succeeded,
  so a failed call does not cost the user a cooldown.

Quota is consumed at admission under both policies and is never rolled back.

Concurrency modes:
- ``strict`` (default): the check-and-commit runs inside a per-identity
  exclusive section provided by the store.
- ``relaxed``: no exclusive section. Interleaved requests of one identity may
  both observe "admitted" before either commits, over-admitting briefly.
"""

from contextlib import nullcontext
from typing import Any, Dict, Optional

from briefgate.app.core.config import CooldownAssignmentPolicy, GateConcurrency
from briefgate.app.core.logging import get_logger
from briefgate.app.core.utils import Clock, SystemClock, seconds_until_next_utc_day
from briefgate.app.exceptions import CooldownActiveError, DailyLimitExceededError
from briefgate.app.services.gate.cooldown import CooldownThrottle
from briefgate.app.services.gate.models import Admission, GateState
from briefgate.app.services.gate.quota import DailyQuotaCounter
from briefgate.app.services.gate.store import GateStore

logger = get_logger(__name__)

ON_ADMISSION = "on-admission"
ON_SUCCESS = "on-success"
STRICT = "strict"
RELAXED = "relaxed"


class RequestGate:
    """Admission control for one operation (e.g. ``brief`` or ``image``)."""

    def __init__(
        self,
        operation: str,
        store: GateStore,
        daily_limit: int = 10,
        cooldown_seconds: int = 60,
        cooldown_policy: CooldownAssignmentPolicy = ON_ADMISSION,
        concurrency: GateConcurrency = STRICT,
        clock: Optional[Clock] = None,
        limit_message: Optional[str] = None,
    ):
        """Initialize the gate.

        Args:
            operation: Operation name, also the key namespace in the store
            store: Record store shared with other gates
            daily_limit: Maximum admitted requests per identity per UTC day
            cooldown_seconds: Minimum gap between admitted requests (0 disables)
            cooldown_policy: ``on-admission`` or ``on-success``
            concurrency: ``strict`` or ``relaxed``
            clock: Time source (defaults to the UTC wall clock)
            limit_message: Message for exhausted quota, formatted with ``limit``
        """
        if daily_limit < 1:
            raise ValueError("daily_limit must be at least 1")
        if cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must not be negative")
        if cooldown_policy not in (ON_ADMISSION, ON_SUCCESS):
            raise ValueError(f"Unknown cooldown policy: {cooldown_policy}")
        if concurrency not in (STRICT, RELAXED):
            raise ValueError(f"Unknown gate concurrency mode: {concurrency}")

        self.operation = operation
        self.store = store
        self.daily_limit = daily_limit
        self.cooldown_seconds = cooldown_seconds
        self.cooldown_policy = cooldown_policy
        self.concurrency = concurrency
        self.clock = clock or SystemClock()
        self.limit_message = limit_message
        self.counter = DailyQuotaCounter(store, namespace=operation, clock=self.clock)
        self.throttle = CooldownThrottle(store, namespace=operation, clock=self.clock)

    def _exclusive(self, identity: str):
        if self.concurrency == STRICT:
            return self.store.lock(f"{self.operation}:{identity}")
        return nullcontext()

    async def admit(self, identity: str) -> Admission:
        """Admit a request or raise the matching rate-limit error.

        Raises:
            CooldownActiveError: The identity's cooldown window is still open
            DailyLimitExceededError: The identity used up today's quota
        """
        async with self._exclusive(identity):
            cooldown = await self.throttle.check(identity)
            if not cooldown.admitted:
                raise CooldownActiveError(cooldown_seconds=cooldown.wait_seconds)

            quota = await self.counter.try_consume(identity, self.daily_limit)
            if not quota.admitted:
                detail = self.limit_message.format(limit=self.daily_limit) if self.limit_message else None
                raise DailyLimitExceededError(limit=self.daily_limit, detail=detail)

            if self.cooldown_policy == ON_ADMISSION:
                await self.throttle.start(identity, self.cooldown_seconds)

        return Admission(
            identity=identity,
            operation=self.operation,
            remaining=quota.remaining,
            limit=self.daily_limit,
            cooldown_seconds=self.cooldown_seconds,
        )

    async def record_success(self, admission: Admission) -> None:
        """Commit post-success state for an admitted request."""
        if self.cooldown_policy == ON_SUCCESS:
            await self.throttle.start(admission.identity, self.cooldown_seconds)

    async def state(self, identity: str) -> GateState:
        """Current gating state of ``identity`` for this operation."""
        cooldown = await self.throttle.check(identity)
        if not cooldown.admitted:
            return GateState.COOLING_DOWN
        quota = await self.counter.peek(identity, self.daily_limit)
        if not quota.admitted:
            return GateState.QUOTA_EXHAUSTED
        return GateState.FRESH

    async def status(self, identity: str) -> Dict[str, Any]:
        """Read-only summary for clients rendering countdowns."""
        cooldown = await self.throttle.check(identity)
        quota = await self.counter.peek(identity, self.daily_limit)
        if not cooldown.admitted:
            state = GateState.COOLING_DOWN
        elif not quota.admitted:
            state = GateState.QUOTA_EXHAUSTED
        else:
            state = GateState.FRESH
        return {
            "state": state.value,
            "dailyLimit": self.daily_limit,
            "remainingToday": quota.remaining,
            "cooldownSeconds": cooldown.wait_seconds,
        }

    def seconds_until_reset(self) -> int:
        """Seconds until the daily quota resets (next UTC midnight)."""
        return seconds_until_next_utc_day(self.clock.now())
