"""Tests for the request gate (cooldown + daily quota composition)."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from briefgate.app.exceptions import CooldownActiveError, DailyLimitExceededError
from briefgate.app.services.gate import (
    GateState,
    InMemoryGateStore,
    RequestGate,
)


class YieldingStore(InMemoryGateStore):
    """In-memory store that suspends on every read.

    Lets concurrent admissions of one identity interleave between the read and
    the write of a record.
    """

    async def get_quota(self, key):
        record = await super().get_quota(key)
        await asyncio.sleep(0)
        return record

    async def get_cooldown(self, key):
        record = await super().get_cooldown(key)
        await asyncio.sleep(0)
        return record


def make_gate(store, clock, **kwargs):
    options = {"daily_limit": 10, "cooldown_seconds": 60}
    options.update(kwargs)
    return RequestGate("image", store, clock=clock, **options)


class TestRequestGateAdmission:
    """Tests for admission order and error reporting."""

    @pytest.mark.asyncio
    async def test_admit_returns_remaining(self, store, clock):
        gate = make_gate(store, clock)
        admission = await gate.admit("a")

        assert admission.identity == "a"
        assert admission.operation == "image"
        assert admission.remaining == 9
        assert admission.limit == 10
        assert admission.cooldown_seconds == 60

    @pytest.mark.asyncio
    async def test_cooldown_rejection_carries_wait(self, store, clock):
        gate = make_gate(store, clock, cooldown_seconds=10)
        await gate.admit("a")
        clock.advance(5)

        with pytest.raises(CooldownActiveError) as exc_info:
            await gate.admit("a")

        assert exc_info.value.cooldown_seconds == 5
        assert exc_info.value.to_response()["code"] == "COOLDOWN"

    @pytest.mark.asyncio
    async def test_cooldown_is_checked_before_quota(self, store, clock):
        gate = make_gate(store, clock, daily_limit=1, cooldown_seconds=10)
        await gate.admit("a")

        clock.advance(1)
        with pytest.raises(CooldownActiveError):
            await gate.admit("a")

        clock.advance(10)
        with pytest.raises(DailyLimitExceededError):
            await gate.admit("a")

    @pytest.mark.asyncio
    async def test_daily_limit_rejection_never_starts_cooldown(self, store, clock):
        gate = make_gate(store, clock, daily_limit=1, cooldown_seconds=10)
        await gate.admit("a")
        window = await store.get_cooldown("image:a")

        clock.advance(30)
        with pytest.raises(DailyLimitExceededError):
            await gate.admit("a")

        assert (await store.get_cooldown("image:a")).next_allowed_at == window.next_allowed_at

    @pytest.mark.asyncio
    async def test_daily_limit_scenario_without_cooldown(self, store, clock):
        gate = make_gate(store, clock, daily_limit=2, cooldown_seconds=0)

        assert (await gate.admit("a")).remaining == 1
        assert (await gate.admit("a")).remaining == 0
        with pytest.raises(DailyLimitExceededError) as exc_info:
            await gate.admit("a")

        body = exc_info.value.to_response()
        assert body["code"] == "DAILY_LIMIT"
        assert body["remainingToday"] == 0

    @pytest.mark.asyncio
    async def test_limit_message_is_formatted(self, store, clock):
        gate = make_gate(
            store, clock, daily_limit=1, cooldown_seconds=0,
            limit_message="Daily image limit reached ({limit}/day).",
        )
        await gate.admit("a")

        with pytest.raises(DailyLimitExceededError) as exc_info:
            await gate.admit("a")
        assert exc_info.value.message == "Daily image limit reached (1/day)."

    @pytest.mark.asyncio
    async def test_operations_do_not_share_state(self, store, clock):
        brief = RequestGate("brief", store, daily_limit=1, cooldown_seconds=30, clock=clock)
        image = RequestGate("image", store, daily_limit=1, cooldown_seconds=60, clock=clock)

        await brief.admit("a")
        admission = await image.admit("a")
        assert admission.remaining == 0

    def test_seconds_until_reset(self, store, clock):
        gate = make_gate(store, clock)
        assert gate.seconds_until_reset() == 12 * 3600

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"daily_limit": 0},
            {"cooldown_seconds": -1},
            {"cooldown_policy": "whenever"},
            {"concurrency": "loose"},
        ],
    )
    def test_invalid_configuration_rejected(self, store, clock, kwargs):
        with pytest.raises(ValueError):
            make_gate(store, clock, **kwargs)


class TestCooldownPolicies:
    """Tests for on-admission vs on-success cooldown assignment."""

    @pytest.mark.asyncio
    async def test_on_admission_blocks_before_upstream_completes(self, store, clock):
        gate = make_gate(store, clock, cooldown_policy="on-admission")
        await gate.admit("a")

        with pytest.raises(CooldownActiveError):
            await gate.admit("a")

    @pytest.mark.asyncio
    async def test_on_success_starts_cooldown_after_success(self, store, clock):
        gate = make_gate(store, clock, cooldown_policy="on-success")
        admission = await gate.admit("a")

        # Upstream still running or failed: no window yet
        second = await gate.admit("a")
        assert second.remaining == 8

        await gate.record_success(admission)
        with pytest.raises(CooldownActiveError):
            await gate.admit("a")

    @pytest.mark.asyncio
    async def test_record_success_is_noop_on_admission(self, store, clock):
        gate = make_gate(store, clock, cooldown_seconds=10)
        admission = await gate.admit("a")
        window = await store.get_cooldown("image:a")

        clock.advance(5)
        await gate.record_success(admission)

        assert (await store.get_cooldown("image:a")).next_allowed_at == window.next_allowed_at


class TestConcurrencyModes:
    """Tests for strict vs relaxed admission under interleaving."""

    @pytest.mark.asyncio
    async def test_strict_mode_never_over_admits(self, clock):
        gate = make_gate(YieldingStore(), clock, daily_limit=1, cooldown_seconds=0, concurrency="strict")

        results = await asyncio.gather(*(gate.admit("a") for _ in range(5)), return_exceptions=True)

        admitted = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, DailyLimitExceededError)]
        assert len(admitted) == 1
        assert len(rejected) == 4

    @pytest.mark.asyncio
    async def test_strict_mode_serializes_cooldown(self, clock):
        gate = make_gate(YieldingStore(), clock, daily_limit=10, cooldown_seconds=60, concurrency="strict")

        results = await asyncio.gather(*(gate.admit("a") for _ in range(3)), return_exceptions=True)

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert sum(1 for r in results if isinstance(r, CooldownActiveError)) == 2

    @pytest.mark.asyncio
    async def test_relaxed_mode_can_over_admit(self, clock):
        gate = make_gate(YieldingStore(), clock, daily_limit=1, cooldown_seconds=0, concurrency="relaxed")

        results = await asyncio.gather(*(gate.admit("a") for _ in range(5)), return_exceptions=True)

        admitted = [r for r in results if not isinstance(r, Exception)]
        assert len(admitted) > 1

    @pytest.mark.asyncio
    async def test_strict_mode_does_not_block_other_identities(self, clock):
        gate = make_gate(YieldingStore(), clock, daily_limit=1, cooldown_seconds=60, concurrency="strict")

        results = await asyncio.gather(gate.admit("a"), gate.admit("b"), gate.admit("c"))
        assert [r.identity for r in results] == ["a", "b", "c"]


class TestGateState:
    """Tests for the FRESH / COOLING_DOWN / QUOTA_EXHAUSTED view."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, store, clock):
        clock.set(datetime(2026, 3, 1, 23, 0, 0, tzinfo=timezone.utc))
        gate = make_gate(store, clock, daily_limit=2, cooldown_seconds=10)

        assert await gate.state("a") == GateState.FRESH

        await gate.admit("a")
        assert await gate.state("a") == GateState.COOLING_DOWN

        clock.advance(10)
        assert await gate.state("a") == GateState.FRESH

        await gate.admit("a")
        assert await gate.state("a") == GateState.COOLING_DOWN

        clock.advance(10)
        assert await gate.state("a") == GateState.QUOTA_EXHAUSTED

        clock.advance(3600)
        assert await gate.state("a") == GateState.FRESH

    @pytest.mark.asyncio
    async def test_status_is_read_only(self, store, clock):
        gate = make_gate(store, clock, daily_limit=3, cooldown_seconds=20)
        await gate.admit("a")
        clock.advance(5)

        for _ in range(3):
            status = await gate.status("a")

        assert status == {
            "state": "COOLING_DOWN",
            "dailyLimit": 3,
            "remainingToday": 2,
            "cooldownSeconds": 15,
        }
        assert (await store.get_quota("image:a")).count == 1

    @pytest.mark.asyncio
    async def test_status_for_unknown_identity(self, store, clock):
        gate = make_gate(store, clock, daily_limit=3)
        status = await gate.status("never-seen")

        assert status["state"] == "FRESH"
        assert status["remainingToday"] == 3
        assert status["cooldownSeconds"] == 0
