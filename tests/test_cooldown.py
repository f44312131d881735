"""Tests for the cooldown throttle."""

from datetime import timedelta

import pytest

from briefgate.app.services.gate import CooldownThrottle


class TestCooldownThrottle:
    """Tests for the minimum gap between admitted operations."""

    @pytest.fixture
    def throttle(self, store, clock):
        return CooldownThrottle(store, namespace="image", clock=clock)

    @pytest.mark.asyncio
    async def test_first_request_is_admitted(self, throttle):
        decision = await throttle.try_admit("a", 10)
        assert decision.admitted is True
        assert decision.wait_seconds == 0

    @pytest.mark.asyncio
    async def test_ten_second_window(self, throttle, clock):
        """t=0 admitted, t=5 rejected with about 5s left, t=11 admitted."""
        assert (await throttle.try_admit("a", 10)).admitted is True

        clock.advance(5)
        decision = await throttle.try_admit("a", 10)
        assert decision.admitted is False
        assert decision.wait_seconds == 5

        clock.advance(6)
        assert (await throttle.try_admit("a", 10)).admitted is True

    @pytest.mark.asyncio
    async def test_wait_strictly_decreases(self, throttle, clock):
        await throttle.try_admit("a", 60)

        waits = []
        for _ in range(5):
            clock.advance(7.5)
            decision = await throttle.check("a")
            assert decision.admitted is False
            waits.append(decision.wait_remaining)

        assert all(later < earlier for earlier, later in zip(waits, waits[1:]))

    @pytest.mark.asyncio
    async def test_wait_seconds_rounds_up(self, throttle, clock):
        await throttle.try_admit("a", 10)
        clock.advance(0.2)

        decision = await throttle.check("a")
        assert decision.wait_remaining == timedelta(seconds=9.8)
        assert decision.wait_seconds == 10

    @pytest.mark.asyncio
    async def test_rejection_does_not_extend_window(self, throttle, clock, store):
        await throttle.try_admit("a", 10)
        before = await store.get_cooldown(throttle.key("a"))

        clock.advance(3)
        await throttle.try_admit("a", 10)

        after = await store.get_cooldown(throttle.key("a"))
        assert after.next_allowed_at == before.next_allowed_at

    @pytest.mark.asyncio
    async def test_admitted_exactly_at_boundary(self, throttle, clock):
        await throttle.try_admit("a", 10)
        clock.advance(10)
        assert (await throttle.check("a")).admitted is True

    @pytest.mark.asyncio
    async def test_zero_cooldown_never_blocks(self, throttle):
        for _ in range(3):
            assert (await throttle.try_admit("a", 0)).admitted is True

    @pytest.mark.asyncio
    async def test_check_has_no_side_effects(self, throttle, store):
        await throttle.check("a")
        assert await store.get_cooldown(throttle.key("a")) is None

    @pytest.mark.asyncio
    async def test_accepts_timedelta(self, throttle, clock):
        await throttle.start("a", timedelta(minutes=1))
        clock.advance(59)
        assert (await throttle.check("a")).wait_seconds == 1
