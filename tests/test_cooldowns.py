"""Tests for the per-user cooldown ledger."""

import asyncio

import pytest

from sorionlib.cooldowns import CooldownLedger


class TestCooldownLedger:

    def test_zero_window_never_on_cooldown(self):
        ledger = CooldownLedger()
        for _ in range(50):
            ledger.set_cooldown("u1", "ping", 0)
            assert ledger.is_on_cooldown("u1", "ping", 0) is False
        assert len(ledger) == 0

    def test_unknown_key_not_on_cooldown(self):
        ledger = CooldownLedger()
        assert ledger.is_on_cooldown("u1", "ping", 5000) is False

    def test_window_expires_by_clock(self, fake_clock):
        clock = fake_clock
        ledger = CooldownLedger(clock=clock)
        ledger.set_cooldown("u1", "ping", 5000)

        clock.advance(2000)
        assert ledger.is_on_cooldown("u1", "ping", 5000) is True

        clock.advance(3001)
        assert ledger.is_on_cooldown("u1", "ping", 5000) is False

    def test_keys_are_per_user_and_command(self, fake_clock):
        clock = fake_clock
        ledger = CooldownLedger(clock=clock)
        ledger.set_cooldown("u1", "ping", 5000)
        assert ledger.is_on_cooldown("u2", "ping", 5000) is False
        assert ledger.is_on_cooldown("u1", "info", 5000) is False

    def test_command_names_case_insensitive(self, fake_clock):
        ledger = CooldownLedger(clock=fake_clock)
        ledger.set_cooldown("u1", "PING", 5000)
        assert ledger.is_on_cooldown("u1", "ping", 5000) is True

    def test_set_without_loop_records_entry(self, fake_clock):
        ledger = CooldownLedger(clock=fake_clock)
        ledger.set_cooldown(42, "ping", 1000)
        assert len(ledger) == 1
        assert ledger.last_used("42", "ping") == 1000.0

    @pytest.mark.asyncio
    async def test_entry_removed_after_window(self):
        ledger = CooldownLedger()
        ledger.set_cooldown("u1", "ping", 50)
        assert len(ledger) == 1
        assert ledger.is_on_cooldown("u1", "ping", 50) is True

        await asyncio.sleep(0.15)
        assert len(ledger) == 0
        assert ledger.is_on_cooldown("u1", "ping", 50) is False

    @pytest.mark.asyncio
    async def test_each_set_schedules_one_removal(self):
        ledger = CooldownLedger()
        ledger.set_cooldown("u1", "ping", 10_000)
        first = ledger._timers[("u1", "ping")]
        ledger.set_cooldown("u1", "ping", 10_000)
        second = ledger._timers[("u1", "ping")]

        assert first is not second
        assert first.cancelled() is True
        assert len(ledger._timers) == 1
        ledger.clear()

    @pytest.mark.asyncio
    async def test_refresh_extends_expiry(self):
        ledger = CooldownLedger()
        ledger.set_cooldown("u1", "ping", 200)
        await asyncio.sleep(0.12)
        ledger.set_cooldown("u1", "ping", 200)
        await asyncio.sleep(0.12)
        # The first removal was cancelled by the refresh
        assert len(ledger) == 1
        await asyncio.sleep(0.2)
        assert len(ledger) == 0

    @pytest.mark.asyncio
    async def test_clear_cancels_timers(self):
        ledger = CooldownLedger()
        ledger.set_cooldown("u1", "ping", 10_000)
        handle = ledger._timers[("u1", "ping")]
        ledger.clear()
        assert handle.cancelled() is True
        assert len(ledger) == 0

    @pytest.mark.asyncio
    async def test_release_drops_entry_and_timer(self):
        ledger = CooldownLedger()
        ledger.set_cooldown("u1", "ping", 10_000)
        ledger.set_cooldown("u2", "ping", 10_000)
        handle = ledger._timers[("u1", "ping")]

        ledger.release("u1", "PING")
        assert handle.cancelled() is True
        assert ledger.is_on_cooldown("u1", "ping", 10_000) is False
        assert ledger.is_on_cooldown("u2", "ping", 10_000) is True
        ledger.release("nobody", "ping")
        ledger.clear()
