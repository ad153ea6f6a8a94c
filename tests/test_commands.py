"""Tests for the prefix command registry."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from sorionlib.commands.base import (
    COOLDOWN_MESSAGE,
    ERROR_MESSAGE,
    CommandGroup,
    CommandRegistry,
)
from sorionlib.cooldowns import CooldownLedger
from sorionlib.exceptions import ConfigurationError


def _make_message(content, user_id=1, permissions=None):
    """Create a mock discord.Message."""
    message = MagicMock()
    message.content = content
    message.author.id = user_id
    message.author.bot = False
    message.author.guild_permissions = permissions
    message.reply = AsyncMock()
    return message


def _make_registry(prefix="!", clock=None):
    ledger = CooldownLedger(clock=clock or (lambda: 1000.0))
    return CommandRegistry(ledger, prefix=prefix)


class TestRegistration:

    def test_names_are_case_insensitive(self):
        registry = _make_registry()
        registry.register("Ping", lambda m, a: None)
        assert "ping" in registry
        assert "PING" in registry
        assert registry.get("pInG").name == "ping"
        assert registry.command_names == frozenset({"ping"})

    def test_reregister_replaces(self):
        registry = _make_registry()
        first = lambda m, a: None  # noqa: E731
        second = lambda m, a: None  # noqa: E731
        registry.register("ping", first)
        registry.register("PING", second)
        assert len(registry) == 1
        assert registry.get("ping").handler is second

    def test_defaults(self):
        registry = _make_registry()
        command = registry.register("ping", lambda m, a: None)
        assert command.cooldown == 0
        assert command.permissions == frozenset()

    @pytest.mark.parametrize("name", ["", "   ", "two words"])
    def test_invalid_name_rejected(self, name):
        registry = _make_registry()
        with pytest.raises(ConfigurationError):
            registry.register(name, lambda m, a: None)

    def test_negative_cooldown_rejected(self):
        registry = _make_registry()
        with pytest.raises(ConfigurationError):
            registry.register("ping", lambda m, a: None, cooldown=-1)

    def test_register_group(self):
        class Group(CommandGroup):
            def get_commands(self):
                return {"a": lambda m, a: None, "b": lambda m, a: None}

            def get_options(self):
                return {"a": {"cooldown": 1000}}

        registry = _make_registry()
        registry.register_group(Group())
        assert registry.get("a").cooldown == 1000
        assert registry.get("b").cooldown == 0


class TestParse:

    def test_parse_splits_on_whitespace(self):
        registry = _make_registry()
        assert registry.parse("!Ban   someone  now") == ("ban", ["someone", "now"])

    def test_parse_multichar_prefix(self):
        registry = _make_registry(prefix="sl!")
        assert registry.parse("sl! ping") == ("ping", [])

    @pytest.mark.parametrize("content", ["ping", "", "!", "!   "])
    def test_parse_rejects(self, content):
        assert _make_registry().parse(content) is None


class TestDispatch:

    @pytest.mark.asyncio
    async def test_handler_receives_message_and_args(self):
        registry = _make_registry()
        handler = AsyncMock()
        registry.register("echo", handler)
        message = _make_message("!echo hello world")

        assert await registry.handle_message(message) is True
        handler.assert_awaited_once_with(message, ["hello", "world"])

    @pytest.mark.asyncio
    async def test_sync_handler_supported(self):
        registry = _make_registry()
        calls = []
        registry.register("sync", lambda m, a: calls.append(a))
        await registry.handle_message(_make_message("!sync x"))
        assert calls == [["x"]]

    @pytest.mark.asyncio
    async def test_unknown_command_ignored(self):
        registry = _make_registry()
        message = _make_message("!nope")
        assert await registry.handle_message(message) is False
        message.reply.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_prefixed_message_ignored(self):
        registry = _make_registry()
        handler = AsyncMock()
        registry.register("ping", handler)
        assert await registry.handle_message(_make_message("ping")) is False
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handler_error_replies_and_does_not_raise(self):
        registry = _make_registry()
        registry.register("boom", AsyncMock(side_effect=RuntimeError("boom")), cooldown=5000)
        message = _make_message("!boom")

        assert await registry.handle_message(message) is False
        message.reply.assert_awaited_once_with(ERROR_MESSAGE)
        # A failed invocation releases its cooldown claim
        assert registry.ledger.is_on_cooldown(1, "boom", 5000) is False

    @pytest.mark.asyncio
    async def test_failed_reply_is_swallowed(self):
        registry = _make_registry()
        registry.register("boom", AsyncMock(side_effect=RuntimeError("boom")))
        message = _make_message("!boom")
        message.reply.side_effect = RuntimeError("reply failed")
        assert await registry.handle_message(message) is False


class TestCooldowns:

    @pytest.mark.asyncio
    async def test_ping_scenario(self, fake_clock):
        clock = fake_clock
        registry = _make_registry(clock=clock)
        handler = AsyncMock()
        registry.register("ping", handler, cooldown=5000)

        first = _make_message("!ping")
        await registry.handle_message(first)
        assert handler.await_count == 1
        first.reply.assert_not_awaited()

        clock.advance(2000)
        second = _make_message("!ping")
        await registry.handle_message(second)
        assert handler.await_count == 1
        second.reply.assert_awaited_once_with(COOLDOWN_MESSAGE.format(seconds="5"))

        clock.advance(3001)
        third = _make_message("!ping")
        await registry.handle_message(third)
        assert handler.await_count == 2
        third.reply.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cooldown_not_refreshed_while_waiting(self, fake_clock):
        clock = fake_clock
        registry = _make_registry(clock=clock)
        registry.register("ping", AsyncMock(), cooldown=5000)

        await registry.handle_message(_make_message("!ping"))
        clock.advance(4000)
        await registry.handle_message(_make_message("!ping"))
        clock.advance(1001)
        # Had the blocked call refreshed the window this would still wait
        assert registry.ledger.is_on_cooldown(1, "ping", 5000) is False

    @pytest.mark.asyncio
    async def test_overlapping_invocations_run_once(self):
        registry = _make_registry()
        calls = []

        async def slow_ping(message, args):
            calls.append(message)
            await asyncio.sleep(0.05)

        registry.register("ping", slow_ping, cooldown=5000)
        first, second = _make_message("!ping"), _make_message("!ping")

        await asyncio.gather(registry.handle_message(first), registry.handle_message(second))

        assert calls == [first]
        first.reply.assert_not_awaited()
        second.reply.assert_awaited_once_with(COOLDOWN_MESSAGE.format(seconds="5"))

    @pytest.mark.asyncio
    async def test_cooldown_active_while_handler_runs(self):
        registry = _make_registry()
        seen = []

        async def check(message, args):
            seen.append(registry.ledger.is_on_cooldown(1, "check", 5000))

        registry.register("check", check, cooldown=5000)
        await registry.handle_message(_make_message("!check"))
        assert seen == [True]

    @pytest.mark.asyncio
    async def test_zero_cooldown_never_blocks(self):
        registry = _make_registry()
        handler = AsyncMock()
        registry.register("spam", handler)
        for _ in range(20):
            message = _make_message("!spam")
            await registry.handle_message(message)
            message.reply.assert_not_awaited()
        assert handler.await_count == 20

    @pytest.mark.asyncio
    async def test_cooldown_per_user(self):
        registry = _make_registry()
        handler = AsyncMock()
        registry.register("ping", handler, cooldown=5000)
        await registry.handle_message(_make_message("!ping", user_id=1))
        await registry.handle_message(_make_message("!ping", user_id=2))
        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_fractional_wait_message(self):
        registry = _make_registry()
        registry.register("ping", AsyncMock(), cooldown=1500)
        await registry.handle_message(_make_message("!ping"))
        message = _make_message("!ping")
        await registry.handle_message(message)
        message.reply.assert_awaited_once_with(COOLDOWN_MESSAGE.format(seconds="1.5"))


class TestPermissions:

    @pytest.mark.asyncio
    async def test_missing_permission_blocks(self):
        registry = _make_registry()
        handler = AsyncMock()
        registry.register("purge", handler, permissions=["manage_messages"])
        perms = SimpleNamespace(administrator=False, manage_messages=False)
        message = _make_message("!purge", permissions=perms)

        assert await registry.handle_message(message) is False
        handler.assert_not_awaited()
        assert "manage_messages" in message.reply.await_args.args[0]

    @pytest.mark.asyncio
    async def test_granted_permission_runs(self):
        registry = _make_registry()
        handler = AsyncMock()
        registry.register("purge", handler, permissions=["manage_messages"])
        perms = SimpleNamespace(administrator=False, manage_messages=True)
        assert await registry.handle_message(_make_message("!purge", permissions=perms)) is True
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_administrator_bypasses(self):
        registry = _make_registry()
        handler = AsyncMock()
        registry.register("purge", handler, permissions=["manage_messages", "kick_members"])
        perms = SimpleNamespace(administrator=True)
        assert await registry.handle_message(_make_message("!purge", permissions=perms)) is True

    @pytest.mark.asyncio
    async def test_direct_message_lacks_permissions(self):
        registry = _make_registry()
        registry.register("purge", AsyncMock(), permissions=["manage_messages"])
        message = _make_message("!purge", permissions=None)
        assert await registry.handle_message(message) is False


class TestExecute:

    @pytest.mark.asyncio
    async def test_execute_runs_named_command(self):
        registry = _make_registry()
        handler = AsyncMock()
        registry.register("ping", handler, cooldown=5000)
        message = _make_message("anything")

        assert await registry.execute("PING", message, ("a",)) is True
        handler.assert_awaited_once_with(message, ["a"])
        assert await registry.execute("ping", message) is False

    @pytest.mark.asyncio
    async def test_execute_unknown_returns_false(self):
        assert await _make_registry().execute("nope", _make_message("")) is False
