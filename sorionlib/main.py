"""Main entry point for SorionLib's example bot.

Initializes logging in two phases (defaults then config-driven),
builds a DiscordBot with the example commands, and runs it until
SIGTERM/SIGINT.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper for the ``sorionlib`` console script.
"""

import asyncio
import signal
import time
from typing import List

import structlog

from . import __version__
from .commands import CommandGroup
from .logging_config import setup_logging


class ExampleCommands(CommandGroup):
    """The ping/user/info commands shipped with the library."""

    def __init__(self, bot):
        self.bot = bot
        self.started_at = time.monotonic()

    def get_commands(self):
        return {
            "ping": self.handle_ping,
            "user": self.handle_user,
            "info": self.handle_info,
        }

    def get_options(self):
        return {"ping": {"cooldown": 5000, "description": "Check that the bot responds"}}

    async def handle_ping(self, message, args: List[str]) -> None:
        await message.reply("🏓 Pong!")

    async def handle_user(self, message, args: List[str]) -> None:
        author = message.author
        payload = (
            self.bot.embed()
            .title("User Information")
            .description(f"Hello {author.name}!")
            .add_field("User ID", str(author.id))
            .add_field("Account Created", author.created_at.strftime("%a %b %d %Y"))
            .color("#0099ff")
            .build()
        )
        await message.channel.send(**payload.to_discord())

    async def handle_info(self, message, args: List[str]) -> None:
        uptime = round(time.monotonic() - self.started_at)
        payload = (
            self.bot.embed()
            .success(f"SorionLib v{__version__} - Powerful Discord Utilities")
            .add_field("Commands", ", ".join(sorted(self.bot.commands.command_names)))
            .add_field("Uptime", f"{uptime}s")
            .build()
        )
        await message.channel.send(**payload.to_discord())


async def main():
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("sorionlib")

    logger.info("sorionlib_starting", version=__version__)

    from .bot import DiscordBot
    from .config import get_config

    config = get_config()
    config.validate()

    # Phase 2: reconfigure with real config
    setup_logging(config)

    bot = DiscordBot(config=config)
    bot.commands.register_group(ExampleCommands(bot))

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    try:
        bot_task = asyncio.create_task(bot.start())
        shutdown_task = asyncio.create_task(shutdown_event.wait())
        done, _ = await asyncio.wait(
            {bot_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
        shutdown_task.cancel()
        if bot_task in done:
            # Login failures (bad token, storage) surface here
            bot_task.result()
        else:
            bot_task.cancel()
            try:
                await bot_task
            except asyncio.CancelledError:
                pass
    except Exception as e:
        logger.error("bot_error", error=str(e))
        raise
    finally:
        await bot.destroy()
        logger.info("sorionlib_stopped")


def run():
    """Synchronous entry point for the ``sorionlib`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
