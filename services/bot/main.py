from pathlib import Path
import signal
import django
import os
import sys
import asyncio
import logging
from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "synapse.settings")

# Also applies synapse.settings.LOGGING, the bot has no handler setup of its own
django.setup()

# Models and config can only be imported once django is set up
from django.core.management import call_command  # noqa: E402

from services.bot.config import MIGRATE_ON_STARTUP  # noqa: E402
from services.bot.startup import startup  # noqa: E402

logger = logging.getLogger(__name__)


def migrate() -> None:
    """Brings the shared database up to date before anything reads from it."""
    logger.info("Applying database migrations...")
    call_command("migrate", interactive=False, verbosity=0)


def install_signal_handlers(bot_task: asyncio.Task) -> None:
    def handle_signal(received: signal.Signals) -> None:
        logger.info("Got %s signal, stopping the bot", received.name)
        bot_task.cancel()

    # Signals only supported on unix type systems
    try:
        loop = asyncio.get_running_loop()
        for shutdown_signal in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(shutdown_signal, handle_signal, shutdown_signal)
    except NotImplementedError as ex:
        logger.warning("Failed to register signal handlers (are you using windows?) %s", ex, exc_info=ex)


async def main() -> int:
    bot_task = asyncio.create_task(startup())
    install_signal_handlers(bot_task)

    try:
        await bot_task
    except asyncio.CancelledError:
        logger.warning("Bot stopped due to cancellation request")
    except Exception as ex:
        logger.error("Bot exited with an error: %s", ex, exc_info=ex)
        return 1

    return 0


if __name__ == "__main__":
    if MIGRATE_ON_STARTUP:
        migrate()
    sys.exit(asyncio.run(main()))
