import logging
from services.bot.client import run_client
from services.bot.config import (
    COMPLETION_NOTIFICATIONS,
    COORDINATOR_URL,
    POLL_INTERVAL,
    RECAP_HOUR,
    RECAP_MINUTE,
    RECAP_TIMEZONE_OFFSET,
    SESSION_MAX_AGE,
    SYNC_COMMANDS,
    TIMEZONE,
)

logger = logging.getLogger(__name__)


async def startup() -> None:
    logger.info(
        "Application bootstrapped with the following settings:\n"
        f"TIMEZONE={TIMEZONE}\n"
        f"SYNC_COMMANDS={SYNC_COMMANDS}\n"
        f"COORDINATOR_URL={COORDINATOR_URL}\n"
        f"POLL_INTERVAL={POLL_INTERVAL}\n"
        f"SESSION_MAX_AGE={SESSION_MAX_AGE}\n"
        f"RECAP_TIME={RECAP_HOUR:02d}:{RECAP_MINUTE:02d} (UTC{RECAP_TIMEZONE_OFFSET:+d})\n"
        f"COMPLETION_NOTIFICATIONS={COMPLETION_NOTIFICATIONS}"
    )

    logger.info("Application starting up...")
    await run_client()
