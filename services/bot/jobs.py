from asyncio import AbstractEventLoop
import asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.triggers.interval import IntervalTrigger
import logging
import discord

from services.bot.config import (
    CLIENT_WAIT_TIMEOUT,
    COMPLETION_NOTIFICATIONS,
    NOTIFICATION_INTERVAL,
    POLL_INTERVAL,
    RECAP_CHECK_INTERVAL,
)
from services.bot.notifications import announce_completed_games
from services.bot.recap import RecapScheduler
from services.bot.sessions import SessionTracker
from synapse.settings import DB_PATH

logger = logging.getLogger(__name__)

NOTIFICATIONS_JOB_ID = "announce_completed_games"


class Services:
    def __init__(self, client: discord.Client, tracker: SessionTracker, recaps: RecapScheduler) -> None:
        self.client = client
        self.tracker = tracker
        self.recaps = recaps


# Singleton to get around issues passing instance variable to scheduled jobs
services: Services | None = None


class JobScheduler:
    def __init__(
        self,
        event_loop: AbstractEventLoop,
        client: discord.Client,
        tracker: SessionTracker,
        recaps: RecapScheduler,
    ) -> None:
        global services
        assert services is None, "JobScheduler must only be created once"
        services = Services(client, tracker, recaps)
        path = DB_PATH / "scheduler.sqlite"
        jobstores = {"default": SQLAlchemyJobStore(url=f"sqlite:///{path}")}
        self.scheduler = AsyncIOScheduler(jobstores=jobstores, event_loop=event_loop)
        self.scheduler.add_job(
            _poll_sessions,
            IntervalTrigger(seconds=POLL_INTERVAL),
            id="poll_sessions",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            _check_recaps,
            IntervalTrigger(seconds=RECAP_CHECK_INTERVAL),
            id="check_recaps",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if COMPLETION_NOTIFICATIONS:
            self.scheduler.add_job(
                _announce_completed_games,
                IntervalTrigger(seconds=NOTIFICATION_INTERVAL),
                id=NOTIFICATIONS_JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

    def start(self) -> None:
        self.scheduler.start()
        # Drop the job persisted by an earlier run that had notifications turned on
        if not COMPLETION_NOTIFICATIONS and self.scheduler.get_job(NOTIFICATIONS_JOB_ID) is not None:
            self.scheduler.remove_job(NOTIFICATIONS_JOB_ID)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown()


async def _poll_sessions() -> None:
    assert services is not None, "Services must exist for jobs to run"
    await services.tracker.poll()


async def _check_recaps() -> None:
    assert services is not None, "Services must exist for jobs to run"
    await asyncio.wait_for(services.client.wait_until_ready(), timeout=CLIENT_WAIT_TIMEOUT)

    try:
        posted = await services.recaps.check()
    except Exception as ex:
        logger.error("Recap check failed: %s", ex, exc_info=ex)
        return

    if posted > 0:
        logger.info("Posted %d recaps", posted)


async def _announce_completed_games() -> None:
    assert services is not None, "Services must exist for jobs to run"
    await asyncio.wait_for(services.client.wait_until_ready(), timeout=CLIENT_WAIT_TIMEOUT)

    try:
        await announce_completed_games(services.client)
    except Exception as ex:
        logger.error("Completion notifications failed: %s", ex, exc_info=ex)
