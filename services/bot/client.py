import asyncio
import discord
import logging

from services.bot.api import CoordinatorClient
from services.bot.config import CLIENT_WAIT_TIMEOUT, SYNC_COMMANDS, TOKEN
from services.bot.interactions import InteractionRouter, synapse_command
from services.bot.jobs import JobScheduler
from services.bot.recap import RecapScheduler
from services.bot.sessions import SessionTracker

logger = logging.getLogger(__name__)


async def run_client() -> None:
    intents: discord.Intents = discord.Intents.default()
    api = CoordinatorClient()
    client = SynapseClient(intents=intents, api=api)
    scheduler = JobScheduler(asyncio.get_running_loop(), client, client.tracker, RecapScheduler(client))

    try:
        logger.info("Logging in client...")
        await client.login(TOKEN)
        await _sync_commands(client)

        # Connect in the background so we can run some setup code once the client is ready
        logger.info("Waiting for client to be ready...")
        asyncio.create_task(client.connect())
        await asyncio.wait_for(client.wait_until_ready(), CLIENT_WAIT_TIMEOUT)

        logger.info("Restoring active sessions...")
        await client.tracker.load()

        logger.info("Starting Job Scheduler...")
        scheduler.start()
        logger.info("Client successfully started")

        # Wait until task is cancelled
        await asyncio.Event().wait()

    finally:
        logger.info("Client shutting down...")
        scheduler.shutdown()
        await api.close()
        await client.close()
        logger.info("Client successfully stopped")


class SynapseClient(discord.Client):
    def __init__(self, *, intents: discord.Intents, api: CoordinatorClient) -> None:
        super().__init__(intents=intents)
        self.tracker = SessionTracker(self, api)
        self.router = InteractionRouter(self.tracker, api)
        # Slash commands are dispatched by the tree, buttons are routed in on_interaction
        self.tree = discord.app_commands.CommandTree(self)
        self.tree.add_command(synapse_command(self.router))

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type is not discord.InteractionType.component:
            return

        await self.router.handle_component(interaction)


async def _sync_commands(client: SynapseClient) -> None:
    if not SYNC_COMMANDS:
        logger.warning("Skipping syncing commands, set SYNC_COMMANDS=TRUE to enable this behavior")
        return

    logger.info("Syncing command definitions...")
    await client.tree.sync()
    logger.info("Command definitions synced successfully")
