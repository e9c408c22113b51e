import logging
from datetime import datetime, timezone

import discord

from services.bot.api import CoordinatorClient
from services.bot.progress import (
    LAUNCH_ACTIVITY_PREFIX,
    PENDING_SESSION_ID,
    START_NEW_SESSION_PREFIX,
    build_card,
)
from services.bot.sessions import SessionTracker, TrackedPlayer, TrackedSession
from services.bot.utils import puzzle_number_for_day, puzzle_today

logger = logging.getLogger(__name__)

START_FAILED = "Failed to start game session. Please try again."


class InteractionRouter:
    """Decides which session a command or button click belongs to."""

    def __init__(self, tracker: SessionTracker, api: CoordinatorClient) -> None:
        self.tracker = tracker
        self.api = api

    async def handle_component(self, interaction: discord.Interaction) -> bool:
        custom_id = str((interaction.data or {}).get("custom_id", ""))
        if custom_id.startswith(LAUNCH_ACTIVITY_PREFIX):
            await self.join(interaction, custom_id[len(LAUNCH_ACTIVITY_PREFIX) :])
            return True
        if custom_id.startswith(START_NEW_SESSION_PREFIX):
            await self.start_session(interaction)
            return True
        return False

    async def start_session(self, interaction: discord.Interaction) -> TrackedSession | None:
        guild_id = str(interaction.guild_id or "dm")
        today = puzzle_today()
        puzzle_number = puzzle_number_for_day(today)

        try:
            await interaction.response.defer()

            # The card's own message id becomes the session id, so post first then fix up the button
            card = build_card([], puzzle_number, PENDING_SESSION_ID)
            message = await interaction.edit_original_response(content=card.content, embed=card.embed, view=card.view)
            session_id = str(message.id)
            channel_id = str(message.channel.id if message.channel is not None else interaction.channel_id)

            card = build_card([], puzzle_number, session_id)
            await interaction.edit_original_response(content=card.content, embed=card.embed, view=card.view)

            session = TrackedSession(
                session_id=session_id,
                guild_id=guild_id,
                channel_id=channel_id,
                message_id=session_id,
                game_date=today,
                created_at=datetime.now(timezone.utc),
                interaction=interaction,
            )
            await self.tracker.track(session)
            await self.api.start_session(session_id, guild_id, channel_id, today)
        except Exception as ex:
            logger.error(
                "Error starting game session: %s",
                ex,
                exc_info=ex,
                extra={"guild_id": guild_id, "channel_id": interaction.channel_id},
            )
            await _report_failure(interaction, START_FAILED)
            return None

        logger.info("Started game session", extra={"session_id": session_id, "channel_id": channel_id})
        return session

    async def join(self, interaction: discord.Interaction, session_id: str) -> None:
        user_id = str(interaction.user.id)
        try:
            session = self.tracker.get(session_id) or await self.tracker.restore(session_id)
            if session is not None:
                if await self.api.has_completed(session.guild_id, user_id, session.game_date):
                    logger.info(
                        "Player already completed today's game, launching activity to view results",
                        extra={"session_id": session_id, "user_id": user_id},
                    )
                    await interaction.response.launch_activity()
                    return

                if session.player(user_id) is None:
                    if len(session.players) > 0 and not session.has_active_player:
                        await self.create_reply_session(interaction, session)
                        return
                    await self._add_player(interaction, session)
                else:
                    logger.info("Player rejoining session", extra={"session_id": session_id, "user_id": user_id})

            await interaction.response.launch_activity()
        except Exception as ex:
            logger.error(
                "Error launching activity: %s",
                ex,
                exc_info=ex,
                extra={"session_id": session_id, "user_id": user_id},
            )
            if not interaction.response.is_done():
                await interaction.response.defer()

    async def create_reply_session(
        self, interaction: discord.Interaction, original: TrackedSession
    ) -> TrackedSession | None:
        """Everyone on the original card has finished, so the newcomer gets a card of their own."""
        user_id = str(interaction.user.id)
        today = puzzle_today()
        puzzle_number = puzzle_number_for_day(today)
        player = TrackedPlayer(
            user_id=user_id,
            username=interaction.user.name,
            avatar_url=interaction.user.display_avatar.url,
        )

        try:
            await interaction.response.launch_activity()

            webhook = interaction.followup
            card = build_card([player], puzzle_number, PENDING_SESSION_ID)
            message = await webhook.send(content=card.content, embed=card.embed, view=card.view, wait=True)
            session_id = str(message.id)
            channel_id = str(message.channel.id if message.channel is not None else original.channel_id)

            card = build_card([player], puzzle_number, session_id)
            await webhook.edit_message(message.id, content=card.content, embed=card.embed, view=card.view)

            session = TrackedSession(
                session_id=session_id,
                guild_id=original.guild_id,
                channel_id=channel_id,
                message_id=session_id,
                game_date=today,
                created_at=datetime.now(timezone.utc),
                players=[player],
                webhook=webhook,
            )
            await self.tracker.track(session)
            await self.api.start_session(session_id, original.guild_id, channel_id, today)
            await self.api.join_session(
                session_id, user_id, player.username, player.avatar_url, original.guild_id, today
            )
        except Exception as ex:
            logger.error(
                "Error creating reply session: %s",
                ex,
                exc_info=ex,
                extra={"session_id": original.session_id, "user_id": user_id},
            )
            if not interaction.response.is_done():
                await interaction.response.defer()
            return None

        logger.info(
            "Created reply session for player, original session complete",
            extra={"session_id": session_id, "user_id": user_id},
        )
        return session

    async def _add_player(self, interaction: discord.Interaction, session: TrackedSession) -> None:
        user_id = str(interaction.user.id)
        username = interaction.user.name
        avatar_url = interaction.user.display_avatar.url

        await self.tracker.add_player(session, user_id, username, avatar_url)
        # Keyed by the card's day, which is not today for a join just after midnight
        await self.api.join_session(
            session.session_id, user_id, username, avatar_url, session.guild_id, session.game_date
        )
        await self.tracker.refresh_message(session)


def synapse_command(router: InteractionRouter) -> discord.app_commands.Command:
    @discord.app_commands.command(name="synapse", description="Start a game of Synapse in this channel")
    async def synapse(interaction: discord.Interaction) -> None:
        await router.start_session(interaction)

    return synapse


async def _report_failure(interaction: discord.Interaction, content: str) -> None:
    try:
        if interaction.response.is_done():
            await interaction.edit_original_response(content=content, embed=None, view=None)
        else:
            await interaction.response.send_message(content=content, ephemeral=True)
    except discord.HTTPException as ex:
        logger.warning("Failed to send error message: %s", ex)
