import logging
from datetime import date

import discord
from django.db import IntegrityError

from apps.core.game import MAX_MISTAKES, TOTAL_CATEGORIES
from apps.core.models import GameResult, PostedNotification
from services.bot.config import ACTIVITY_URL, NOTIFICATION_CHANNEL_NAME
from services.bot.progress import PLAY_LABEL, format_guess_grid
from services.bot.utils import puzzle_today

logger = logging.getLogger(__name__)

PERFECT_COLOR = 0x57F287
FAILED_COLOR = 0xED4245
DEFAULT_COLOR = 0x5865F2


def build_result_embed(result: GameResult) -> discord.Embed:
    if result.score == TOTAL_CATEGORIES:
        color = PERFECT_COLOR
    elif result.mistakes >= MAX_MISTAKES:
        color = FAILED_COLOR
    else:
        color = DEFAULT_COLOR

    embed = discord.Embed(description=format_guess_grid(result.history()), color=color, timestamp=result.completed_at)
    embed.set_author(name=f"{result.username} completed Synapse!", icon_url=result.avatar_url)
    embed.add_field(name="Score", value=f"{result.score}/{TOTAL_CATEGORIES} categories", inline=True)
    embed.add_field(name="Mistakes", value=f"{result.mistakes}/{MAX_MISTAKES}", inline=True)
    return embed


def play_link_view() -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(label=PLAY_LABEL, style=discord.ButtonStyle.link, url=ACTIVITY_URL))
    return view


def find_notification_channel(guild: discord.Guild) -> discord.TextChannel | None:
    for channel in guild.text_channels:
        if channel.name == NOTIFICATION_CHANNEL_NAME:
            return channel

    if len(guild.text_channels) > 0:
        return guild.text_channels[0]
    return None


async def announce_completed_games(client: discord.Client, game_date: date | None = None) -> int:
    """Posts one result card per finished game that hasn't been announced yet."""
    game_date = game_date or puzzle_today()
    announced = 0

    async for result in GameResult.objects.filter(game_date=game_date).order_by("completed_at"):
        try:
            if await _announce(client, result):
                announced += 1
        except Exception as ex:
            logger.error(
                "Unable to announce completed game: %s",
                ex,
                exc_info=ex,
                extra={"guild_id": result.guild_id, "user_id": result.user_id, "game_date": game_date},
            )

    return announced


async def _announce(client: discord.Client, result: GameResult) -> bool:
    already_posted = await PostedNotification.objects.filter(
        guild_id=result.guild_id, user_id=result.user_id, game_date=result.game_date
    ).aexists()
    if already_posted:
        return False

    if not result.guild_id.isdigit():
        return False

    guild = client.get_guild(int(result.guild_id))
    if guild is None:
        return False

    channel = find_notification_channel(guild)
    if channel is None:
        return False

    await channel.send(embed=build_result_embed(result), view=play_link_view())

    try:
        await PostedNotification.objects.acreate(
            guild_id=result.guild_id, user_id=result.user_id, game_date=result.game_date
        )
    except IntegrityError:
        logger.warning("Completed game was announced twice", extra={"user_id": result.user_id})

    return True
