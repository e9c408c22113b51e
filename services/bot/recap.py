import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

import discord
from django.utils import timezone as django_timezone

from apps.core.game import GuessHistory, MalformedGuessError
from apps.core.models import GameResult, PendingRecap, SessionPlayer
from services.bot.config import RECAP_HOUR, RECAP_MINUTE, RECAP_TIMEZONE_OFFSET
from services.bot.progress import display_name, format_guess_grid, new_session_view
from services.bot.utils import puzzle_number_for_day, puzzle_yesterday

logger = logging.getLogger(__name__)

DIFFICULTY_WEIGHTS = {0: 1, 1: 10, 2: 100, 3: 1000}
RANK_EMOJIS = {1: "🏆"}
RECAP_COLOR = 0xFFD700


class RecapError(Exception):
    pass


@dataclass
class RecapEntry:
    user_id: str
    username: str
    avatar_url: str | None
    score: int
    mistakes: int
    guess_history: GuessHistory = field(default_factory=GuessHistory)


@dataclass
class Recap:
    game_date: date
    completed: list[RecapEntry] = field(default_factory=list)
    # Players who joined a session but never submitted a result, in join order
    started: list[RecapEntry] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return len(self.completed) == 0 and len(self.started) == 0


async def track_session_completion(guild_id: str, channel_id: str, game_date: date) -> None:
    """Records that a recap is owed for this channel and day. Errors propagate so the caller can retry."""
    _, created = await PendingRecap.objects.aget_or_create(
        channel_id=channel_id,
        game_date=game_date,
        defaults=dict(guild_id=guild_id, recap_posted=False),
    )
    if created:
        logger.info("Recap scheduled", extra={"channel_id": channel_id, "game_date": game_date})


def tiebreaker_score(history: GuessHistory) -> int:
    """Rewards solving the harder categories, and solving them with fewer guesses before them."""
    return sum(
        DIFFICULTY_WEIGHTS[guess.difficulty] * (10 - index)
        for index, guess in enumerate(history)
        if guess.correct and guess.difficulty is not None
    )


def rank_results(entries: list[RecapEntry]) -> list[RecapEntry]:
    return sorted(entries, key=lambda e: (-e.score, e.mistakes, -tiebreaker_score(e.guess_history)))


async def build_recap(guild_id: str, game_date: date) -> Recap:
    completed = []
    results = GameResult.objects.filter(guild_id=guild_id, game_date=game_date).order_by("completed_at", "id")
    async for result in results:
        completed.append(
            RecapEntry(
                user_id=result.user_id,
                username=result.username,
                avatar_url=result.avatar_url,
                score=result.score,
                mistakes=result.mistakes,
                guess_history=_history(result),
            )
        )

    finished = {entry.user_id for entry in completed}
    started: dict[str, RecapEntry] = {}
    players = SessionPlayer.objects.filter(session__guild_id=guild_id, session__game_date=game_date).order_by(
        "joined_at", "id"
    )
    async for player in players:
        if player.user_id in finished or player.user_id in started:
            continue

        history = _history(player)
        started[player.user_id] = RecapEntry(
            user_id=player.user_id,
            username=player.username,
            avatar_url=player.avatar_url,
            score=history.solved_count,
            mistakes=history.mistake_count,
            guess_history=history,
        )

    return Recap(game_date=game_date, completed=rank_results(completed), started=list(started.values()))


def build_recap_message(recap: Recap) -> str:
    day = recap.game_date
    message = f"📊 **Synapse - {day:%B} {day.day}, {day.year}**"

    if recap.is_empty:
        return message + "\n\nNo one played the puzzle."

    started = ", ".join(f"<@{entry.user_id}>" for entry in recap.started)
    if len(recap.completed) == 0:
        count = len(recap.started)
        return message + f"\n\n{count} player{_plural(count)} started but didn't complete.\n\n{started}"

    count = len(recap.completed)
    message += f" - {count} player{_plural(count)} completed!\n\n"

    winner = recap.completed[0]
    perfect = "**Perfect!** " if winner.score == 4 and winner.mistakes == 0 else ""
    message += f"{_get_rank_symbol(1)} {perfect}<@{winner.user_id}>"
    for rank, entry in enumerate(recap.completed[1:], start=2):
        message += f"\n{_get_rank_symbol(rank)} <@{entry.user_id}>"

    if len(recap.started) > 0:
        message += f"\n\n**Started:** {started}"

    return message


def build_recap_embed(recap: Recap) -> discord.Embed:
    puzzle_number = puzzle_number_for_day(recap.game_date)
    title = "🏆 Synapse Results 🏆" if puzzle_number is None else f"🏆 Synapse #{puzzle_number} Results 🏆"
    embed = discord.Embed(title=title, color=RECAP_COLOR)

    for rank, entry in enumerate(recap.completed, start=1):
        embed.add_field(
            name=f"\u200b\n{_get_rank_symbol(rank)} {display_name(entry.username)}",
            value=format_guess_grid(entry.guess_history),
            inline=True,
        )

    for entry in recap.started:
        embed.add_field(
            name=f"\u200b\n🧩 {display_name(entry.username)}",
            value=format_guess_grid(entry.guess_history),
            inline=True,
        )

    return embed


class RecapScheduler:
    """Posts yesterday's results once the local cutoff time has passed, once per channel."""

    def __init__(
        self,
        client: discord.Client,
        hour: int = RECAP_HOUR,
        minute: int = RECAP_MINUTE,
        offset: int = RECAP_TIMEZONE_OFFSET,
    ) -> None:
        self.client = client
        self.hour = hour
        self.minute = minute
        self.offset = offset

    def is_due(self, now: datetime) -> bool:
        local = now.astimezone(timezone.utc) + timedelta(hours=self.offset)
        return (local.hour, local.minute) >= (self.hour, self.minute)

    async def check(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        if not self.is_due(now):
            return 0

        yesterday = puzzle_yesterday(now)
        pending = PendingRecap.objects.filter(game_date=yesterday, recap_posted=False).order_by("created_at", "id")
        rows = [row async for row in pending]
        if len(rows) == 0:
            return 0

        posted = 0
        for row in rows:
            try:
                if await self._post(row):
                    posted += 1
            except Exception as ex:
                logger.error(
                    "Unable to post recap to channel: %s",
                    ex,
                    exc_info=ex,
                    extra={"guild_id": row.guild_id, "channel_id": row.channel_id, "game_date": row.game_date},
                )

        return posted

    async def _post(self, row: PendingRecap) -> bool:
        recap = await build_recap(row.guild_id, row.game_date)
        if recap.is_empty:
            logger.warning(
                "No games found for recap, nothing to post",
                extra={"guild_id": row.guild_id, "channel_id": row.channel_id, "game_date": row.game_date},
            )
            await _mark_posted(row)
            return False

        channel = await self._get_channel(row.channel_id)
        await channel.send(
            content=build_recap_message(recap),
            embed=build_recap_embed(recap),
            view=new_session_view(row.channel_id),
        )

        # Only marked once the send went through, a failed send is retried next check
        await _mark_posted(row)
        logger.info("Posted recap", extra={"channel_id": row.channel_id, "game_date": row.game_date})
        return True

    async def _get_channel(self, channel_id: str) -> discord.abc.Messageable:
        channel = self.client.get_channel(int(channel_id))
        if channel is None:
            channel = await self.client.fetch_channel(int(channel_id))

        if not isinstance(channel, discord.abc.Messageable):
            raise RecapError(f"Expected channel {channel_id} to be messageable, got {type(channel)}")
        return channel


async def _mark_posted(row: PendingRecap) -> None:
    await PendingRecap.objects.filter(pk=row.pk, recap_posted=False).aupdate(
        recap_posted=True, posted_at=django_timezone.now()
    )


def _history(record: GameResult | SessionPlayer) -> GuessHistory:
    try:
        return record.history()
    except MalformedGuessError as ex:
        logger.warning("Ignoring malformed guess history: %s", ex, extra={"user_id": record.user_id})
        return GuessHistory()


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def _get_rank_symbol(rank: int) -> str:
    return RANK_EMOJIS.get(rank, f"{rank}.")
