import logging
from datetime import date
from typing import Any

from django.utils import timezone

from apps.core.game import GuessHistory
from apps.core.models import GameResult

logger = logging.getLogger(__name__)


async def get_game_state(guild_id: str, game_date: date) -> dict[str, Any]:
    results = GameResult.objects.filter(guild_id=guild_id, game_date=game_date).order_by("completed_at")
    players = {result.user_id: _result_to_dict(result) async for result in results}
    return {"date": game_date.isoformat(), "players": players}


async def save_game_result(
    guild_id: str,
    game_date: date,
    user_id: str,
    username: str,
    avatar: str | None,
    score: int,
    mistakes: int,
    guess_history: GuessHistory,
) -> dict[str, Any]:
    # Retries overwrite the earlier row for the same player and day
    await GameResult.objects.aupdate_or_create(
        guild_id=guild_id,
        user_id=user_id,
        game_date=game_date,
        defaults=dict(
            username=username,
            avatar=avatar,
            score=score,
            mistakes=mistakes,
            guess_history=guess_history.to_list(),
            completed_at=timezone.now(),
        ),
    )
    logger.info(
        "Saved game result (%d/4, %d mistakes)",
        score,
        mistakes,
        extra={"guild_id": guild_id, "user_id": user_id, "game_date": game_date},
    )
    return await get_game_state(guild_id, game_date)


async def delete_game_result(guild_id: str, game_date: date, user_id: str) -> dict[str, Any]:
    deleted_count, _ = await GameResult.objects.filter(
        guild_id=guild_id, game_date=game_date, user_id=user_id
    ).adelete()
    if deleted_count > 0:
        logger.info("Deleted game result", extra={"guild_id": guild_id, "user_id": user_id, "game_date": game_date})
    return await get_game_state(guild_id, game_date)


def _result_to_dict(result: GameResult) -> dict[str, Any]:
    return {
        "username": result.username,
        "avatar": result.avatar,
        "score": result.score,
        "mistakes": result.mistakes,
        "guessHistory": result.guess_history,
        "completedAt": int(result.completed_at.timestamp() * 1000),
    }
