import logging
from datetime import date
from typing import TYPE_CHECKING

from apps.core.models import ActiveSession, ActiveSessionPlayer

if TYPE_CHECKING:
    from services.bot.sessions import TrackedPlayer, TrackedSession

logger = logging.getLogger(__name__)


class SessionRepository:
    """Durable copy of the sessions this bot is polling, so a restart can pick them back up."""

    async def save_session(self, session: "TrackedSession") -> None:
        await ActiveSession.objects.aupdate_or_create(
            session_id=session.session_id,
            defaults=dict(
                guild_id=session.guild_id,
                channel_id=session.channel_id,
                message_id=session.message_id,
                game_date=session.game_date,
                created_at=session.created_at,
            ),
        )
        for player in session.players:
            await self.save_player(session.session_id, player)

    async def save_player(self, session_id: str, player: "TrackedPlayer") -> None:
        await ActiveSessionPlayer.objects.aupdate_or_create(
            session_id=session_id,
            user_id=player.user_id,
            defaults=dict(
                username=player.username,
                avatar_url=player.avatar_url,
                guess_history=player.guess_history.to_list(),
                last_guess_count=player.last_guess_count,
            ),
        )

    async def load_sessions(self, game_date: date) -> list[ActiveSession]:
        sessions = ActiveSession.objects.filter(game_date=game_date).prefetch_related("players").order_by("created_at")
        return [session async for session in sessions]

    async def delete_session(self, session_id: str) -> None:
        deleted_count, _ = await ActiveSession.objects.filter(session_id=session_id).adelete()
        if deleted_count > 0:
            logger.debug("Deleted active session record", extra={"session_id": session_id})
