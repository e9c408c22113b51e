import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Sequence

import discord

from apps.core.cache import Cache, MemoryCache
from apps.core.game import GuessHistory, MalformedGuessError
from apps.core.models import ActiveSession
from services.bot.api import CoordinatorClient, CoordinatorError
from services.bot.config import RETIREMENT_GRACE_PERIOD, SESSION_MAX_AGE
from services.bot.delivery import DEFAULT_STRATEGIES, DeliveryStrategy, deliver
from services.bot.persistence import SessionRepository
from services.bot.progress import build_card
from services.bot.recap import track_session_completion
from services.bot.utils import puzzle_number_for_day, puzzle_today

logger = logging.getLogger(__name__)

CompletionHandler = Callable[[str, str, date], Awaitable[None]]


class SessionState(enum.Enum):
    ACTIVE = "active"
    RETIRED = "retired"


@dataclass
class TrackedPlayer:
    user_id: str
    username: str
    avatar_url: str | None
    guess_history: GuessHistory = field(default_factory=GuessHistory)
    # Bookkeeping only, the coordinator's history is authoritative
    last_guess_count: int = 0

    @property
    def is_complete(self) -> bool:
        return self.guess_history.is_complete


@dataclass
class TrackedSession:
    session_id: str
    guild_id: str
    channel_id: str
    message_id: str
    game_date: date
    created_at: datetime
    players: list[TrackedPlayer] = field(default_factory=list)
    interaction: discord.Interaction | None = None
    webhook: discord.Webhook | None = None
    state: SessionState = SessionState.ACTIVE
    retired_at: datetime | None = None

    @property
    def puzzle_number(self) -> int | None:
        return puzzle_number_for_day(self.game_date)

    @property
    def all_complete(self) -> bool:
        return len(self.players) > 0 and all(player.is_complete for player in self.players)

    @property
    def has_active_player(self) -> bool:
        return any(not player.is_complete for player in self.players)

    def player(self, user_id: str) -> TrackedPlayer | None:
        for player in self.players:
            if player.user_id == user_id:
                return player
        return None


class SessionTracker:
    """Keeps the bot's shared progress cards in step with the coordinator.

    Each poll fetches every tracked session, copies over any player who has made
    new guesses, re-renders the card when something changed, and retires the
    session once every player is done or it has been around for too long.
    """

    def __init__(
        self,
        client: discord.Client,
        api: CoordinatorClient,
        repository: SessionRepository | None = None,
        on_complete: CompletionHandler = track_session_completion,
        max_age: timedelta = timedelta(seconds=SESSION_MAX_AGE),
        grace_period: timedelta = timedelta(seconds=RETIREMENT_GRACE_PERIOD),
        strategies: Sequence[DeliveryStrategy] = DEFAULT_STRATEGIES,
        cache: Cache[str, TrackedSession] | None = None,
    ) -> None:
        self.client = client
        self.api = api
        self.repository = repository or SessionRepository()
        self.on_complete = on_complete
        self.max_age = max_age
        self.grace_period = grace_period
        self.strategies = strategies
        self._sessions: Cache[str, TrackedSession] = cache if cache is not None else MemoryCache()
        self._retired: dict[str, TrackedSession] = {}
        self._was_polling = False

    @property
    def active_sessions(self) -> list[TrackedSession]:
        return self._sessions.values()

    def get(self, session_id: str) -> TrackedSession | None:
        session = self._sessions.get(session_id)
        if session is None:
            session = self._retired.get(session_id)
        return session

    async def track(self, session: TrackedSession) -> None:
        self._sessions.put(session.session_id, session)
        try:
            await self.repository.save_session(session)
        except Exception as ex:
            logger.error(
                "Failed to persist active session: %s",
                ex,
                exc_info=ex,
                extra={"session_id": session.session_id, "channel_id": session.channel_id},
            )

    async def add_player(
        self, session: TrackedSession, user_id: str, username: str, avatar_url: str | None
    ) -> TrackedPlayer:
        player = session.player(user_id)
        if player is not None:
            return player

        player = TrackedPlayer(user_id=user_id, username=username, avatar_url=avatar_url)
        session.players.append(player)
        logger.info(
            "Added player to session (%d players)",
            len(session.players),
            extra={"session_id": session.session_id, "user_id": user_id},
        )
        await self._save_player(session, player)
        return player

    async def restore(self, session_id: str) -> TrackedSession | None:
        session = self.get(session_id)
        if session is not None:
            return session

        logger.info("Session not tracked, fetching from coordinator", extra={"session_id": session_id})
        try:
            remote = await self.api.get_session(session_id)
        except CoordinatorError as ex:
            logger.warning("Unable to restore session: %s", ex, extra={"session_id": session_id})
            return None

        if remote is None:
            logger.warning("Session not found on coordinator", extra={"session_id": session_id})
            return None

        try:
            session = _session_from_remote(session_id, remote)
        except (MalformedGuessError, KeyError, TypeError, ValueError) as ex:
            logger.warning("Coordinator returned a malformed session: %s", ex, extra={"session_id": session_id})
            return None

        await self.track(session)
        logger.info("Session restored from coordinator", extra={"session_id": session_id})
        return session

    async def load(self, game_date: date | None = None) -> int:
        """Picks the polling set back up from the database after a restart."""
        game_date = game_date or puzzle_today()
        records = await self.repository.load_sessions(game_date)
        for record in records:
            if self._sessions.get(record.session_id) is None:
                self._sessions.put(record.session_id, _session_from_record(record))

        if len(records) > 0:
            logger.info("Restored %d active sessions for %s", len(records), game_date)
        return len(records)

    async def poll(self, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        self._forget_retired(now)

        sessions = self._sessions.values()
        is_polling = len(sessions) > 0
        if is_polling and not self._was_polling:
            logger.info("Started polling %d active sessions", len(sessions))
        elif not is_polling and self._was_polling:
            logger.info("Stopped polling, no active sessions")
        self._was_polling = is_polling

        for session in sessions:
            try:
                if now - session.created_at > self.max_age:
                    await self._evict(session, now)
                else:
                    await self._poll_session(session, now)
            except Exception as ex:
                # Dropped so it can't fail every tick, the database row is left for inspection
                logger.error(
                    "Error checking session, no longer polling it: %s",
                    ex,
                    exc_info=ex,
                    extra={"session_id": session.session_id, "channel_id": session.channel_id},
                )
                self._sessions.delete(session.session_id)

    async def refresh_message(self, session: TrackedSession) -> bool:
        card = build_card(session.players, session.puzzle_number, session.session_id, session.all_complete)
        delivered = await deliver(self.client, session, card, self.strategies)
        if not delivered:
            logger.warning(
                "Unable to update session message",
                extra={"session_id": session.session_id, "channel_id": session.channel_id},
            )
        return delivered

    async def retire(self, session: TrackedSession, now: datetime | None = None) -> None:
        if session.state is SessionState.RETIRED:
            return

        session.state = SessionState.RETIRED
        session.retired_at = now or datetime.now(timezone.utc)
        self._sessions.delete(session.session_id)
        self._retired[session.session_id] = session

        try:
            await self.repository.delete_session(session.session_id)
        except Exception as ex:
            logger.error(
                "Failed to delete active session record: %s",
                ex,
                exc_info=ex,
                extra={"session_id": session.session_id},
            )

    async def _poll_session(self, session: TrackedSession, now: datetime) -> None:
        try:
            remote = await self.api.get_session(session.session_id)
        except CoordinatorError as ex:
            logger.warning("Unable to fetch session: %s", ex, extra={"session_id": session.session_id})
            return

        if remote is None:
            return

        try:
            changed = self._merge(session, remote)
        except (MalformedGuessError, AttributeError, TypeError) as ex:
            logger.warning("Ignoring malformed session data: %s", ex, extra={"session_id": session.session_id})
            return

        for player in changed:
            await self._save_player(session, player)

        if len(changed) > 0:
            await self.refresh_message(session)
            if session.all_complete:
                await self._complete(session, now)
        elif session.all_complete:
            # Finished without a new guess on this tick, e.g. after a restart
            await self._complete(session, now)

    def _merge(self, session: TrackedSession, remote: dict[str, Any]) -> list[TrackedPlayer]:
        remote_players = remote.get("players") or {}
        if not isinstance(remote_players, dict):
            raise MalformedGuessError("Expected session players to be an object")

        # Parse everything before touching local state so a bad payload changes nothing
        updates = [
            (str(user_id), data, GuessHistory.from_list(data.get("guessHistory")))
            for user_id, data in remote_players.items()
        ]

        changed = []
        for user_id, data, history in updates:
            player = session.player(user_id)
            if player is None:
                player = TrackedPlayer(
                    user_id=user_id,
                    username=str(data.get("username") or "Unknown"),
                    avatar_url=data.get("avatarUrl"),
                )
                session.players.append(player)
                changed.append(player)
                logger.info(
                    "Adopted player from coordinator",
                    extra={"session_id": session.session_id, "user_id": user_id},
                )

            if len(history) > player.last_guess_count:
                logger.info(
                    "Player has new guesses: %d -> %d",
                    player.last_guess_count,
                    len(history),
                    extra={"session_id": session.session_id, "user_id": user_id},
                )
                player.guess_history = history
                player.last_guess_count = len(history)
                if player not in changed:
                    changed.append(player)

        return changed

    async def _complete(self, session: TrackedSession, now: datetime) -> None:
        if not await self._hand_off(session):
            return
        await self.retire(session, now)
        logger.info("Game session completed, all players done", extra={"session_id": session.session_id})

    async def _evict(self, session: TrackedSession, now: datetime) -> None:
        logger.info(
            "Session exceeded max age, retiring",
            extra={"session_id": session.session_id, "channel_id": session.channel_id},
        )
        if not await self._hand_off(session):
            return
        await self.retire(session, now)

    async def _hand_off(self, session: TrackedSession) -> bool:
        # The session stays tracked until the recap is owed, so a failure is retried next tick
        try:
            await self.on_complete(session.guild_id, session.channel_id, session.game_date)
        except Exception as ex:
            logger.error(
                "Failed to schedule recap for session, will retry: %s",
                ex,
                exc_info=ex,
                extra={"session_id": session.session_id, "channel_id": session.channel_id},
            )
            return False
        return True

    async def _save_player(self, session: TrackedSession, player: TrackedPlayer) -> None:
        try:
            await self.repository.save_player(session.session_id, player)
        except Exception as ex:
            logger.error(
                "Failed to persist session player: %s",
                ex,
                exc_info=ex,
                extra={"session_id": session.session_id, "user_id": player.user_id},
            )

    def _forget_retired(self, now: datetime) -> None:
        expired = [
            session_id
            for session_id, session in self._retired.items()
            if session.retired_at is not None and now - session.retired_at > self.grace_period
        ]
        for session_id in expired:
            del self._retired[session_id]


def _session_from_remote(session_id: str, remote: dict[str, Any]) -> TrackedSession:
    players = []
    for user_id, data in (remote.get("players") or {}).items():
        history = GuessHistory.from_list(data.get("guessHistory"))
        players.append(
            TrackedPlayer(
                user_id=str(user_id),
                username=str(data.get("username") or "Unknown"),
                avatar_url=data.get("avatarUrl"),
                guess_history=history,
                last_guess_count=len(history),
            )
        )

    return TrackedSession(
        session_id=session_id,
        guild_id=str(remote.get("guildId") or "dm"),
        channel_id=str(remote["channelId"]),
        message_id=str(remote.get("messageId") or session_id),
        game_date=date.fromisoformat(remote["gameDate"]),
        created_at=datetime.now(timezone.utc),
        players=players,
    )


def _session_from_record(record: ActiveSession) -> TrackedSession:
    players = []
    for row in record.players.all():
        try:
            history = GuessHistory.from_list(row.guess_history)
        except MalformedGuessError as ex:
            logger.warning(
                "Stored guess history is malformed, treating as empty: %s",
                ex,
                extra={"session_id": record.session_id, "user_id": row.user_id},
            )
            history = GuessHistory()

        players.append(
            TrackedPlayer(
                user_id=row.user_id,
                username=row.username,
                avatar_url=row.avatar_url,
                guess_history=history,
                last_guess_count=row.last_guess_count,
            )
        )

    return TrackedSession(
        session_id=record.session_id,
        guild_id=record.guild_id,
        channel_id=record.channel_id,
        message_id=record.message_id,
        game_date=record.game_date,
        created_at=record.created_at,
        players=players,
    )
