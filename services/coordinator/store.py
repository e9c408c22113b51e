import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from django.utils import timezone

from apps.core.cache import Cache, MemoryCache
from apps.core.game import GuessHistory, MalformedGuessError, make_user_session_id, parse_user_session_id
from apps.core.models import MessageSession, SessionPlayer, UserSessionMapping
from services.coordinator.config import SESSION_MAX_AGE

logger = logging.getLogger(__name__)


class NotFoundReason(enum.Enum):
    SESSION = "Session not found"
    USER_SESSION = "User session not found"
    PLAYER = "Player not in session"


@dataclass(frozen=True)
class NotFound:
    reason: NotFoundReason


@dataclass
class Player:
    user_id: str
    username: str
    avatar_url: str | None
    guess_history: GuessHistory = field(default_factory=GuessHistory)

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "avatarUrl": self.avatar_url,
            "guessHistory": self.guess_history.to_list(),
        }


@dataclass
class Session:
    session_id: str
    guild_id: str
    channel_id: str
    game_date: date
    created_at: datetime
    last_update: datetime
    is_active: bool = True
    players: dict[str, Player] = field(default_factory=dict)

    def touch(self, now: datetime) -> None:
        self.last_update = max(self.last_update, now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "messageId": self.session_id,
            "guildId": self.guild_id,
            "channelId": self.channel_id,
            "gameDate": self.game_date.isoformat(),
            "isActive": self.is_active,
            "lastUpdate": _to_millis(self.last_update),
            "players": {user_id: player.to_dict() for user_id, player in self.players.items()},
        }


@dataclass(frozen=True)
class JoinResult:
    user_session_id: str
    session_id: str


@dataclass(frozen=True)
class UpdateResult:
    session_id: str
    user_id: str


@dataclass(frozen=True)
class LookupResult:
    found: bool
    session_id: str | None = None
    guess_history: GuessHistory | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.found:
            return {"found": False}
        assert self.guess_history is not None
        return {
            "found": True,
            "sessionId": self.session_id,
            "messageSessionId": self.session_id,
            "guessHistory": self.guess_history.to_list(),
        }


class SessionStore:
    """Message sessions and user routing, written through to the database.

    The caches only ever hold what has already been persisted, so a restarted
    coordinator rebuilds them lazily from the database on first access.
    """

    def __init__(
        self,
        sessions: Cache[str, Session] | None = None,
        mappings: Cache[str, str] | None = None,
        max_age: timedelta = timedelta(seconds=SESSION_MAX_AGE),
    ) -> None:
        self._sessions: Cache[str, Session] = sessions if sessions is not None else MemoryCache()
        self._mappings: Cache[str, str] = mappings if mappings is not None else MemoryCache()
        self._max_age = max_age

    async def create_session(self, session_id: str, guild_id: str, channel_id: str, game_date: date) -> Session:
        await self.purge_stale()

        record, created = await MessageSession.objects.aget_or_create(
            session_id=session_id,
            defaults=dict(guild_id=guild_id, channel_id=channel_id, game_date=game_date),
        )

        if created:
            logger.info("Created message session", extra={"session_id": session_id, "channel_id": channel_id})
            await self._supersede(record)
        else:
            logger.info("Message session already exists", extra={"session_id": session_id})

        session = await self.get_session(session_id)
        if session is None:
            # Deleted between the upsert and the read, hand back what was written
            session = _session_from_record(record, [])
        return session

    async def join_session(
        self,
        session_id: str,
        user_id: str,
        username: str,
        avatar_url: str | None,
        guild_id: str,
        game_date: date,
    ) -> JoinResult | NotFound:
        session = await self.get_session(session_id)
        if session is None:
            logger.warning("Join requested for unknown message session", extra={"session_id": session_id})
            return NotFound(NotFoundReason.SESSION)

        user_session_id = make_user_session_id(guild_id, user_id, game_date)
        await UserSessionMapping.objects.aupdate_or_create(
            user_session_id=user_session_id,
            defaults={"message_session_id": session_id},
        )
        self._mappings.put(user_session_id, session_id)

        if user_id not in session.players:
            record, _ = await SessionPlayer.objects.aget_or_create(
                session_id=session_id,
                user_id=user_id,
                defaults=dict(username=username, avatar_url=avatar_url),
            )
            now = timezone.now()
            await MessageSession.objects.filter(session_id=session_id).aupdate(last_update=now)
            session.players[user_id] = _player_from_record(record)
            session.touch(now)

        logger.info(
            "User %s mapped to message session (%d players)",
            user_session_id,
            len(session.players),
            extra={"session_id": session_id, "user_id": user_id},
        )
        return JoinResult(user_session_id=user_session_id, session_id=session_id)

    async def update_guesses(self, user_session_id: str, guess_history: GuessHistory) -> UpdateResult | NotFound:
        session_id = await self._mapped_session_id(user_session_id)
        parsed = parse_user_session_id(user_session_id)
        if session_id is None or parsed is None:
            logger.warning("No message session mapped for user session %s", user_session_id)
            return NotFound(NotFoundReason.USER_SESSION)

        session = await self.get_session(session_id)
        if session is None:
            logger.warning(
                "User session %s is mapped to a message session that no longer exists",
                user_session_id,
                extra={"session_id": session_id},
            )
            return NotFound(NotFoundReason.SESSION)

        _, user_id, _ = parsed
        player = session.players.get(user_id)
        if player is None:
            player = await self._load_player(session, user_id)
        if player is None:
            logger.warning(
                "User session %s routes to a message session the player never joined",
                user_session_id,
                extra={"session_id": session_id, "user_id": user_id},
            )
            return NotFound(NotFoundReason.PLAYER)

        now = timezone.now()
        await SessionPlayer.objects.filter(session_id=session_id, user_id=user_id).aupdate(
            guess_history=guess_history.to_list()
        )
        await MessageSession.objects.filter(session_id=session_id).aupdate(last_update=now)
        player.guess_history = guess_history
        session.touch(now)

        logger.info(
            "Player guesses updated (%d guesses)",
            len(guess_history),
            extra={"session_id": session_id, "user_id": user_id},
        )
        return UpdateResult(session_id=session_id, user_id=user_id)

    async def lookup_by_user(self, channel_id: str, user_id: str, game_date: date) -> LookupResult:
        record = await (
            SessionPlayer.objects.select_related("session")
            .filter(user_id=user_id, session__channel_id=channel_id, session__game_date=game_date)
            .order_by("-session__is_active", "-session__created_at", "-session__session_id")
            .afirst()
        )
        if record is None:
            return LookupResult(found=False)

        session = await self.get_session(record.session_id)
        player = session.players.get(user_id) if session is not None else None
        guess_history = player.guess_history if player is not None else _history_from_record(record)
        return LookupResult(found=True, session_id=record.session_id, guess_history=guess_history)

    async def get_session(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        if session is not None:
            return session

        record = await MessageSession.objects.filter(session_id=session_id).afirst()
        if record is None:
            return None

        players = [p async for p in SessionPlayer.objects.filter(session_id=session_id).order_by("joined_at", "id")]

        # Another request may have loaded it while this one was waiting on the database
        cached = self._sessions.get(session_id)
        if cached is not None:
            return cached

        session = _session_from_record(record, players)
        self._sessions.put(session_id, session)
        logger.info("Loaded message session from database", extra={"session_id": session_id})
        return session

    async def delete_session(self, session_id: str) -> None:
        deleted_count, _ = await MessageSession.objects.filter(session_id=session_id).adelete()
        self._sessions.delete(session_id)
        if deleted_count > 0:
            logger.info("Deleted message session", extra={"session_id": session_id})

    async def clear_user(self, guild_id: str, user_id: str, game_date: date) -> None:
        user_session_id = make_user_session_id(guild_id, user_id, game_date)
        session_id = await self._mapped_session_id(user_session_id)
        if session_id is None:
            return

        await SessionPlayer.objects.filter(session_id=session_id, user_id=user_id).adelete()
        await UserSessionMapping.objects.filter(user_session_id=user_session_id).adelete()
        self._mappings.delete(user_session_id)

        session = self._sessions.get(session_id)
        if session is not None:
            session.players.pop(user_id, None)

        logger.info("Cleared user from message session", extra={"session_id": session_id, "user_id": user_id})
        if not await SessionPlayer.objects.filter(session_id=session_id).aexists():
            await self.delete_session(session_id)

    async def purge_stale(self, now: datetime | None = None) -> int:
        cutoff = (now or timezone.now()) - self._max_age
        stale_ids = [
            session_id
            async for session_id in MessageSession.objects.filter(last_update__lt=cutoff).values_list(
                "session_id", flat=True
            )
        ]
        if not stale_ids:
            return 0

        await MessageSession.objects.filter(session_id__in=stale_ids).adelete()
        await UserSessionMapping.objects.filter(message_session_id__in=stale_ids).adelete()
        for session_id in stale_ids:
            self._sessions.delete(session_id)

        logger.info("Purged %d stale message sessions", len(stale_ids))
        return len(stale_ids)

    async def _load_player(self, session: Session, user_id: str) -> Player | None:
        record = await SessionPlayer.objects.filter(session_id=session.session_id, user_id=user_id).afirst()
        if record is None:
            return None

        player = session.players.setdefault(user_id, _player_from_record(record))
        logger.info(
            "Player missing from cached session, reloaded from database",
            extra={"session_id": session.session_id, "user_id": user_id},
        )
        return player

    async def _mapped_session_id(self, user_session_id: str) -> str | None:
        session_id = self._mappings.get(user_session_id)
        if session_id is not None:
            return session_id

        mapping = await UserSessionMapping.objects.filter(user_session_id=user_session_id).afirst()
        if mapping is None:
            return None

        self._mappings.put(user_session_id, mapping.message_session_id)
        return mapping.message_session_id

    async def _supersede(self, record: MessageSession) -> None:
        superseded = (
            await MessageSession.objects.filter(
                channel_id=record.channel_id,
                game_date=record.game_date,
                is_active=True,
            )
            .exclude(session_id=record.session_id)
            .aupdate(is_active=False)
        )
        for session in self._sessions.values():
            if (
                session.session_id != record.session_id
                and session.channel_id == record.channel_id
                and session.game_date == record.game_date
            ):
                session.is_active = False

        if superseded > 0:
            logger.info(
                "Superseded %d earlier sessions in channel",
                superseded,
                extra={"session_id": record.session_id, "channel_id": record.channel_id},
            )


def _session_from_record(record: MessageSession, players: list[SessionPlayer]) -> Session:
    return Session(
        session_id=record.session_id,
        guild_id=record.guild_id,
        channel_id=record.channel_id,
        game_date=record.game_date,
        created_at=record.created_at,
        last_update=record.last_update,
        is_active=record.is_active,
        players={p.user_id: _player_from_record(p) for p in players},
    )


def _player_from_record(record: SessionPlayer) -> Player:
    return Player(
        user_id=record.user_id,
        username=record.username,
        avatar_url=record.avatar_url,
        guess_history=_history_from_record(record),
    )


def _history_from_record(record: SessionPlayer) -> GuessHistory:
    try:
        return record.history()
    except MalformedGuessError as ex:
        logger.warning(
            "Stored guess history is malformed, treating as empty: %s",
            ex,
            extra={"session_id": record.session_id, "user_id": record.user_id},
        )
        return GuessHistory()


def _to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)
