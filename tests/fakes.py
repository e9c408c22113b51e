from datetime import date, datetime, timezone

from services.bot.sessions import TrackedPlayer, TrackedSession

TODAY = date(2024, 3, 1)
NOW = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)


def guesses(*difficulties: int | None) -> list[dict]:
    return [
        {"words": [f"W{i}{n}" for n in range(4)], "correct": d is not None, "difficulty": d}
        for i, d in enumerate(difficulties)
    ]


SOLVED = guesses(0, 1, 2, 3)
FAILED = guesses(None, None, None, None)


class FakeApi:
    def __init__(self) -> None:
        self.sessions: dict[str, dict] = {}
        self.error: Exception | None = None
        self.calls = 0

    async def get_session(self, session_id: str) -> dict | None:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.sessions.get(session_id)


class FakeRepository:
    def __init__(self) -> None:
        self.sessions: dict[str, TrackedSession] = {}
        self.players: dict[tuple[str, str], list[dict]] = {}
        self.deleted: list[str] = []

    async def save_session(self, session: TrackedSession) -> None:
        self.sessions[session.session_id] = session

    async def save_player(self, session_id: str, player: TrackedPlayer) -> None:
        self.players[(session_id, player.user_id)] = player.guess_history.to_list()

    async def load_sessions(self, game_date: date) -> list:
        return []

    async def delete_session(self, session_id: str) -> None:
        self.deleted.append(session_id)


class RecordingStrategy:
    name = "recording"

    def __init__(self) -> None:
        self.cards = []

    def available(self, session: TrackedSession) -> bool:
        return True

    async def edit(self, client, session: TrackedSession, card) -> None:
        self.cards.append(card)


def remote(players: dict[str, list[dict]]) -> dict:
    return {
        "sessionId": "100",
        "guildId": "g1",
        "channelId": "c1",
        "gameDate": TODAY.isoformat(),
        "players": {
            user_id: {"username": f"user-{user_id}", "avatarUrl": None, "guessHistory": history}
            for user_id, history in players.items()
        },
    }


def session(*user_ids: str, created_at: datetime = NOW) -> TrackedSession:
    return TrackedSession(
        session_id="100",
        guild_id="g1",
        channel_id="c1",
        message_id="100",
        game_date=TODAY,
        created_at=created_at,
        players=[TrackedPlayer(user_id=u, username=f"user-{u}", avatar_url=None) for u in user_ids],
    )

