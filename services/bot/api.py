import asyncio
import json
import logging
from datetime import date
from typing import Any

import aiohttp

from services.bot.config import COORDINATOR_URL, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


class CoordinatorError(Exception):
    pass


class MalformedResponseError(CoordinatorError):
    pass


class CoordinatorClient:
    """Bot side view of the coordinator's session and game state endpoints."""

    def __init__(
        self,
        base_url: str = COORDINATOR_URL,
        timeout: int = REQUEST_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def start_session(self, session_id: str, guild_id: str, channel_id: str, game_date: date) -> bool:
        try:
            await self._request(
                "POST",
                "/sessions/start",
                {
                    "sessionId": session_id,
                    "guildId": guild_id,
                    "channelId": channel_id,
                    "messageId": session_id,
                    "gameDate": game_date.isoformat(),
                },
            )
            return True
        except CoordinatorError as ex:
            logger.error("Failed to notify coordinator about session: %s", ex, extra={"session_id": session_id})
            return False

    async def join_session(
        self,
        session_id: str,
        user_id: str,
        username: str,
        avatar_url: str | None,
        guild_id: str,
        game_date: date,
    ) -> dict[str, Any] | None:
        try:
            data = await self._request(
                "POST",
                f"/sessions/{session_id}/join",
                {
                    "userId": user_id,
                    "username": username,
                    "avatarUrl": avatar_url,
                    "guildId": guild_id,
                    "gameDate": game_date.isoformat(),
                },
            )
        except CoordinatorError as ex:
            logger.error(
                "Failed to notify coordinator about player join: %s",
                ex,
                extra={"session_id": session_id, "user_id": user_id},
            )
            return None

        if data is None:
            logger.warning("Coordinator does not know session for join", extra={"session_id": session_id})
        return data

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        """Returns None when the coordinator has no such session, raises CoordinatorError otherwise."""
        return await self._request("GET", f"/sessions/{session_id}")

    async def has_completed(self, guild_id: str, user_id: str, game_date: date) -> bool:
        try:
            state = await self._request("GET", f"/gamestate/{guild_id}/{game_date.isoformat()}")
        except CoordinatorError as ex:
            logger.error("Failed to check if player completed game: %s", ex, extra={"user_id": user_id})
            return False

        players = (state or {}).get("players") or {}
        return user_id in players

    async def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with self._client().request(method, url, json=body) as response:
                status = response.status
                text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
            raise CoordinatorError(f"{method} {path} failed: {ex}") from ex

        if status == 404:
            return None
        if status >= 400:
            raise CoordinatorError(f"{method} {path} returned {status}")

        try:
            return json.loads(text)
        except ValueError as ex:
            raise MalformedResponseError(f"{method} {path} returned invalid JSON: {ex}") from ex

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout))
        return self._session
