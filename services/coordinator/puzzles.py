import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable

import aiohttp

from apps.core.cache import Cache, MemoryCache
from services.coordinator.config import PUZZLE_SOURCE_URL, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

PuzzleFetcher = Callable[[date], Awaitable[dict[str, Any] | None]]


class PuzzleNotFound(Exception):
    pass


class PuzzleSourceError(Exception):
    pass


async def fetch_puzzle(day: date) -> dict[str, Any] | None:
    url = PUZZLE_SOURCE_URL.format(date=day.isoformat())
    timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if response.status == 404:
                    return None
                if response.status >= 400:
                    raise PuzzleSourceError(f"Puzzle source returned {response.status} for {day}")
                return await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as ex:
        raise PuzzleSourceError(f"Unable to fetch puzzle for {day}: {ex}") from ex


class PuzzleCache:
    def __init__(self, fetch: PuzzleFetcher = fetch_puzzle, cache: Cache[date, dict[str, Any]] | None = None) -> None:
        self._fetch = fetch
        self._cache: Cache[date, dict[str, Any]] = cache if cache is not None else MemoryCache()

    async def get(self, day: date) -> dict[str, Any]:
        puzzle = self._cache.get(day)
        if puzzle is not None:
            logger.debug("Puzzle cache hit for %s", day)
            return puzzle

        logger.info("Puzzle cache miss for %s, fetching from source", day)
        puzzle = await self._fetch(day)
        if puzzle is None:
            raise PuzzleNotFound(f"No puzzle published for {day}")

        self._cache.put(day, puzzle)
        return puzzle
