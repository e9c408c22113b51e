import asyncio
import functools
import json
import logging
from datetime import date
from typing import Any, Awaitable, Callable

import aiohttp
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from apps.core.game import GuessHistory, MalformedGuessError
from services.coordinator import gamestate
from services.coordinator.config import DISCORD_CLIENT_ID, DISCORD_CLIENT_SECRET, DISCORD_TOKEN_URL, REQUEST_TIMEOUT
from services.coordinator.puzzles import PuzzleCache, PuzzleNotFound, PuzzleSourceError
from services.coordinator.store import NotFound, SessionStore

logger = logging.getLogger(__name__)

store = SessionStore()
puzzles = PuzzleCache()

View = Callable[..., Awaitable[HttpResponse]]


class InvalidRequest(Exception):
    pass


def _json_api(view: View) -> View:
    @functools.wraps(view)
    async def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> HttpResponse:
        try:
            return await view(request, *args, **kwargs)
        except InvalidRequest as ex:
            return JsonResponse({"error": str(ex)}, status=400)
        except Exception as ex:
            # Callers keep playing locally and retry on their next action
            logger.error("Error handling %s %s: %s", request.method, request.path, ex, exc_info=ex)
            return JsonResponse({"error": "Temporarily unable to process request"}, status=503)

    return wrapper


@require_POST
@_json_api
async def start_session(request: HttpRequest) -> HttpResponse:
    body = _body(request)
    session = await store.create_session(
        session_id=_required(body, "sessionId"),
        guild_id=str(body.get("guildId") or "dm"),
        channel_id=_required(body, "channelId"),
        game_date=_parse_date(_required(body, "gameDate")),
    )
    return JsonResponse({"success": True, "session": session.to_dict()})


@require_POST
@_json_api
async def join_session(request: HttpRequest, session_id: str) -> HttpResponse:
    body = _body(request)
    result = await store.join_session(
        session_id=session_id,
        user_id=_required(body, "userId"),
        username=_required(body, "username"),
        avatar_url=body.get("avatarUrl"),
        guild_id=str(body.get("guildId") or "dm"),
        game_date=_parse_date(body.get("gameDate") or body.get("date")),
    )
    if isinstance(result, NotFound):
        return _not_found(result)
    return JsonResponse(
        {"success": True, "userSessionId": result.user_session_id, "messageSessionId": result.session_id}
    )


@require_POST
@_json_api
async def update_session(request: HttpRequest, user_session_id: str) -> HttpResponse:
    body = _body(request)
    result = await store.update_guesses(user_session_id, _guess_history(body.get("guessHistory")))
    if isinstance(result, NotFound):
        return _not_found(result)
    return JsonResponse({"success": True, "messageSessionId": result.session_id, "userId": result.user_id})


@require_GET
@_json_api
async def lookup_session(request: HttpRequest, channel_id: str, user_id: str) -> HttpResponse:
    result = await store.lookup_by_user(channel_id, user_id, _parse_date(request.GET.get("date")))
    return JsonResponse(result.to_dict())


@require_http_methods(["GET", "DELETE"])
@_json_api
async def session_detail(request: HttpRequest, session_id: str) -> HttpResponse:
    if request.method == "DELETE":
        await store.delete_session(session_id)
        return JsonResponse({"success": True})

    session = await store.get_session(session_id)
    if session is None:
        return JsonResponse({"error": "Session not found"}, status=404)
    return JsonResponse(session.to_dict())


@require_GET
@_json_api
async def game_state(request: HttpRequest, guild_id: str, game_date: str) -> HttpResponse:
    return JsonResponse(await gamestate.get_game_state(guild_id, _parse_date(game_date)))


@require_POST
@_json_api
async def complete_game(request: HttpRequest, guild_id: str, game_date: str) -> HttpResponse:
    body = _body(request)
    state = await gamestate.save_game_result(
        guild_id=guild_id,
        game_date=_parse_date(game_date),
        user_id=_required(body, "userId"),
        username=_required(body, "username"),
        avatar=body.get("avatar"),
        score=_required_int(body, "score"),
        mistakes=_required_int(body, "mistakes"),
        guess_history=_guess_history(body.get("guessHistory")),
    )
    return JsonResponse({"success": True, "gameState": state})


@require_http_methods(["DELETE"])
@_json_api
async def delete_game(request: HttpRequest, guild_id: str, game_date: str, user_id: str) -> HttpResponse:
    day = _parse_date(game_date)
    await store.clear_user(guild_id, user_id, day)
    state = await gamestate.delete_game_result(guild_id, day, user_id)
    return JsonResponse({"success": True, "gameState": state})


@require_GET
@_json_api
async def puzzle(request: HttpRequest, game_date: str) -> HttpResponse:
    try:
        return JsonResponse(await puzzles.get(_parse_date(game_date)))
    except PuzzleNotFound:
        return JsonResponse({"error": "Game not found for this date"}, status=404)
    except PuzzleSourceError as ex:
        logger.warning("Puzzle source unavailable: %s", ex)
        return JsonResponse({"error": "Failed to fetch game data"}, status=502)


@require_POST
@_json_api
async def exchange_token(request: HttpRequest) -> HttpResponse:
    access_token = await _exchange_code(_required(_body(request), "code"))
    if access_token is None:
        return JsonResponse({"error": "Token exchange failed"}, status=502)
    return JsonResponse({"access_token": access_token})


async def _exchange_code(code: str) -> str | None:
    form = {
        "client_id": DISCORD_CLIENT_ID,
        "client_secret": DISCORD_CLIENT_SECRET,
        "grant_type": "authorization_code",
        "code": code,
    }
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)) as session:
            async with session.post(DISCORD_TOKEN_URL, data=form) as response:
                payload = await response.json(content_type=None)
                status = response.status
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as ex:
        logger.warning("Discord token exchange failed: %s", ex)
        return None

    if status >= 400 or not isinstance(payload, dict) or "access_token" not in payload:
        logger.warning("Discord token exchange returned %s", status)
        return None
    return str(payload["access_token"])


def _body(request: HttpRequest) -> dict[str, Any]:
    try:
        body = json.loads(request.body or b"{}")
    except ValueError:
        raise InvalidRequest("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return body


def _required(body: dict[str, Any], name: str) -> str:
    value = body.get(name)
    if value is None or value == "":
        raise InvalidRequest(f"Missing required field '{name}'")
    return str(value)


def _required_int(body: dict[str, Any], name: str) -> int:
    value = body.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequest(f"Field '{name}' must be an integer")
    return value


def _parse_date(value: Any) -> date:
    if not isinstance(value, str):
        raise InvalidRequest("A date in YYYY-MM-DD format is required")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidRequest(f"Invalid date '{value}', expected YYYY-MM-DD")


def _guess_history(raw: Any) -> GuessHistory:
    try:
        return GuessHistory.from_list(raw)
    except MalformedGuessError as ex:
        raise InvalidRequest(f"Invalid guess history: {ex}")


def _not_found(result: NotFound) -> JsonResponse:
    return JsonResponse({"error": result.reason.value}, status=404)
