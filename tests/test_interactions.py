import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from apps.core.game import GuessHistory
from services.bot.interactions import START_FAILED, InteractionRouter
from services.bot.sessions import SessionTracker, TrackedPlayer
from services.bot.utils import puzzle_today
from tests.fakes import SOLVED, TODAY, FakeRepository, RecordingStrategy, guesses, session


def make_interaction(custom_id: str = "launch_activity_100", user_id: int = 42) -> MagicMock:
    interaction = MagicMock()
    interaction.data = {"custom_id": custom_id}
    interaction.guild_id = 1
    interaction.channel_id = 200
    interaction.user.id = user_id
    interaction.user.name = "ann"
    interaction.user.display_avatar.url = "https://cdn.example/ann.png"
    interaction.response.launch_activity = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.response.send_message = AsyncMock()
    interaction.response.is_done = MagicMock(return_value=False)

    card_message = MagicMock(id=555)
    card_message.channel.id = 200
    interaction.edit_original_response = AsyncMock(return_value=card_message)

    reply_message = MagicMock(id=777)
    reply_message.channel.id = 200
    interaction.followup.send = AsyncMock(return_value=reply_message)
    interaction.followup.edit_message = AsyncMock()
    return interaction


@pytest.fixture
def api() -> MagicMock:
    api = MagicMock()
    api.get_session = AsyncMock(return_value=None)
    api.has_completed = AsyncMock(return_value=False)
    api.start_session = AsyncMock(return_value=True)
    api.join_session = AsyncMock(return_value={})
    return api


@pytest.fixture
def strategy() -> RecordingStrategy:
    return RecordingStrategy()


@pytest.fixture
def tracker(api, strategy) -> SessionTracker:
    return SessionTracker(
        MagicMock(),
        api,
        FakeRepository(),
        on_complete=AsyncMock(),
        max_age=timedelta(hours=6),
        grace_period=timedelta(seconds=30),
        strategies=[strategy],
    )


@pytest.fixture
def router(tracker, api) -> InteractionRouter:
    return InteractionRouter(tracker, api)


def test_start_session_uses_message_id(router, tracker, api):
    interaction = make_interaction()

    started = asyncio.run(router.start_session(interaction))

    assert started is not None
    assert started.session_id == "555"
    assert tracker.get("555") is started
    assert started.interaction is interaction
    interaction.response.defer.assert_awaited_once()
    api.start_session.assert_awaited_once_with("555", "1", "200", puzzle_today())

    assert interaction.edit_original_response.await_count == 2
    view = interaction.edit_original_response.await_args.kwargs["view"]
    assert [item.custom_id for item in view.children] == ["launch_activity_555"]


def test_start_session_failure_tells_user(router, tracker):
    interaction = make_interaction()
    interaction.response.defer = AsyncMock(side_effect=RuntimeError("gone"))

    assert asyncio.run(router.start_session(interaction)) is None

    assert tracker.active_sessions == []
    interaction.response.send_message.assert_awaited_once_with(content=START_FAILED, ephemeral=True)


def test_join_adds_player_and_launches(router, tracker, api, strategy):
    tracked = session("u1")
    asyncio.run(tracker.track(tracked))

    asyncio.run(router.join(make_interaction(), "100"))

    assert [player.user_id for player in tracked.players] == ["u1", "42"]
    api.join_session.assert_awaited_once()
    assert api.join_session.await_args.args[:3] == ("100", "42", "ann")
    assert len(strategy.cards) == 1


def test_join_twice_does_not_duplicate(router, tracker, api):
    tracked = session("42")
    asyncio.run(tracker.track(tracked))
    interaction = make_interaction()

    asyncio.run(router.join(interaction, "100"))

    assert len(tracked.players) == 1
    api.join_session.assert_not_awaited()
    interaction.response.launch_activity.assert_awaited_once()


def test_player_who_finished_only_launches(router, tracker, api):
    tracked = session("u1")
    asyncio.run(tracker.track(tracked))
    api.has_completed.return_value = True
    interaction = make_interaction()

    asyncio.run(router.join(interaction, "100"))

    assert len(tracked.players) == 1
    api.join_session.assert_not_awaited()
    interaction.response.launch_activity.assert_awaited_once()


def test_join_finished_card_gets_reply_session(router, tracker, api):
    tracked = session()
    tracked.players.append(
        TrackedPlayer(user_id="u1", username="bob", avatar_url=None, guess_history=GuessHistory.from_list(SOLVED))
    )
    asyncio.run(tracker.track(tracked))
    interaction = make_interaction()

    asyncio.run(router.join(interaction, "100"))

    reply = tracker.get("777")
    assert reply is not None
    assert reply.webhook is interaction.followup
    assert [player.user_id for player in reply.players] == ["42"]
    assert [player.user_id for player in tracked.players] == ["u1"]
    interaction.response.launch_activity.assert_awaited_once()
    interaction.followup.edit_message.assert_awaited_once()
    api.start_session.assert_awaited_once_with("777", "g1", "200", puzzle_today())
    assert api.join_session.await_args.args[:2] == ("777", "42")


def test_join_with_player_still_going_shares_card(router, tracker):
    tracked = session()
    tracked.players.append(
        TrackedPlayer(user_id="u1", username="bob", avatar_url=None, guess_history=GuessHistory.from_list(guesses(0)))
    )
    asyncio.run(tracker.track(tracked))

    asyncio.run(router.join(make_interaction(), "100"))

    assert tracker.get("777") is None
    assert [player.user_id for player in tracked.players] == ["u1", "42"]


def test_join_unknown_session_still_launches(router, api):
    interaction = make_interaction()

    asyncio.run(router.join(interaction, "999"))

    api.get_session.assert_awaited_once_with("999")
    api.join_session.assert_not_awaited()
    interaction.response.launch_activity.assert_awaited_once()


def test_handle_component_routes_by_custom_id(router, tracker):
    asyncio.run(tracker.track(session("42")))
    launch = make_interaction("launch_activity_100")
    start = make_interaction("start_new_session_200")
    other = make_interaction("something_else")

    assert asyncio.run(router.handle_component(launch)) is True
    assert asyncio.run(router.handle_component(start)) is True
    assert asyncio.run(router.handle_component(other)) is False

    launch.response.launch_activity.assert_awaited_once()
    assert tracker.get("555") is not None
    other.response.launch_activity.assert_not_awaited()


def test_join_after_midnight_uses_the_cards_day(router, tracker, api):
    yesterday = session("u1")
    yesterday.game_date = TODAY - timedelta(days=1)
    asyncio.run(tracker.track(yesterday))

    asyncio.run(router.join(make_interaction(), "100"))

    assert api.has_completed.await_args.args == ("g1", "42", TODAY - timedelta(days=1))
    assert api.join_session.await_args.args[5] == TODAY - timedelta(days=1)
