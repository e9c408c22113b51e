import asyncio
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import discord

from services.bot.delivery import deliver
from services.bot.progress import build_card
from services.bot.sessions import TrackedSession


def tracked(interaction=None, webhook=None) -> TrackedSession:
    return TrackedSession(
        session_id="100",
        guild_id="g1",
        channel_id="200",
        message_id="100",
        game_date=date(2024, 3, 1),
        created_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
        interaction=interaction,
        webhook=webhook,
    )


def http_error() -> discord.HTTPException:
    return discord.HTTPException(MagicMock(status=401, reason="Unauthorized"), "Invalid Webhook Token")


def run_delivery(client: MagicMock, session: TrackedSession) -> bool:
    async def scenario() -> bool:
        return await deliver(client, session, build_card([], 264, session.session_id))

    return asyncio.run(scenario())


def test_interaction_is_preferred():
    interaction = MagicMock()
    interaction.edit_original_response = AsyncMock()
    webhook = MagicMock()
    webhook.edit_message = AsyncMock()

    assert run_delivery(MagicMock(), tracked(interaction, webhook)) is True
    interaction.edit_original_response.assert_awaited_once()
    webhook.edit_message.assert_not_awaited()


def test_expired_interaction_falls_back_to_webhook():
    interaction = MagicMock()
    interaction.edit_original_response = AsyncMock(side_effect=http_error())
    webhook = MagicMock()
    webhook.edit_message = AsyncMock()

    assert run_delivery(MagicMock(), tracked(interaction, webhook)) is True
    webhook.edit_message.assert_awaited_once()
    assert webhook.edit_message.await_args.args == (100,)


def test_message_edit_needs_no_handle():
    client = MagicMock()
    message = client.get_partial_messageable.return_value.get_partial_message.return_value
    message.edit = AsyncMock()

    assert run_delivery(client, tracked()) is True
    client.get_partial_messageable.assert_called_once_with(200)
    client.get_partial_messageable.return_value.get_partial_message.assert_called_once_with(100)
    message.edit.assert_awaited_once()


def test_all_strategies_failing():
    client = MagicMock()
    client.get_partial_messageable.return_value.get_partial_message.return_value.edit = AsyncMock(
        side_effect=http_error()
    )
    webhook = MagicMock()
    webhook.edit_message = AsyncMock(side_effect=http_error())

    assert run_delivery(client, tracked(webhook=webhook)) is False
