import logging
from typing import TYPE_CHECKING, Protocol, Sequence

import discord

from services.bot.progress import SessionCard

if TYPE_CHECKING:
    from services.bot.sessions import TrackedSession

logger = logging.getLogger(__name__)


class DeliveryStrategy(Protocol):
    name: str

    def available(self, session: "TrackedSession") -> bool: ...

    async def edit(self, client: discord.Client, session: "TrackedSession", card: SessionCard) -> None: ...


class InteractionDelivery:
    """Edits the reply of the interaction that created the card, only valid while its token is."""

    name = "interaction"

    def available(self, session: "TrackedSession") -> bool:
        return session.interaction is not None

    async def edit(self, client: discord.Client, session: "TrackedSession", card: SessionCard) -> None:
        assert session.interaction is not None
        await session.interaction.edit_original_response(content=card.content, embed=card.embed, view=card.view)


class WebhookDelivery:
    name = "webhook"

    def available(self, session: "TrackedSession") -> bool:
        return session.webhook is not None

    async def edit(self, client: discord.Client, session: "TrackedSession", card: SessionCard) -> None:
        assert session.webhook is not None
        await session.webhook.edit_message(
            int(session.message_id),
            content=card.content,
            embed=card.embed,
            view=card.view,
        )


class MessageDelivery:
    """Plain message edit through the REST API, needs nothing but the ids."""

    name = "message"

    def available(self, session: "TrackedSession") -> bool:
        return True

    async def edit(self, client: discord.Client, session: "TrackedSession", card: SessionCard) -> None:
        channel = client.get_partial_messageable(int(session.channel_id))
        message = channel.get_partial_message(int(session.message_id))
        await message.edit(content=card.content, embed=card.embed, view=card.view)


DEFAULT_STRATEGIES: tuple[DeliveryStrategy, ...] = (InteractionDelivery(), WebhookDelivery(), MessageDelivery())


async def deliver(
    client: discord.Client,
    session: "TrackedSession",
    card: SessionCard,
    strategies: Sequence[DeliveryStrategy] = DEFAULT_STRATEGIES,
) -> bool:
    for strategy in strategies:
        if not strategy.available(session):
            continue

        try:
            await strategy.edit(client, session, card)
            return True
        except Exception as ex:
            logger.warning(
                "Unable to update session message via %s: %s",
                strategy.name,
                ex,
                extra={"session_id": session.session_id, "channel_id": session.channel_id},
            )

    return False
