"""
Discord gateway adapter (discord.py).

Responsibilities:
- normalize discord.Message into IncomingMessage
- implement ChatGateway send / typing / delete over REST
- map discord.py failures into DeliveryError

IMPORTANT:
- This module does NOT own the Discord client
- This module does NOT register events
"""

from __future__ import annotations

from typing import Optional

import discord

from shared.chat.gateway import IncomingMessage, ReferencedMessage
from shared.errors import DeliveryError
from shared.logging.logger import get_logger

log = get_logger("discord.gateway", runtime="discord")


def incoming_from_discord(message: discord.Message) -> IncomingMessage:
    """
    Build the platform-neutral view of a message-create event.

    Only resolved references are kept; deleted or unfetched referenced
    messages are treated as no reference at all.
    """
    referenced: Optional[ReferencedMessage] = None
    reference = message.reference
    if reference is not None and isinstance(reference.resolved, discord.Message):
        referenced = ReferencedMessage(
            id=reference.resolved.id,
            author_id=reference.resolved.author.id,
        )

    return IncomingMessage(
        id=message.id,
        author_id=message.author.id,
        channel_id=message.channel.id,
        content=message.content,
        mention_ids=tuple(user.id for user in message.mentions),
        referenced=referenced,
    )


class DiscordGateway:
    """
    ChatGateway implementation backed by a discord.py client.
    """

    def __init__(self, client: discord.Client):
        self._client = client

    # --------------------------------------------------

    async def _channel(self, channel_id: int):
        channel = self._client.get_channel(channel_id)
        if channel is not None:
            return channel

        try:
            return await self._client.fetch_channel(channel_id)
        except discord.HTTPException as e:
            raise DeliveryError(f"Channel {channel_id} unavailable: {e}") from e

    # --------------------------------------------------

    async def send_message(
        self,
        channel_id: int,
        content: str,
        *,
        reply_to: Optional[int] = None,
    ) -> int:
        channel = await self._channel(channel_id)

        reference = None
        if reply_to is not None:
            reference = discord.MessageReference(
                message_id=reply_to,
                channel_id=channel_id,
                fail_if_not_exists=False,
            )

        try:
            sent = await channel.send(content, reference=reference)
        except discord.HTTPException as e:
            raise DeliveryError(
                f"Failed to send message to channel {channel_id}: {e}"
            ) from e

        log.debug(
            f"Sent message {sent.id} to channel {channel_id} "
            f"({len(content)} chars, reply_to={reply_to})"
        )
        return sent.id

    async def trigger_typing(self, channel_id: int) -> None:
        channel = await self._channel(channel_id)
        try:
            await channel.typing()
        except discord.HTTPException as e:
            raise DeliveryError(
                f"Failed to trigger typing in channel {channel_id}: {e}"
            ) from e

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        channel = await self._channel(channel_id)
        try:
            await channel.get_partial_message(message_id).delete()
        except discord.HTTPException as e:
            raise DeliveryError(
                f"Failed to delete message {message_id}: {e}"
            ) from e

        log.debug(f"Deleted message {message_id} in channel {channel_id}")
