"""
Discord Client (Relay Runtime)

This module owns the Discord connection itself.
It is intentionally minimal and lifecycle-focused.

Responsibilities:
- connect to Discord
- handle ready / resume / disconnect events
- capture the bot identity once connected
- hand every message-create event to the relay pipeline
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST be controlled by RelaySupervisor
- This client MUST NOT create its own event loop
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import discord

from services.discord.gateway import DiscordGateway, incoming_from_discord
from services.relay.pipeline import MessagePipeline
from shared.chat.gateway import BotIdentity, ChatGateway
from shared.logging.logger import get_logger

log = get_logger("discord.client", runtime="discord")

PipelineFactory = Callable[[BotIdentity, ChatGateway], MessagePipeline]

class DiscordClient:
    """
    Thin wrapper around discord.py Client.

    This class provides:
    - async run() entrypoint
    - async shutdown()
    - lifecycle event logging
    - message dispatch into MessagePipeline
    """

    def __init__(self, *, token: str, pipeline_factory: PipelineFactory):
        if not token:
            raise RuntimeError("Discord token is required")

        self._token: str = token
        self._pipeline_factory = pipeline_factory
        self._client: Optional[discord.Client] = None
        self._pipeline: Optional[MessagePipeline] = None

    # --------------------------------------------------

    def _build_client(self) -> discord.Client:
        """
        Construct the discord.py Client instance and wire its events.
        """

        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        intents.dm_messages = True
        intents.message_content = True

        client = discord.Client(intents=intents)

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @client.event
        async def on_ready():
            identity = BotIdentity(
                user_id=client.user.id,
                username=client.user.name,
            )
            log.info(
                f"Discord connected as {identity.username} "
                f"(id={identity.user_id}) guilds={len(client.guilds)}"
            )

            if self._pipeline is None:
                self._pipeline = self._pipeline_factory(
                    identity, DiscordGateway(client)
                )

        @client.event
        async def on_resumed():
            log.info("Discord connection resumed")

        @client.event
        async def on_disconnect():
            log.warning("Discord connection lost")

        # --------------------------------------------------
        # Message Events
        # --------------------------------------------------

        @client.event
        async def on_message(message: discord.Message):
            if self._pipeline is None:
                log.debug(f"Message {message.id} received before ready; ignored")
                return

            if message.author.id == self._pipeline.identity.user_id:
                return

            await self._pipeline.handle(incoming_from_discord(message))

        return client

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord client and block until shutdown.
        """
        if self._client is not None:
            raise RuntimeError("Discord client already running")

        log.info("Initializing Discord client")

        self._client = self._build_client()

        try:
            await self._client.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord client task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord client crashed: {e}")
            raise
        finally:
            log.info("Discord client stopped")

    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully close the Discord connection.

        Pending warning deletions are drained first; they need the
        connection to still be open.
        """
        if not self._client:
            return

        log.info("Closing Discord connection")

        if self._pipeline is not None:
            await self._pipeline.drain()

        try:
            await self._client.close()
        except Exception as e:
            log.warning(f"Discord close error ignored: {e}")

        self._client = None

    # --------------------------------------------------

    @property
    def pipeline(self) -> Optional[MessagePipeline]:
        return self._pipeline
