"""
Message pipeline (relay core entrypoint).

Owns one full pass for an incoming chat message:

  Resolving -> Templating -> AwaitingCompletion -> Replying -> Persisting

Any failure aborts the pass. The processing claim is scoped to an
AsyncExitStack so it is released on every exit path.

IMPORTANT:
- handle() never raises PipelineError to the gateway
- The only user-visible failure is the missing-name warning
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from typing import Optional, Set

from services.completions.client import CompletionClient
from services.prompts.templates import PromptTemplateEngine
from services.relay.orchestrator import (
    TYPING_INTERVAL_SECONDS,
    CompletionOrchestrator,
)
from services.relay.resolver import Classification, ConversationResolver
from shared.chat.conversations import PromptLibrary
from shared.chat.gateway import BotIdentity, ChatGateway, IncomingMessage
from shared.errors import DeliveryError, MissingNameError, PipelineError
from shared.logging.logger import get_logger
from shared.runtime.processing import ProcessingRegistry
from shared.storage.history import HistoryStore

log = get_logger("relay.pipeline")

PONG_REPLY = "Pong!"
MISSING_NAME_REPLY = "You need to provide a name."
WARNING_TTL_SECONDS = 5.0


class MessagePipeline:
    def __init__(
        self,
        *,
        identity: BotIdentity,
        gateway: ChatGateway,
        prompts: PromptLibrary,
        completions: CompletionClient,
        store: HistoryStore,
        registry: Optional[ProcessingRegistry] = None,
        typing_interval: float = TYPING_INTERVAL_SECONDS,
        warning_ttl: float = WARNING_TTL_SECONDS,
    ):
        self.identity = identity
        self.registry = registry if registry is not None else ProcessingRegistry()

        self._gateway = gateway
        self._warning_ttl = warning_ttl
        self._cleanup_tasks: Set[asyncio.Task] = set()

        self._resolver = ConversationResolver(
            identity=identity,
            registry=self.registry,
            store=store,
        )
        self._templates = PromptTemplateEngine(
            prompts=prompts,
            mention_token=identity.mention_token,
        )
        self._orchestrator = CompletionOrchestrator(
            gateway=gateway,
            completions=completions,
            store=store,
            typing_interval=typing_interval,
        )

    # --------------------------------------------------

    async def handle(self, message: IncomingMessage) -> None:
        """
        Process one incoming message. Pipeline failures are logged only.
        """
        try:
            await self._run(message)
        except PipelineError as e:
            log.error(f"Pipeline aborted for message {message.id}: {e}")

    async def _run(self, message: IncomingMessage) -> None:
        async with AsyncExitStack() as claims:
            resolution = await self._resolver.resolve(message, claims)

            if resolution.kind is Classification.PING:
                await self._gateway.send_message(message.channel_id, PONG_REPLY)
                return

            if not resolution.proceeds:
                return

            try:
                text = self._templates.render(message.content)
            except MissingNameError:
                await self._warn_missing_name(message)
                return

            await self._orchestrator.run(
                message,
                resolution,
                text,
                release=claims.aclose,
            )

            log.info(
                f"Handled {resolution.kind.value} message {message.id} "
                f"in channel {message.channel_id}"
            )

    # --------------------------------------------------
    # Missing-name warning
    # --------------------------------------------------

    async def _warn_missing_name(self, message: IncomingMessage) -> None:
        warning_id = await self._gateway.send_message(
            message.channel_id,
            MISSING_NAME_REPLY,
            reply_to=message.id,
        )

        task = asyncio.create_task(
            self._delete_later(message.channel_id, warning_id)
        )
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _delete_later(self, channel_id: int, message_id: int) -> None:
        await asyncio.sleep(self._warning_ttl)
        try:
            await self._gateway.delete_message(channel_id, message_id)
        except DeliveryError as e:
            log.warning(f"Failed to delete warning {message_id}: {e}")

    async def drain(self) -> None:
        """
        Wait for pending warning deletions (used on shutdown and in tests).
        """
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)
