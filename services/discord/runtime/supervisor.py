"""
Relay Runtime Supervisor

Owns the lifecycle of the relay runtime.

Responsibilities:
- open the MongoDB client and load the prompt snapshot
- build the completion client
- start the Discord client and wire the message pipeline
- stop the process when the Discord connection fails fatally
- perform graceful shutdown

IMPORTANT:
- MUST NOT create its own event loop
- MUST NOT install signal handlers
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from services.completions.client import CompletionClient
from services.discord.client import DiscordClient
from services.prompts.templates import REQUIRED_SNIPPETS
from services.relay.pipeline import MessagePipeline
from shared.chat.conversations import PromptLibrary
from shared.chat.gateway import BotIdentity, ChatGateway
from shared.config.settings import RelaySettings
from shared.logging.logger import get_logger
from shared.runtime.processing import ProcessingRegistry
from shared.storage.history import (
    MongoHistoryStore,
    create_mongo_client,
    load_prompt_library,
)

log = get_logger("discord.supervisor", runtime="discord")


class RelaySupervisor:
    """
    Owns the relay runtime lifecycle.

    Contract:
    - start() is awaitable
    - shutdown() is idempotent
    - stop_event is set if the Discord client exits on its own
    """

    def __init__(self, settings: RelaySettings, stop_event: asyncio.Event):
        self._settings = settings
        self._stop_event = stop_event

        self._mongo: Optional[Any] = None
        self._completions: Optional[CompletionClient] = None
        self._client: Optional[DiscordClient] = None
        self._tasks: List[asyncio.Task] = []
        self._running: bool = False

        self._registry = ProcessingRegistry()
        self._store: Optional[MongoHistoryStore] = None
        self._prompts: Optional[PromptLibrary] = None

    # --------------------------------------------------
    # Wiring
    # --------------------------------------------------

    def _build_pipeline(
        self, identity: BotIdentity, gateway: ChatGateway
    ) -> MessagePipeline:
        log.info(f"Building message pipeline for {identity.username}")
        return MessagePipeline(
            identity=identity,
            gateway=gateway,
            prompts=self._prompts,
            completions=self._completions,
            store=self._store,
            registry=self._registry,
        )

    def _on_client_exit(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            log.error(f"Discord client exited with fatal error: {error}")
        else:
            log.warning("Discord client exited")

        self._stop_event.set()

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    async def start(self):
        """
        Start the relay runtime.

        Store and snapshot failures are fatal: the runtime does not start.
        """
        if self._running:
            log.warning("Relay supervisor already running")
            return

        log.info("Starting relay supervisor")

        self._mongo = create_mongo_client(self._settings.mongo_url)
        database = self._mongo[self._settings.database]
        self._store = MongoHistoryStore(database)

        try:
            self._prompts = await load_prompt_library(database)
        except PyMongoError as e:
            self._mongo.close()
            self._mongo = None
            raise RuntimeError(f"Failed to load prompt snippets: {e}") from e

        for prompt_id in self._prompts.missing(REQUIRED_SNIPPETS):
            log.warning(
                f"Prompt snippet {prompt_id!r} not loaded; "
                "mentions will fail until it is added"
            )

        self._completions = CompletionClient(
            token=self._settings.completion_token,
            url=self._settings.completion_url,
            model=self._settings.model,
            timeout=self._settings.timeout_seconds,
        )

        self._client = DiscordClient(
            token=self._settings.discord_token,
            pipeline_factory=self._build_pipeline,
        )

        client_task = asyncio.create_task(self._client.run())
        client_task.add_done_callback(self._on_client_exit)
        self._tasks.append(client_task)

        self._running = True
        log.info("Relay supervisor started")

    # --------------------------------------------------
    # Shutdown
    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully shut down the relay runtime.
        """
        if not self._running:
            return

        log.info("Shutting down relay supervisor")

        # --------------------------------------------------
        # Stop Discord client first
        # --------------------------------------------------
        try:
            if self._client:
                await self._client.shutdown()
        except Exception as e:
            log.warning(f"Discord client shutdown error ignored: {e}")

        # --------------------------------------------------
        # Cancel remaining tasks
        # --------------------------------------------------
        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        # --------------------------------------------------
        # Release outbound clients
        # --------------------------------------------------
        if self._completions:
            await self._completions.close()

        if self._mongo:
            self._mongo.close()

        self._tasks.clear()
        self._client = None
        self._completions = None
        self._mongo = None
        self._running = False

        log.info("Relay supervisor shutdown complete")

    # --------------------------------------------------
    # Read-only Introspection
    # --------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def snapshot(self) -> Dict[str, Any]:
        """
        Supervisor state for diagnostics.
        """
        return {
            "running": self._running,
            "task_count": len(self._tasks),
            "in_flight": len(self._registry),
            "prompts": len(self._prompts) if self._prompts else 0,
        }
