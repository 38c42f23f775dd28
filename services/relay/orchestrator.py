"""
Completion orchestration for a resolved, templated message.

Steps:
- build outgoing history + new user turn
- keep a typing indicator alive while the completion is outstanding
- call the completion service once
- reply in channel, then persist the conversation
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Set

from services.completions.client import CompletionClient
from services.relay.resolver import Classification, Resolution
from shared.chat.conversations import (
    ChatMessage,
    Conversation,
    assistant_message,
    user_message,
)
from shared.chat.gateway import ChatGateway, IncomingMessage
from shared.errors import CompletionError
from shared.logging.logger import get_logger
from shared.storage.history import HistoryStore

log = get_logger("relay.orchestrator")

TYPING_INTERVAL_SECONDS = 5.0


async def keep_typing(
    gateway: ChatGateway,
    channel_id: int,
    stop: asyncio.Event,
    *,
    interval: float = TYPING_INTERVAL_SECONDS,
) -> None:
    """
    Signal typing on a channel until stop is set.

    Wakes as soon as stop is set rather than finishing the interval.
    """
    while not stop.is_set():
        try:
            await gateway.trigger_typing(channel_id)
        except Exception as e:
            log.warning(f"Typing indicator failed on channel {channel_id}: {e}")
            return

        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


class CompletionOrchestrator:
    def __init__(
        self,
        *,
        gateway: ChatGateway,
        completions: CompletionClient,
        store: HistoryStore,
        typing_interval: float = TYPING_INTERVAL_SECONDS,
    ):
        self._gateway = gateway
        self._completions = completions
        self._store = store
        self._typing_interval = typing_interval
        self._keepalive_tasks: Set[asyncio.Task] = set()

    # --------------------------------------------------

    async def run(
        self,
        message: IncomingMessage,
        resolution: Resolution,
        text: str,
        *,
        release: Callable[[], Awaitable[None]],
    ) -> str:
        """
        Run the completion for one message and return the reply text.

        release() is awaited as soon as the completion succeeds so the
        claim does not depend on reply / persistence outcomes.
        """
        messages: List[ChatMessage] = list(resolution.history)
        messages.append(user_message(text))

        stop = asyncio.Event()
        self._start_keepalive(message.channel_id, stop)

        try:
            completion = await self._completions.complete(messages)
        finally:
            stop.set()

        await release()

        reply = completion.reply_text()
        if reply is None:
            raise CompletionError("No response")

        bot_message_id = await self._gateway.send_message(
            message.channel_id,
            reply,
            reply_to=message.id,
        )

        messages.append(assistant_message(reply))
        await self._persist(resolution, bot_message_id, messages)

        return reply

    # --------------------------------------------------

    def _start_keepalive(self, channel_id: int, stop: asyncio.Event) -> None:
        task = asyncio.create_task(
            keep_typing(
                self._gateway,
                channel_id,
                stop,
                interval=self._typing_interval,
            )
        )
        self._keepalive_tasks.add(task)
        task.add_done_callback(self._keepalive_tasks.discard)

    async def _persist(
        self,
        resolution: Resolution,
        bot_message_id: int,
        messages: List[ChatMessage],
    ) -> None:
        if resolution.kind is Classification.NEW:
            await self._store.insert(
                Conversation(anchor_id=str(bot_message_id), messages=tuple(messages))
            )
        elif resolution.kind is Classification.CONTINUATION:
            await self._store.update_by_anchor_id(resolution.anchor_id, messages)
        else:
            raise ValueError(f"Cannot persist {resolution.kind.value} resolution")

    @property
    def keepalive_count(self) -> int:
        """
        Number of keepalive tasks that have not yet exited.
        """
        return len(self._keepalive_tasks)
