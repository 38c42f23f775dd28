from __future__ import annotations

import enum
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Optional, Tuple

from shared.chat.conversations import ChatMessage
from shared.chat.gateway import BotIdentity, IncomingMessage
from shared.logging.logger import get_logger
from shared.runtime.processing import ProcessingRegistry
from shared.storage.history import HistoryStore

log = get_logger("relay.resolver")

PING_COMMAND = "!ping"


class Classification(enum.Enum):
    NEW = "new"
    CONTINUATION = "continuation"
    PING = "ping"
    IGNORE = "ignore"


@dataclass(frozen=True)
class Resolution:
    kind: Classification
    history: Tuple[ChatMessage, ...] = field(default_factory=tuple)
    anchor_id: Optional[str] = None

    @property
    def proceeds(self) -> bool:
        return self.kind in (Classification.NEW, Classification.CONTINUATION)


IGNORE = Resolution(Classification.IGNORE)


class ConversationResolver:
    """
    Decides what an incoming message means for the relay.

    Claims taken here are entered on the caller's exit stack, so they
    are released whenever the caller's scope ends.
    """

    def __init__(
        self,
        *,
        identity: BotIdentity,
        registry: ProcessingRegistry,
        store: HistoryStore,
    ):
        self._identity = identity
        self._registry = registry
        self._store = store

    async def resolve(
        self, message: IncomingMessage, claims: AsyncExitStack
    ) -> Resolution:
        # Reply to one of our own messages
        if message.replies_to(self._identity.user_id):
            referenced_id = message.referenced.id

            if not await claims.enter_async_context(
                self._registry.claim(referenced_id)
            ):
                return IGNORE

            anchor_id = str(referenced_id)
            conversation = await self._store.find_by_anchor_id(anchor_id)
            if conversation is None:
                log.info(f"No history for bot message {anchor_id}; ignoring reply")
                return IGNORE

            log.debug(
                f"Message {message.id} continues {anchor_id} "
                f"({len(conversation.messages)} prior messages)"
            )
            return Resolution(
                Classification.CONTINUATION,
                history=conversation.messages,
                anchor_id=anchor_id,
            )

        # Direct mention starts a new conversation
        if message.mentions(self._identity.user_id):
            if not await claims.enter_async_context(
                self._registry.claim(message.id)
            ):
                return IGNORE

            log.debug(f"Message {message.id} starts a new conversation")
            return Resolution(Classification.NEW)

        if message.content == PING_COMMAND:
            return Resolution(Classification.PING)

        return IGNORE
