"""
Conversation history storage backed by MongoDB (motor).

Collections:
  - prompts   { prompt_id, prompt }      read once at startup
  - messages  { id, messages[] }         one document per conversation
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from shared.chat.conversations import (
    ChatMessage,
    Conversation,
    PromptLibrary,
    PromptSnippet,
)
from shared.errors import HistoryStoreError
from shared.logging.logger import get_logger

log = get_logger("storage.history")

APP_NAME = "kirogpt"
PROMPTS_COLLECTION = "prompts"
MESSAGES_COLLECTION = "messages"


class HistoryStore(Protocol):
    async def find_by_anchor_id(self, anchor_id: str) -> Optional[Conversation]:
        ...

    async def insert(self, conversation: Conversation) -> None:
        ...

    async def update_by_anchor_id(
        self, anchor_id: str, messages: Sequence[ChatMessage]
    ) -> None:
        ...


def create_mongo_client(url: str) -> AsyncIOMotorClient:
    """
    Build the shared motor client. Connections are opened lazily.
    """
    return AsyncIOMotorClient(url, appname=APP_NAME)


class MongoHistoryStore:
    """
    HistoryStore over the "messages" collection.

    All driver failures surface as HistoryStoreError so the pipeline
    can abort without knowing about pymongo.
    """

    def __init__(self, database: Any):
        self._collection = database[MESSAGES_COLLECTION]

    async def find_by_anchor_id(self, anchor_id: str) -> Optional[Conversation]:
        try:
            document = await self._collection.find_one({"id": anchor_id})
        except PyMongoError as e:
            raise HistoryStoreError(
                f"Failed to load conversation {anchor_id}: {e}"
            ) from e

        if document is None:
            return None

        try:
            return Conversation.from_document(document)
        except ValueError as e:
            raise HistoryStoreError(
                f"Malformed conversation document {anchor_id}: {e}"
            ) from e

    async def insert(self, conversation: Conversation) -> None:
        try:
            result = await self._collection.insert_one(conversation.to_document())
        except PyMongoError as e:
            raise HistoryStoreError(
                f"Failed to insert conversation {conversation.anchor_id}: {e}"
            ) from e

        log.info(
            f"Inserted conversation {conversation.anchor_id} "
            f"(_id={result.inserted_id}, messages={len(conversation.messages)})"
        )

    async def update_by_anchor_id(
        self, anchor_id: str, messages: Sequence[ChatMessage]
    ) -> None:
        try:
            result = await self._collection.update_one(
                {"id": anchor_id},
                {"$set": {"messages": [m.to_dict() for m in messages]}},
            )
        except PyMongoError as e:
            raise HistoryStoreError(
                f"Failed to update conversation {anchor_id}: {e}"
            ) from e

        if result.matched_count == 0:
            raise HistoryStoreError(f"Conversation {anchor_id} no longer exists")

        log.info(f"Updated conversation {anchor_id} (messages={len(messages)})")


async def load_prompt_library(database: Any) -> PromptLibrary:
    """
    Read the whole prompts collection into an immutable PromptLibrary.
    """
    snippets = []
    async for document in database[PROMPTS_COLLECTION].find({}):
        try:
            snippets.append(PromptSnippet.from_document(document))
        except ValueError as e:
            log.warning(f"Skipping malformed prompt document: {e}")

    library = PromptLibrary(snippets)
    log.info(f"Loaded {len(library)} prompt snippets")
    return library
