import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
import pytest

from services.completions.client import CompletionClient
from services.relay.pipeline import MessagePipeline
from shared.chat.conversations import (
    ChatMessage,
    Conversation,
    PromptLibrary,
    PromptSnippet,
)
from shared.chat.gateway import BotIdentity, IncomingMessage, ReferencedMessage
from shared.errors import DeliveryError

BOT_ID = 1111
USER_ID = 2222
CHANNEL_ID = 3333
COMPLETION_URL = "https://completions.test/v1/chat/completions"


# --------------------------------------------------
# Fakes
# --------------------------------------------------

@dataclass
class SentMessage:
    id: int
    channel_id: int
    content: str
    reply_to: Optional[int]


class FakeGateway:
    def __init__(self, *, first_id: int = 9000):
        self.sent: List[SentMessage] = []
        self.typing: List[int] = []
        self.deleted: List[tuple] = []
        self.fail_send = False
        self._next_id = first_id

    async def send_message(self, channel_id, content, *, reply_to=None):
        if self.fail_send:
            raise DeliveryError("send failed")
        self._next_id += 1
        self.sent.append(SentMessage(self._next_id, channel_id, content, reply_to))
        return self._next_id

    async def trigger_typing(self, channel_id):
        self.typing.append(channel_id)

    async def delete_message(self, channel_id, message_id):
        self.deleted.append((channel_id, message_id))


class InMemoryHistoryStore:
    def __init__(self, conversations: Sequence[Conversation] = ()):
        self.documents: Dict[str, Conversation] = {
            c.anchor_id: c for c in conversations
        }
        self.inserts: List[Conversation] = []
        self.updates: List[tuple] = []
        self.lookups: List[str] = []

    async def find_by_anchor_id(self, anchor_id):
        self.lookups.append(anchor_id)
        return self.documents.get(anchor_id)

    async def insert(self, conversation):
        self.inserts.append(conversation)
        self.documents[conversation.anchor_id] = conversation

    async def update_by_anchor_id(self, anchor_id, messages):
        self.updates.append((anchor_id, tuple(messages)))
        self.documents[anchor_id] = Conversation(anchor_id, tuple(messages))

    @property
    def writes(self) -> int:
        return len(self.inserts) + len(self.updates)


# --------------------------------------------------
# Builders
# --------------------------------------------------

def completion_body(content: str = "Hello there!", *, choices: Optional[list] = None):
    if choices is None:
        choices = [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ]
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1680000000,
        "choices": choices,
        "usage": {"prompt_tokens": 12, "completion_tokens": 5, "total_tokens": 17},
    }


def make_message(
    content: str,
    *,
    message_id: int = 5000,
    mentions: Sequence[int] = (),
    referenced: Optional[ReferencedMessage] = None,
) -> IncomingMessage:
    return IncomingMessage(
        id=message_id,
        author_id=USER_ID,
        channel_id=CHANNEL_ID,
        content=content,
        mention_ids=tuple(mentions),
        referenced=referenced,
    )


def make_completions(handler: Callable[[httpx.Request], Any]) -> CompletionClient:
    return CompletionClient(
        token="test-token",
        url=COMPLETION_URL,
        model="gpt-3.5-turbo",
        http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


async def wait_for_condition(predicate: Callable[[], bool], timeout: float = 1.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


# --------------------------------------------------
# Fixtures
# --------------------------------------------------

@pytest.fixture
def identity() -> BotIdentity:
    return BotIdentity(user_id=BOT_ID, username="kirogpt")


@pytest.fixture
def prompts() -> PromptLibrary:
    return PromptLibrary(
        [
            PromptSnippet("expert", "E"),
            PromptSnippet("jb", "J"),
            PromptSnippet("uwu", "Hi {FIRST_NAME}/{FULL_NAME}/{LAST_NAME}"),
        ]
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore(
        [
            Conversation(
                anchor_id="7777",
                messages=(
                    ChatMessage("user", "first question"),
                    ChatMessage("assistant", "first answer"),
                ),
            )
        ]
    )


@pytest.fixture
def requests_seen() -> List[httpx.Request]:
    return []


@pytest.fixture
def completions(requests_seen):
    def handler(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request)
        return httpx.Response(200, json=completion_body())

    return make_completions(handler)


@pytest.fixture
def build_pipeline(identity, gateway, prompts, store):
    def _build(completions: CompletionClient, **kwargs) -> MessagePipeline:
        return MessagePipeline(
            identity=identity,
            gateway=gateway,
            prompts=kwargs.pop("prompts", prompts),
            completions=completions,
            store=kwargs.pop("store", store),
            typing_interval=0.01,
            warning_ttl=0.01,
            **kwargs,
        )

    return _build
