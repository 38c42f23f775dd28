"""Conversation, chat message and prompt snippet models."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from shared.errors import MissingSnippetError
from shared.logging.logger import get_logger

log = get_logger("shared.chat.conversations")

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

SUPPORTED_ROLES = {
    ROLE_USER,
    ROLE_ASSISTANT,
}


def normalize_role(value: str) -> str:
    role = (value or "").lower().strip()
    if role not in SUPPORTED_ROLES:
        raise ValueError(f"Unsupported chat role: {value}")
    return role


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChatMessage":
        return cls(
            role=normalize_role(str(payload.get("role", ""))),
            content=str(payload.get("content") or ""),
        )


def user_message(content: str) -> ChatMessage:
    return ChatMessage(role=ROLE_USER, content=content)


def assistant_message(content: str) -> ChatMessage:
    return ChatMessage(role=ROLE_ASSISTANT, content=content)


@dataclass(frozen=True)
class Conversation:
    """
    Stored history keyed by the id of the bot reply that anchors it.

    Document shape (collection "messages"):
    { "id": "<anchor id>", "messages": [ {role, content}, ... ] }
    """

    anchor_id: str
    messages: Tuple[ChatMessage, ...] = field(default_factory=tuple)

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.anchor_id,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Conversation":
        anchor_id = document.get("id")
        if not anchor_id:
            raise ValueError("Conversation document has no id")
        return cls(
            anchor_id=str(anchor_id),
            messages=tuple(
                ChatMessage.from_dict(m) for m in document.get("messages") or []
            ),
        )


@dataclass(frozen=True)
class PromptSnippet:
    prompt_id: str
    text: str

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "PromptSnippet":
        prompt_id = document.get("prompt_id")
        if not prompt_id:
            raise ValueError("Prompt document has no prompt_id")
        return cls(prompt_id=str(prompt_id), text=str(document.get("prompt") or ""))


class PromptLibrary:
    """
    Immutable snapshot of prompt snippets.

    Loaded once at startup and shared read-only by every pipeline;
    no locking is needed since nothing mutates it after construction.
    """

    def __init__(self, snippets: Iterable[PromptSnippet] = ()):
        by_id: Dict[str, str] = {}
        for snippet in snippets:
            if snippet.prompt_id in by_id:
                log.warning(
                    f"Duplicate prompt_id {snippet.prompt_id!r} ignored"
                )
                continue
            by_id[snippet.prompt_id] = snippet.text
        self._snippets: Mapping[str, str] = MappingProxyType(by_id)

    def get(self, prompt_id: str) -> str:
        """
        Exact-match lookup. Raises MissingSnippetError when absent.
        """
        try:
            return self._snippets[prompt_id]
        except KeyError:
            raise MissingSnippetError(prompt_id) from None

    def missing(self, prompt_ids: Iterable[str]) -> List[str]:
        return [pid for pid in prompt_ids if pid not in self._snippets]

    def __contains__(self, prompt_id: object) -> bool:
        return prompt_id in self._snippets

    def __len__(self) -> int:
        return len(self._snippets)


__all__ = [
    "ROLE_USER",
    "ROLE_ASSISTANT",
    "SUPPORTED_ROLES",
    "ChatMessage",
    "Conversation",
    "PromptSnippet",
    "PromptLibrary",
    "assistant_message",
    "normalize_role",
    "user_message",
]
