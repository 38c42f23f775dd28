from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from shared.chat.conversations import ChatMessage


@dataclass
class CompletionRequest:
    model: str
    messages: Sequence[ChatMessage]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
        }


@dataclass
class Choice:
    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "Choice":
        return cls(
            index=int(raw.get("index", 0)),
            message=ChatMessage.from_dict(raw["message"]),
            finish_reason=raw.get("finish_reason"),
        )


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_payload(cls, raw: Optional[Mapping[str, Any]]) -> "Usage":
        if not raw:
            return cls()
        return cls(
            prompt_tokens=int(raw.get("prompt_tokens", 0)),
            completion_tokens=int(raw.get("completion_tokens", 0)),
            total_tokens=int(raw.get("total_tokens", 0)),
        )


@dataclass
class ChatCompletion:
    id: str
    object: str
    created: int
    choices: List[Choice] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "ChatCompletion":
        """
        Decode a chat.completion body. Raises KeyError / TypeError /
        ValueError on shape mismatches; the client maps those.
        """
        return cls(
            id=str(raw["id"]),
            object=str(raw.get("object", "")),
            created=int(raw.get("created", 0)),
            choices=[Choice.from_payload(c) for c in raw["choices"]],
            usage=Usage.from_payload(raw.get("usage")),
        )

    def reply_text(self) -> Optional[str]:
        """
        Content of the last choice, or None when there are no choices.
        """
        if not self.choices:
            return None
        return self.choices[-1].message.content
