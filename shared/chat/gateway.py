"""
Platform-neutral chat gateway contract.

The relay core only ever talks to the chat platform through this
protocol; services.discord.gateway provides the discord.py adapter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple


@dataclass(frozen=True)
class ReferencedMessage:
    id: int
    author_id: int


@dataclass(frozen=True)
class IncomingMessage:
    id: int
    author_id: int
    channel_id: int
    content: str
    mention_ids: Tuple[int, ...] = field(default_factory=tuple)
    referenced: Optional[ReferencedMessage] = None

    def mentions(self, user_id: int) -> bool:
        return user_id in self.mention_ids

    def replies_to(self, user_id: int) -> bool:
        return self.referenced is not None and self.referenced.author_id == user_id


@dataclass(frozen=True)
class BotIdentity:
    user_id: int
    username: str

    @property
    def mention_token(self) -> str:
        return f"<@{self.user_id}>"


class ChatGateway(Protocol):
    async def send_message(
        self,
        channel_id: int,
        content: str,
        *,
        reply_to: Optional[int] = None,
    ) -> int:
        """Create a message and return the id the platform assigned."""
        ...

    async def trigger_typing(self, channel_id: int) -> None:
        ...

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        ...
