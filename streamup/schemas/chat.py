"""Chat message models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from .schema_utils import ensure_utc, utc_now

SYSTEM_AUTHOR_NAME = "System"


class MessageKind(str, Enum):
    TEXT = "text"
    EMOJI = "emoji"
    SYSTEM = "system"
    LIKE = "like"
    GIFT = "gift"
    FOLLOW = "follow"
    JOIN = "join"
    LEAVE = "leave"

    def __str__(self) -> str:
        return self.value


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class Reaction(BaseModel):
    emoji: str
    count: int = 0
    user_ids: list[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """One entry of a session's chat log.

    ``author_id`` is absent for system messages. ``is_local`` marks the
    optimistic copy created before the server assigned an identifier, and
    ``client_ref`` is the local id echoed back by servers that support it.
    """

    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="id")
    author_id: str | None = Field(default=None, alias="user_id")
    author_name: str = Field(alias="username")
    body: str = Field(alias="message")
    created_at: datetime = Field(default_factory=utc_now, alias="timestamp")
    kind: MessageKind = Field(default=MessageKind.TEXT, alias="type")
    is_visible: bool = True
    reactions: list[Reaction] = Field(default_factory=list)
    is_local: bool = False
    client_ref: str | None = None

    # Arrival sequence within one log; tie-breaker for equal timestamps.
    _seq: int = PrivateAttr(default=0)

    @field_validator("created_at", mode="after")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)  # type: ignore[return-value]

    @property
    def seq(self) -> int:
        return self._seq

    def sort_key(self) -> tuple[datetime, int]:
        return (self.created_at, self._seq)

    @property
    def is_system(self) -> bool:
        return self.author_id is None and self.kind in {
            MessageKind.SYSTEM,
            MessageKind.JOIN,
            MessageKind.LEAVE,
        }


__all__ = [
    "ChatMessage",
    "ConnectionState",
    "MessageKind",
    "Reaction",
    "SYSTEM_AUTHOR_NAME",
]
