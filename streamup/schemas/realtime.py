"""Realtime channel payload schemas.

Inbound events are tagged by ``event`` and outbound commands by
``command``. Both are decoded once at the channel boundary into these
closed unions; nothing past the boundary looks at raw dictionaries.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

import orjson
from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .chat import ChatMessage, MessageKind

# Inbound events


class _InboundEvent(BaseModel):
    stream_id: str | None = None


class MessageEvent(_InboundEvent):
    """Authoritative chat message (including the echo of our own sends)."""

    event: Literal["message"] = "message"
    message: ChatMessage


class UserJoinedEvent(_InboundEvent):
    event: Literal["user_joined"] = "user_joined"
    user_id: str | None = None
    username: str


class UserLeftEvent(_InboundEvent):
    event: Literal["user_left"] = "user_left"
    user_id: str | None = None
    username: str


class MessageDeletedEvent(_InboundEvent):
    event: Literal["message_deleted"] = "message_deleted"
    message_id: str


class UserBannedEvent(_InboundEvent):
    event: Literal["user_banned"] = "user_banned"
    user_id: str
    username: str
    duration: float | None = Field(default=None, ge=0)


class UserMutedEvent(_InboundEvent):
    event: Literal["user_muted"] = "user_muted"
    user_id: str
    username: str | None = None
    duration: float = Field(gt=0)


class UserUnbannedEvent(_InboundEvent):
    event: Literal["user_unbanned"] = "user_unbanned"
    user_id: str


class ViewerCountUpdateEvent(_InboundEvent):
    event: Literal["viewer_count_update"] = "viewer_count_update"
    count: int = Field(ge=0)


ModerationAction = MessageDeletedEvent | UserBannedEvent | UserMutedEvent | UserUnbannedEvent

RealtimeEvent = Annotated[
    MessageEvent
    | UserJoinedEvent
    | UserLeftEvent
    | MessageDeletedEvent
    | UserBannedEvent
    | UserMutedEvent
    | UserUnbannedEvent
    | ViewerCountUpdateEvent,
    Field(discriminator="event"),
]

_realtime_event_adapter: TypeAdapter[RealtimeEvent] = TypeAdapter(RealtimeEvent)


def decode_realtime_event(raw: bytes | str | dict[str, Any]) -> RealtimeEvent | None:
    """Decode one inbound payload; undecodable payloads are logged and dropped."""
    try:
        data = raw if isinstance(raw, dict) else orjson.loads(raw)
        return _realtime_event_adapter.validate_python(data)
    except (orjson.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Dropping undecodable realtime event: {e!s}")
        return None


# Outbound commands


class _OutboundCommand(BaseModel):
    stream_id: str

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class JoinStreamCommand(_OutboundCommand):
    command: Literal["join_stream"] = "join_stream"


class LeaveStreamCommand(_OutboundCommand):
    command: Literal["leave_stream"] = "leave_stream"


class SendMessageCommand(_OutboundCommand):
    command: Literal["send_message"] = "send_message"
    message: str
    type: MessageKind = MessageKind.TEXT
    client_ref: str | None = None


class SendLikeCommand(_OutboundCommand):
    command: Literal["send_like"] = "send_like"


class SendReactionCommand(_OutboundCommand):
    command: Literal["send_reaction"] = "send_reaction"
    emoji: str
    message_id: str | None = None


class DeleteMessageCommand(_OutboundCommand):
    command: Literal["delete_message"] = "delete_message"
    message_id: str


class BanUserCommand(_OutboundCommand):
    command: Literal["ban_user"] = "ban_user"
    user_id: str
    duration: float | None = None


class UnbanUserCommand(_OutboundCommand):
    command: Literal["unban_user"] = "unban_user"
    user_id: str


class MuteUserCommand(_OutboundCommand):
    command: Literal["mute_user"] = "mute_user"
    user_id: str
    duration: float


class SetSlowModeCommand(_OutboundCommand):
    command: Literal["set_slow_mode"] = "set_slow_mode"
    delay: float


class DisableSlowModeCommand(_OutboundCommand):
    command: Literal["disable_slow_mode"] = "disable_slow_mode"


RealtimeCommand = (
    JoinStreamCommand
    | LeaveStreamCommand
    | SendMessageCommand
    | SendLikeCommand
    | SendReactionCommand
    | DeleteMessageCommand
    | BanUserCommand
    | UnbanUserCommand
    | MuteUserCommand
    | SetSlowModeCommand
    | DisableSlowModeCommand
)
