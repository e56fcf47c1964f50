"""Notifications published by the session components.

Each component owns its own ``Observers`` hub; these are the event types
delivered on them. Activity events flow the other way: the lifecycle
controller and the chat pipeline hand them to the Progression Engine.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .chat import ChatMessage, ConnectionState
from .co_broadcast import ParticipantSlot
from .progression import Badge, Challenge, Perk, XPReason
from .session_state import SessionState

# Activity events (into the Progression Engine)


class StreamStarted(BaseModel):
    kind: Literal["stream_started"] = "stream_started"
    session_id: str


class StreamEnded(BaseModel):
    kind: Literal["stream_ended"] = "stream_ended"
    session_id: str
    duration_seconds: float = Field(ge=0)
    peak_viewers: int = Field(ge=0)


class ChatMessageSent(BaseModel):
    kind: Literal["chat_message_sent"] = "chat_message_sent"
    session_id: str
    message: ChatMessage


class CoBroadcastJoined(BaseModel):
    kind: Literal["co_broadcast_joined"] = "co_broadcast_joined"
    session_id: str
    participant_id: str


class LikeReceived(BaseModel):
    kind: Literal["like_received"] = "like_received"
    session_id: str
    count: int = Field(default=1, gt=0)


class FollowerGained(BaseModel):
    kind: Literal["follower_gained"] = "follower_gained"
    count: int = Field(default=1, gt=0)


ActivityEvent = (
    StreamStarted | StreamEnded | ChatMessageSent | CoBroadcastJoined | LikeReceived | FollowerGained
)


# Progression notifications


class ExperienceAwarded(BaseModel):
    points: int
    reason: XPReason
    total: int
    new_level: int | None = None


class LevelUp(BaseModel):
    old_level: int
    new_level: int


class PerkUnlocked(BaseModel):
    perk: Perk


class BadgeEarned(BaseModel):
    badge: Badge


class ChallengeCompleted(BaseModel):
    challenge: Challenge


ProgressionNotification = (
    ExperienceAwarded | LevelUp | PerkUnlocked | BadgeEarned | ChallengeCompleted
)


# Co-broadcast notifications


class ParticipantJoined(BaseModel):
    session_id: str
    slot: ParticipantSlot


class ParticipantLeft(BaseModel):
    session_id: str
    slot: ParticipantSlot
    removed_by_host: bool = False


CoBroadcastNotification = ParticipantJoined | ParticipantLeft


# Lifecycle notifications


class SessionStateChanged(BaseModel):
    session_id: str
    old_state: SessionState
    new_state: SessionState


# Chat notifications


class ChatConnectionChanged(BaseModel):
    session_id: str | None
    old_state: ConnectionState
    new_state: ConnectionState


ChatNotification = ChatMessageSent | ChatConnectionChanged
