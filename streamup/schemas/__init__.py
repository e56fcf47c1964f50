"""Pydantic models shared by the session components."""

from .chat import SYSTEM_AUTHOR_NAME, ChatMessage, ConnectionState, MessageKind, Reaction
from .co_broadcast import GRID_POSITIONS, Invitation, InvitationStatus, ParticipantSlot, SlotPosition, Viewer
from .progression import (
    BASE_XP_PER_LEVEL,
    AccountStats,
    Badge,
    BadgeRarity,
    Challenge,
    ChallengeDuration,
    ChallengeType,
    Perk,
    PerkType,
    ProgressionState,
    Requirement,
    RequirementKind,
    XPReason,
)
from .session import MAX_CAPACITY, MIN_CAPACITY, Session, StreamCategory, StreamQuality, Visibility
from .session_state import SessionState

__all__ = [
    "AccountStats",
    "BASE_XP_PER_LEVEL",
    "Badge",
    "BadgeRarity",
    "Challenge",
    "ChallengeDuration",
    "ChallengeType",
    "ChatMessage",
    "ConnectionState",
    "GRID_POSITIONS",
    "Invitation",
    "InvitationStatus",
    "MAX_CAPACITY",
    "MIN_CAPACITY",
    "MessageKind",
    "ParticipantSlot",
    "Perk",
    "PerkType",
    "ProgressionState",
    "Reaction",
    "Requirement",
    "RequirementKind",
    "SYSTEM_AUTHOR_NAME",
    "Session",
    "SessionState",
    "SlotPosition",
    "StreamCategory",
    "StreamQuality",
    "Viewer",
    "Visibility",
    "XPReason",
]
