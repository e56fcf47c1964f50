"""Progression models: perks, badges, challenges and persisted state."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field

BASE_XP_PER_LEVEL = 1000


class RequirementKind(str, Enum):
    LIKES = "likes"
    FOLLOWERS = "followers"
    LEVEL = "level"
    STREAM_HOURS = "stream_hours"


class PerkType(str, Enum):
    VISUAL_EFFECT = "visual_effect"
    STREAM_QUALITY = "stream_quality"
    STREAM_DURATION = "stream_duration"
    CO_STREAM_SLOTS = "co_stream_slots"
    MODERATION_TOOLS = "moderation_tools"
    CUSTOM_OVERLAY = "custom_overlay"
    REACTION_ANIMATION = "reaction_animation"


class BadgeRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def color(self) -> str:
        return {
            BadgeRarity.COMMON: "#808080",
            BadgeRarity.RARE: "#0066CC",
            BadgeRarity.EPIC: "#9932CC",
            BadgeRarity.LEGENDARY: "#FFD700",
        }[self]


class Requirement(BaseModel):
    """Single numeric threshold on an account stat, compared with >=."""

    kind: RequirementKind
    threshold: int = Field(ge=0)


class Perk(BaseModel):
    perk_id: str
    name: str
    description: str
    perk_type: PerkType
    requirement: Requirement


class Badge(BaseModel):
    badge_id: str
    name: str
    description: str
    icon: str
    rarity: BadgeRarity
    requirement: Requirement


class AccountStats(BaseModel):
    """Aggregate account stats read when evaluating unlocks."""

    total_likes: int = 0
    follower_count: int = 0
    total_stream_hours: int = 0


class ChallengeType(str, Enum):
    START_STREAM = "start_stream"
    STREAM_DURATION = "stream_duration"
    EARN_LIKES = "earn_likes"
    GAIN_FOLLOWERS = "gain_followers"
    SEND_CHAT_MESSAGES = "send_chat_messages"
    WATCH_STREAMS = "watch_streams"
    SHARE_STREAM = "share_stream"
    INVITE_CO_STREAMER = "invite_co_streamer"


class ChallengeDuration(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class Challenge(BaseModel):
    challenge_id: str
    title: str
    description: str
    challenge_type: ChallengeType
    target: int = Field(gt=0)
    progress: int = 0
    xp_reward: int = Field(gt=0)
    duration: ChallengeDuration
    is_completed: bool = False
    completed_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def progress_percentage(self) -> float:
        return min(1.0, self.progress / self.target)


class XPReason(str, Enum):
    STREAM_STARTED = "stream_started"
    STREAM_COMPLETED = "stream_completed"
    LIKE_RECEIVED = "like_received"
    FOLLOWER_GAINED = "follower_gained"
    CHAT_MESSAGE_SENT = "chat_message_sent"
    CHALLENGE_COMPLETED = "challenge_completed"
    BADGE_EARNED = "badge_earned"
    STREAM_WATCHED = "stream_watched"
    CO_STREAM_JOINED = "co_stream_joined"


class ProgressionState(BaseModel):
    """Persisted progression payload.

    ``level`` is stored for readers of the raw payload only; on load it is
    always recomputed from ``experience_points``.
    """

    experience_points: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    unlocked_perk_ids: list[str] = Field(default_factory=list)
    earned_badge_ids: list[str] = Field(default_factory=list)


__all__ = [
    "AccountStats",
    "BASE_XP_PER_LEVEL",
    "Badge",
    "BadgeRarity",
    "Challenge",
    "ChallengeDuration",
    "ChallengeType",
    "Perk",
    "PerkType",
    "ProgressionState",
    "Requirement",
    "RequirementKind",
    "XPReason",
]
