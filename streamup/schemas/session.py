"""Session model and its configuration enums."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .schema_utils import utc_now
from .session_state import SessionState

MIN_CAPACITY = 1
MAX_CAPACITY = 4


class StreamCategory(str, Enum):
    GAMING = "gaming"
    MUSIC = "music"
    ART = "art"
    COOKING = "cooking"
    FITNESS = "fitness"
    EDUCATION = "education"
    TECHNOLOGY = "technology"
    LIFESTYLE = "lifestyle"
    ENTERTAINMENT = "entertainment"
    SPORTS = "sports"
    TRAVEL = "travel"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value


class StreamQuality(str, Enum):
    LOW = "360p"
    MEDIUM = "720p"
    HIGH = "1080p"
    ULTRA = "4k"

    @property
    def display_name(self) -> str:
        return _QUALITY_DISPLAY[self]

    @property
    def bitrate(self) -> int:
        """Target video bitrate in kbps."""
        return _QUALITY_BITRATE[self]


_QUALITY_DISPLAY = {
    StreamQuality.LOW: "360p",
    StreamQuality.MEDIUM: "720p HD",
    StreamQuality.HIGH: "1080p HD",
    StreamQuality.ULTRA: "4K Ultra HD",
}

_QUALITY_BITRATE = {
    StreamQuality.LOW: 1000,
    StreamQuality.MEDIUM: 2500,
    StreamQuality.HIGH: 5000,
    StreamQuality.ULTRA: 15000,
}


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class Session(BaseModel):
    """One live broadcast.

    The owner never occupies a co-broadcast slot; ``capacity`` counts the
    on-screen tiles including the owner's, so ``capacity - 1`` guests fit.
    """

    session_id: str
    owner_id: str

    # Session descriptor fields
    title: str
    description: str | None = None
    category: StreamCategory = StreamCategory.OTHER
    tags: list[str] = Field(default_factory=list)

    # Session settings
    visibility: Visibility = Visibility.PUBLIC
    quality: StreamQuality = StreamQuality.MEDIUM
    status: SessionState = SessionState.SCHEDULED
    capacity: int = Field(default=MIN_CAPACITY, ge=MIN_CAPACITY, le=MAX_CAPACITY)

    # Capture flags (recorded for display; capture itself is external)
    camera_enabled: bool = True
    microphone_enabled: bool = True

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    started_at: datetime | None = None
    ended_at: datetime | None = None

    # Metrics
    viewer_count: int = 0
    peak_viewer_count: int = 0
    total_watch_time: float = 0.0
    engagement_rate: float = 0.0

    @property
    def guest_capacity(self) -> int:
        return self.capacity - 1

    @property
    def is_live(self) -> bool:
        return self.status == SessionState.LIVE

    @property
    def is_private(self) -> bool:
        return self.visibility == Visibility.PRIVATE


__all__ = [
    "MAX_CAPACITY",
    "MIN_CAPACITY",
    "Session",
    "StreamCategory",
    "StreamQuality",
    "Visibility",
]
