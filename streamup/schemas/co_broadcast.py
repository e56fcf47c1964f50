"""Co-broadcast slot, invitation and viewer models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .schema_utils import utc_now


class SlotPosition(str, Enum):
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"
    SPLIT_SCREEN = "split_screen"
    PICTURE_IN_PICTURE = "picture_in_picture"

    def __str__(self) -> str:
        return self.value


# Arrival order for default placement.
GRID_POSITIONS: tuple[SlotPosition, ...] = (
    SlotPosition.TOP_LEFT,
    SlotPosition.TOP_RIGHT,
    SlotPosition.BOTTOM_LEFT,
    SlotPosition.BOTTOM_RIGHT,
)


class ParticipantSlot(BaseModel):
    """One co-broadcaster attached to a session."""

    slot_id: str
    participant_id: str
    display_name: str
    joined_at: datetime = Field(default_factory=utc_now)
    is_muted: bool = False
    is_video_enabled: bool = True
    position: SlotPosition


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class Invitation(BaseModel):
    """Outstanding co-broadcast invitation; delivery is the transport's job."""

    invite_code: str
    session_id: str
    user_id: str
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    status: InvitationStatus = InvitationStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class Viewer(BaseModel):
    """Passive observer; anonymous viewers carry no user id."""

    viewer_id: str
    user_id: str | None = None
    username: str | None = None
    joined_at: datetime = Field(default_factory=utc_now)
    last_seen_at: datetime = Field(default_factory=utc_now)

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


__all__ = [
    "GRID_POSITIONS",
    "Invitation",
    "InvitationStatus",
    "ParticipantSlot",
    "SlotPosition",
    "Viewer",
]
