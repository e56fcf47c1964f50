"""Common enums used across schemas."""

from enum import Enum


class SessionState(str, Enum):
    """Session lifecycle states.

    State Transition Flow:

    SCHEDULED → STARTING → LIVE ⇄ PAUSED → ENDED
        ↓           ↓
    CANCELLED   CANCELLED

    State Descriptions:
    - SCHEDULED: Session created and configured. Set by create_session().
    - STARTING: Go-live requested, waiting on capture permissions or the
      transport's confirmation. A denied permission leaves the session here.
    - LIVE: Broadcasting. started_at is recorded on the first entry.
    - PAUSED: Broadcast paused by the host; chat and co-broadcast stay attached.
    - ENDED: Broadcast finished. ended_at is recorded.
    - CANCELLED: Session abandoned before going live. ended_at is recorded.

    Terminal states (no further transitions): ENDED, CANCELLED
    """

    SCHEDULED = "scheduled"
    STARTING = "starting"
    LIVE = "live"
    PAUSED = "paused"
    ENDED = "ended"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def active_states(cls) -> list["SessionState"]:
        """States in which a session still owns slots and a chat log."""
        return [
            SessionState.SCHEDULED,
            SessionState.STARTING,
            SessionState.LIVE,
            SessionState.PAUSED,
        ]

    @classmethod
    def on_air_states(cls) -> list["SessionState"]:
        return [SessionState.LIVE, SessionState.PAUSED]


__all__ = ["SessionState"]
