"""Collaborator interfaces for the session core.

The core never talks to devices, servers or sockets directly. Each external
concern is an abstract base class injected into the components that need
it; ``demo.py`` provides in-process implementations for ``DEMO_MODE``.

Classes:
    - CapabilityProvider: camera/microphone permission checks
    - LifecycleTransport: remote session registration and co-broadcast signalling
    - RealtimeChannel: bidirectional event stream for one session's chat
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from streamup.schemas import AccountStats, ChatMessage, Invitation, Session
from streamup.schemas.realtime import RealtimeCommand

RawEventHandler = Callable[[bytes | str | dict], Awaitable[None] | None]


class CapabilityProvider(ABC):
    """Grants access to the local capture devices."""

    @abstractmethod
    async def request_capture_access(self) -> bool:
        """Ask for camera and microphone access.

        Returns:
            True when both were granted. May block on user interaction, so
            callers bound it with a timeout.
        """


class LifecycleTransport(ABC):
    """Remote counterpart of the lifecycle and co-broadcast operations.

    Every method may raise; callers decide whether a failure aborts the
    operation (go-live, accept) or is only logged (end-of-session teardown).
    """

    @abstractmethod
    async def create_session(self, session: Session) -> None:
        """Register a newly scheduled session."""

    @abstractmethod
    async def start_session(self, session: Session) -> None:
        """Confirm go-live."""

    @abstractmethod
    async def end_session(self, session: Session) -> None:
        """Tell the remote side the broadcast finished."""

    @abstractmethod
    async def invite_co_broadcaster(self, invitation: Invitation) -> None:
        """Deliver an invitation to the invitee."""

    @abstractmethod
    async def join_co_broadcast(self, session_id: str, invite_code: str, participant_id: str) -> None:
        """Confirm an accepted invitation."""

    @abstractmethod
    async def leave_co_broadcast(self, session_id: str, participant_id: str) -> None:
        """Detach a co-broadcaster (voluntary leave or host removal)."""

    @abstractmethod
    async def fetch_chat_history(self, session_id: str, limit: int) -> list[ChatMessage]:
        """Most recent chat messages, oldest first."""


class RealtimeChannel(ABC):
    """Connection to the realtime chat server for one stream."""

    @abstractmethod
    async def emit(self, command: RealtimeCommand) -> None:
        """Send one outbound command. Raises ``ConnectionError`` when offline."""

    @abstractmethod
    def subscribe(self, handler: RawEventHandler) -> Callable[[], None]:
        """Deliver raw inbound payloads to ``handler``; returns an unsubscribe callable."""


class AccountStatsProvider(ABC):
    """Source of the aggregate account stats read by the unlock scan."""

    @abstractmethod
    async def get_stats(self) -> AccountStats | None:
        """Current stats, or None when the account has none yet."""
