"""In-process collaborators used when DEMO_MODE=true.

No device, server or socket is touched. The realtime channel echoes
outbound commands back as the inbound events a chat server would send,
so a session can be driven end to end on a single machine.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable

from loguru import logger

from streamup.domain.utils.idgen import new_message_id
from streamup.schemas import AccountStats, ChatMessage, Invitation, Session
from streamup.schemas.realtime import (
    BanUserCommand,
    DeleteMessageCommand,
    MuteUserCommand,
    RealtimeCommand,
    SendMessageCommand,
    UnbanUserCommand,
)
from streamup.schemas.schema_utils import utc_now

from .interfaces import (
    AccountStatsProvider,
    CapabilityProvider,
    LifecycleTransport,
    RawEventHandler,
    RealtimeChannel,
)


class DemoCapabilityProvider(CapabilityProvider):
    def __init__(self, granted: bool = True) -> None:
        self._granted = granted

    async def request_capture_access(self) -> bool:
        logger.info(f"CapabilityProvider DEMO_MODE=true: capture access granted={self._granted} (stub)")
        return self._granted


class DemoLifecycleTransport(LifecycleTransport):
    """Accepts every call; keeps nothing beyond the log line."""

    async def create_session(self, session: Session) -> None:
        logger.info(f"LifecycleTransport DEMO_MODE=true: create_session {session.session_id} (stub)")

    async def start_session(self, session: Session) -> None:
        logger.info(f"LifecycleTransport DEMO_MODE=true: start_session {session.session_id} (stub)")

    async def end_session(self, session: Session) -> None:
        logger.info(f"LifecycleTransport DEMO_MODE=true: end_session {session.session_id} (stub)")

    async def invite_co_broadcaster(self, invitation: Invitation) -> None:
        logger.info(
            f"LifecycleTransport DEMO_MODE=true: invite {invitation.user_id} "
            f"to {invitation.session_id} (stub)"
        )

    async def join_co_broadcast(self, session_id: str, invite_code: str, participant_id: str) -> None:
        logger.info(f"LifecycleTransport DEMO_MODE=true: {participant_id} joined {session_id} (stub)")

    async def leave_co_broadcast(self, session_id: str, participant_id: str) -> None:
        logger.info(f"LifecycleTransport DEMO_MODE=true: {participant_id} left {session_id} (stub)")

    async def fetch_chat_history(self, session_id: str, limit: int) -> list[ChatMessage]:
        logger.info("LifecycleTransport DEMO_MODE=true: fetch_chat_history returns [] (stub)")
        return []


class DemoRealtimeChannel(RealtimeChannel):
    """Loopback channel acting as the chat server for one local user."""

    def __init__(self, user_id: str, username: str) -> None:
        self._user_id = user_id
        self._username = username
        self._handlers: list[RawEventHandler] = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, handler: RawEventHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    async def emit(self, command: RealtimeCommand) -> None:
        logger.debug(f"RealtimeChannel DEMO_MODE=true: emit {command.command} (stub)")
        echo = self._echo_for(command)
        if echo is not None:
            # Deliver after the caller returns, like a real round trip.
            asyncio.get_running_loop().call_soon(self._deliver, echo)

    def _echo_for(self, command: RealtimeCommand) -> dict | None:
        if isinstance(command, SendMessageCommand):
            message = ChatMessage(
                message_id=new_message_id(),
                author_id=self._user_id,
                author_name=self._username,
                body=command.message,
                created_at=utc_now(),
                kind=command.type,
                client_ref=command.client_ref,
            )
            return {
                "event": "message",
                "stream_id": command.stream_id,
                "message": message.model_dump(mode="json", by_alias=True),
            }
        if isinstance(command, DeleteMessageCommand):
            return {"event": "message_deleted", "stream_id": command.stream_id, "message_id": command.message_id}
        if isinstance(command, BanUserCommand):
            return {
                "event": "user_banned",
                "stream_id": command.stream_id,
                "user_id": command.user_id,
                "username": command.user_id,
                "duration": command.duration,
            }
        if isinstance(command, MuteUserCommand):
            return {
                "event": "user_muted",
                "stream_id": command.stream_id,
                "user_id": command.user_id,
                "duration": command.duration,
            }
        if isinstance(command, UnbanUserCommand):
            return {"event": "user_unbanned", "stream_id": command.stream_id, "user_id": command.user_id}
        return None

    def _deliver(self, payload: dict) -> None:
        for handler in list(self._handlers):
            result = handler(payload)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)


class DemoAccountStatsProvider(AccountStatsProvider):
    def __init__(self, stats: AccountStats | None = None) -> None:
        self._stats = stats

    async def get_stats(self) -> AccountStats | None:
        return self._stats
