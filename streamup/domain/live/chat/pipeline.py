"""Chat pipeline for one session.

Owns the ordered, moderated message log and reconciles optimistic local
entries with the authoritative copies echoed by the chat server.

The log is an immutable tuple replaced on every mutation, so ``messages``
can be read from any thread and always yields a complete, sorted snapshot.
Mutations are expected to come from a single writer (the session mailbox).
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta

from loguru import logger

from streamup.app_config import AppEnvironConfig, get_app_environ_config
from streamup.domain.utils.idgen import new_local_message_id, new_message_id
from streamup.schemas import SYSTEM_AUTHOR_NAME, ChatMessage, ConnectionState, MessageKind, Reaction
from streamup.schemas.notifications import ChatConnectionChanged, ChatMessageSent, ChatNotification
from streamup.schemas.realtime import (
    BanUserCommand,
    DeleteMessageCommand,
    DisableSlowModeCommand,
    JoinStreamCommand,
    LeaveStreamCommand,
    MessageDeletedEvent,
    MessageEvent,
    ModerationAction,
    MuteUserCommand,
    RealtimeCommand,
    RealtimeEvent,
    SendLikeCommand,
    SendMessageCommand,
    SendReactionCommand,
    SetSlowModeCommand,
    UnbanUserCommand,
    UserBannedEvent,
    UserJoinedEvent,
    UserLeftEvent,
    UserMutedEvent,
    UserUnbannedEvent,
    ViewerCountUpdateEvent,
    decode_realtime_event,
)
from streamup.schemas.schema_utils import utc_now
from streamup.services.integrations.interfaces import LifecycleTransport, RawEventHandler, RealtimeChannel
from streamup.shared.observers import Observers
from streamup.utils.app_errors import Banned, EmptyMessage, MessageTooLong, Muted, NotConnected, RateLimited

from .commands import ClearCommand, SlowModeCommand, SlowModeOffCommand, UnknownCommand, parse_command

ViewerCountCallback = Callable[[int], Awaitable[None] | None]


class ChatPipeline:
    def __init__(
        self,
        *,
        user_id: str,
        username: str,
        channel: RealtimeChannel,
        transport: LifecycleTransport,
        settings: AppEnvironConfig | None = None,
        inbound: RawEventHandler | None = None,
        on_viewer_count: ViewerCountCallback | None = None,
        clock: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.user_id = user_id
        self.username = username
        self._channel = channel
        self._transport = transport
        self._cfg = settings or get_app_environ_config()
        # Raw payload handler; the owning controller routes it through its mailbox.
        self._inbound = inbound or self._decode_and_dispatch
        self._on_viewer_count = on_viewer_count
        self._clock = clock
        self._monotonic = monotonic

        self._log: tuple[ChatMessage, ...] = ()
        self._next_seq = 0
        self._stream_id: str | None = None
        self._connection = ConnectionState.DISCONNECTED
        self._unsubscribe: Callable[[], None] | None = None

        self._mutes: dict[str, datetime] = {}
        self._blocked: set[str] = set()
        self._slow_mode_delay: float | None = None
        self._last_send: dict[str, float] = {}

        self.events: Observers[ChatNotification] = Observers(f"chat:{user_id}")

    # ==================== READ ====================

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self._log

    @property
    def stream_id(self) -> str | None:
        return self._stream_id

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection

    @property
    def slow_mode_delay(self) -> float | None:
        return self._slow_mode_delay

    def is_muted(self, user_id: str) -> bool:
        return user_id in self._mutes

    def pending_messages(self) -> list[ChatMessage]:
        """Optimistic entries still waiting for their authoritative echo."""
        return [m for m in self._log if m.is_local]

    def filtered_view(self, kind: MessageKind | None = None, include_system: bool = True) -> list[ChatMessage]:
        """Visible messages, optionally restricted to ``kind`` and without system entries."""
        view = [m for m in self._log if m.is_visible]
        if kind is not None:
            view = [m for m in view if m.kind == kind]
        if not include_system:
            view = [m for m in view if not m.is_system]
        return view

    def distinct_authors(self) -> set[str]:
        return {m.author_id for m in self._log if m.author_id is not None and not m.is_system}

    # ==================== ATTACH / DETACH ====================

    async def attach(self, stream_id: str) -> None:
        """Join the stream's chat and load recent history."""
        if self._stream_id == stream_id and self._connection == ConnectionState.CONNECTED:
            return

        self._stream_id = stream_id
        if self._unsubscribe is None:
            self._unsubscribe = self._channel.subscribe(self._inbound)

        await self._set_connection(ConnectionState.CONNECTING)
        if await self._join_and_resync():
            logger.info(f"Chat attached: stream={stream_id} messages={len(self._log)}")

    async def reconnect(self) -> None:
        """Resynchronise after a dropped connection, keeping pending optimistic entries."""
        if self._stream_id is None:
            raise NotConnected()
        await self._set_connection(ConnectionState.RECONNECTING)
        if await self._join_and_resync():
            logger.info(f"Chat reconnected: stream={self._stream_id} pending={len(self.pending_messages())}")

    async def mark_disconnected(self) -> None:
        """Record that the underlying connection dropped."""
        await self._set_connection(ConnectionState.DISCONNECTED)

    async def detach(self) -> None:
        """Leave the stream's chat, drop the subscription and clear local state."""
        stream_id = self._stream_id
        if stream_id is not None and self._connection == ConnectionState.CONNECTED:
            try:
                await self._channel.emit(LeaveStreamCommand(stream_id=stream_id))
            except Exception as e:
                logger.warning(f"leave_stream failed during detach: stream={stream_id} error={e!s}")

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        self._stream_id = None
        self._log = ()
        self._mutes.clear()
        self._blocked.clear()
        self._last_send.clear()
        self._slow_mode_delay = None
        await self._set_connection(ConnectionState.DISCONNECTED)
        logger.info(f"Chat detached: stream={stream_id}")

    async def _join_and_resync(self) -> bool:
        assert self._stream_id is not None
        try:
            await self._channel.emit(JoinStreamCommand(stream_id=self._stream_id))
        except Exception as e:
            logger.warning(f"join_stream failed: stream={self._stream_id} error={e!s}")
            await self._set_connection(ConnectionState.FAILED)
            return False

        try:
            history = await self._transport.fetch_chat_history(self._stream_id, self._cfg.CHAT_HISTORY_LIMIT)
        except Exception as e:
            # The live channel still works; the log starts from what arrives next.
            logger.warning(f"Chat history unavailable: stream={self._stream_id} error={e!s}")
            history = []

        pending = self.pending_messages()
        self._log = ()
        self._log = self._sorted_with(self._log, [*history, *pending])
        await self._set_connection(ConnectionState.CONNECTED)
        return True

    # ==================== SEND ====================

    async def send(self, text: str) -> ChatMessage | None:
        """Send ``text`` as the local user.

        Returns the optimistic entry, or None when ``text`` was a command.
        """
        if self._stream_id is None or self._connection != ConnectionState.CONNECTED:
            raise NotConnected()
        if not text.strip():
            raise EmptyMessage()

        command = parse_command(text, self._cfg.CHAT_COMMAND_PREFIX, self._cfg.SLOW_MODE_DEFAULT_DELAY)
        if command is not None:
            await self._run_command(command)
            return None

        if len(text) > self._cfg.CHAT_MAX_MESSAGE_LENGTH:
            raise MessageTooLong(f"Messages are limited to {self._cfg.CHAT_MAX_MESSAGE_LENGTH} characters.")
        if self.user_id in self._blocked:
            raise Banned()
        if self.user_id in self._mutes:
            raise Muted()

        now = self._monotonic()
        last = self._last_send.get(self.user_id)
        if self._slow_mode_delay and last is not None and now - last < self._slow_mode_delay:
            raise RateLimited(f"Slow mode is on. Wait {self._slow_mode_delay:g} seconds between messages.")

        local_id = new_local_message_id()
        message = ChatMessage(
            message_id=local_id,
            author_id=self.user_id,
            author_name=self.username,
            body=text,
            created_at=self._clock(),
            kind=MessageKind.TEXT,
            is_local=True,
            client_ref=local_id,
        )
        self._log = self._sorted_with(self._log, [message])
        self._last_send[self.user_id] = now

        command_out = SendMessageCommand(stream_id=self._stream_id, message=text, client_ref=local_id)
        if not await self._emit(command_out):
            return message

        await self.events.publish(ChatMessageSent(session_id=self._stream_id, message=message))
        return message

    async def _run_command(self, command) -> None:
        if isinstance(command, ClearCommand):
            self._log = ()
            logger.info(f"Chat cleared locally: stream={self._stream_id}")
        elif isinstance(command, SlowModeCommand):
            self._slow_mode_delay = command.delay
            await self._emit(SetSlowModeCommand(stream_id=self._stream_id, delay=command.delay))
        elif isinstance(command, SlowModeOffCommand):
            self._slow_mode_delay = None
            await self._emit(DisableSlowModeCommand(stream_id=self._stream_id))
        elif isinstance(command, UnknownCommand):
            logger.info(f"Ignoring unknown chat command: {command.name!r}")

    # ==================== OUTBOUND ACTIONS ====================

    async def send_like(self) -> None:
        await self._emit(SendLikeCommand(stream_id=self._require_stream()))

    async def react(self, message_id: str, emoji: str) -> None:
        """Tally ``emoji`` on a message for the local user and forward it."""
        stream_id = self._require_stream()
        for message in self._log:
            if message.message_id == message_id:
                updated = _with_reaction(message, emoji, self.user_id)
                if updated is not message:
                    self._replace(message, updated)
                break
        await self._emit(SendReactionCommand(stream_id=stream_id, emoji=emoji, message_id=message_id))

    async def delete_message(self, message_id: str) -> None:
        await self._emit(DeleteMessageCommand(stream_id=self._require_stream(), message_id=message_id))

    async def ban_user(self, user_id: str, duration: float | None = None) -> None:
        await self._emit(BanUserCommand(stream_id=self._require_stream(), user_id=user_id, duration=duration))

    async def unban_user(self, user_id: str) -> None:
        await self._emit(UnbanUserCommand(stream_id=self._require_stream(), user_id=user_id))

    async def mute_user(self, user_id: str, duration: float) -> None:
        await self._emit(MuteUserCommand(stream_id=self._require_stream(), user_id=user_id, duration=duration))

    def block_user(self, user_id: str) -> None:
        """Block ``user_id`` from sending through this pipeline."""
        self._blocked.add(user_id)

    def unblock_user(self, user_id: str) -> None:
        self._blocked.discard(user_id)

    # ==================== INBOUND ====================

    async def dispatch_event(self, event: RealtimeEvent) -> None:
        """Apply one decoded inbound event."""
        if isinstance(event, MessageEvent):
            self.on_remote_message(event.message)
        elif isinstance(event, (MessageDeletedEvent, UserBannedEvent, UserMutedEvent, UserUnbannedEvent)):
            self.on_moderation(event)
        elif isinstance(event, UserJoinedEvent):
            self.on_user_joined(event.username)
        elif isinstance(event, UserLeftEvent):
            self.on_user_left(event.username)
        elif isinstance(event, ViewerCountUpdateEvent):
            await self.on_viewer_count_update(event.count)

    def on_remote_message(self, message: ChatMessage) -> None:
        """Insert an authoritative message, replacing its optimistic copy if present."""
        incoming = message.model_copy(update={"is_local": False})
        entries = list(self._log)

        existing = next((i for i, m in enumerate(entries) if m.message_id == incoming.message_id), None)
        if existing is None:
            existing = _find_optimistic(entries, incoming)
        if existing is not None:
            del entries[existing]

        self._log = self._sorted_with(tuple(entries), [incoming])

    def on_moderation(self, action: ModerationAction) -> None:
        if isinstance(action, MessageDeletedEvent):
            self._log = tuple(m for m in self._log if m.message_id != action.message_id)
        elif isinstance(action, UserBannedEvent):
            kept = tuple(m for m in self._log if m.author_id != action.user_id)
            notice = self._system_message(f"{action.username} has been banned", MessageKind.SYSTEM)
            self._log = self._sorted_with(kept, [notice])
            logger.info(f"User banned from chat: stream={self._stream_id} user={action.user_id}")
        elif isinstance(action, UserMutedEvent):
            self._mutes[action.user_id] = self._clock() + timedelta(seconds=action.duration)
            logger.info(f"User muted: stream={self._stream_id} user={action.user_id} for={action.duration}s")
        elif isinstance(action, UserUnbannedEvent):
            self._mutes.pop(action.user_id, None)
            self._blocked.discard(action.user_id)

    def on_user_joined(self, username: str) -> None:
        self._log = self._sorted_with(self._log, [self._system_message(f"{username} joined the stream", MessageKind.JOIN)])

    def on_user_left(self, username: str) -> None:
        self._log = self._sorted_with(self._log, [self._system_message(f"{username} left the stream", MessageKind.LEAVE)])

    async def on_viewer_count_update(self, count: int) -> None:
        if self._on_viewer_count is None:
            return
        result = self._on_viewer_count(count)
        if result is not None:
            await result

    def expire_mutes(self, now: datetime | None = None) -> list[str]:
        """Lift mutes whose window has passed; returns the released user ids."""
        now = now or self._clock()
        released = [user_id for user_id, until in self._mutes.items() if until <= now]
        for user_id in released:
            del self._mutes[user_id]
        return released

    async def _decode_and_dispatch(self, raw) -> None:
        event = decode_realtime_event(raw)
        if event is not None:
            await self.dispatch_event(event)

    # ==================== INTERNALS ====================

    def _require_stream(self) -> str:
        if self._stream_id is None or self._connection != ConnectionState.CONNECTED:
            raise NotConnected()
        return self._stream_id

    async def _emit(self, command: RealtimeCommand) -> bool:
        try:
            await self._channel.emit(command)
            return True
        except Exception as e:
            logger.warning(f"Realtime emit failed: command={command.command} error={e!s}")
            await self._set_connection(ConnectionState.DISCONNECTED)
            return False

    async def _set_connection(self, state: ConnectionState) -> None:
        old = self._connection
        if old == state:
            return
        self._connection = state
        logger.debug(f"Chat connection: stream={self._stream_id} {old.value} -> {state.value}")
        await self.events.publish(ChatConnectionChanged(session_id=self._stream_id, old_state=old, new_state=state))

    def _system_message(self, body: str, kind: MessageKind) -> ChatMessage:
        return ChatMessage(
            message_id=new_message_id(),
            author_id=None,
            author_name=SYSTEM_AUTHOR_NAME,
            body=body,
            created_at=self._clock(),
            kind=kind,
        )

    def _replace(self, old: ChatMessage, new: ChatMessage) -> None:
        new._seq = old.seq
        self._log = tuple(new if m is old else m for m in self._log)

    def _sorted_with(self, base: tuple[ChatMessage, ...], added: Iterable[ChatMessage]) -> tuple[ChatMessage, ...]:
        fresh = []
        for message in added:
            message._seq = self._next_seq
            self._next_seq += 1
            fresh.append(message)
        return tuple(sorted((*base, *fresh), key=ChatMessage.sort_key))


def _find_optimistic(entries: list[ChatMessage], incoming: ChatMessage) -> int | None:
    if incoming.client_ref:
        for i, m in enumerate(entries):
            if m.is_local and m.message_id == incoming.client_ref:
                return i
        return None
    # Content match: the first pending entry with the same author and body.
    for i, m in enumerate(entries):
        if m.is_local and m.author_id == incoming.author_id and m.body == incoming.body:
            return i
    return None


def _with_reaction(message: ChatMessage, emoji: str, user_id: str) -> ChatMessage:
    reactions = [r.model_copy(deep=True) for r in message.reactions]
    for reaction in reactions:
        if reaction.emoji == emoji:
            if user_id in reaction.user_ids:
                return message
            reaction.user_ids.append(user_id)
            reaction.count += 1
            break
    else:
        reactions.append(Reaction(emoji=emoji, count=1, user_ids=[user_id]))
    return message.model_copy(update={"reactions": reactions})
