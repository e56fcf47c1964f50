"""Lifecycle controller for one session.

The controller owns the session record and composes the co-broadcast
coordinator and the chat pipeline. Lifecycle transitions are serialised by
a per-session ``asyncio.Lock``; remote events, timer ticks and chat intents
run on the session's ``Mailbox`` so the chat log and metrics have a single
writer.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime

from loguru import logger

from streamup.app_config import AppEnvironConfig, get_app_environ_config
from streamup.domain.live.chat import ChatPipeline
from streamup.domain.live.co_broadcast import CoBroadcastCoordinator
from streamup.domain.progression import ProgressionEngine
from streamup.schemas import ChatMessage, Session, SessionState, StreamQuality
from streamup.schemas.notifications import (
    ActivityEvent,
    ChatMessageSent,
    CoBroadcastJoined,
    ParticipantJoined,
    SessionStateChanged,
    StreamEnded,
    StreamStarted,
)
from streamup.schemas.realtime import decode_realtime_event
from streamup.schemas.schema_utils import utc_now
from streamup.services.integrations.interfaces import CapabilityProvider, LifecycleTransport, RealtimeChannel
from streamup.shared.mailbox import Mailbox
from streamup.shared.observers import Observers
from streamup.utils.app_errors import InvalidTransition, NotConnected, PermissionDenied, RequestTimeout

from .session_models import SessionMetrics
from .session_state_machine import SessionStateMachine


class SessionController:
    def __init__(
        self,
        session: Session,
        *,
        username: str,
        capability: CapabilityProvider,
        transport: LifecycleTransport,
        channel: RealtimeChannel,
        progression: ProgressionEngine | None = None,
        settings: AppEnvironConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self._capability = capability
        self._transport = transport
        self._progression = progression
        self._cfg = settings or get_app_environ_config()
        self._clock = clock
        self._monotonic = monotonic

        self._lock = asyncio.Lock()
        self._mailbox = Mailbox(f"session:{session.session_id}")
        self._ticker: asyncio.Task | None = None

        # Live time only; paused intervals are folded out.
        self._live_since: float | None = None
        self._live_accum = 0.0
        self._last_tick: float | None = None

        self.coordinator = CoBroadcastCoordinator(session, transport, self._cfg, clock)
        self.chat = ChatPipeline(
            user_id=session.owner_id,
            username=username,
            channel=channel,
            transport=transport,
            settings=self._cfg,
            inbound=self.handle_realtime_event,
            on_viewer_count=self._apply_viewer_count,
            clock=clock,
            monotonic=monotonic,
        )
        self.events: Observers[SessionStateChanged] = Observers(f"session:{session.session_id}")

        self.chat.events.subscribe(self._on_chat_event)
        self.coordinator.events.subscribe(self._on_co_broadcast_event)

    # ==================== READ ====================

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def session(self) -> Session:
        """Snapshot of the session record."""
        return self._session.model_copy(deep=True)

    @property
    def status(self) -> SessionState:
        return self._session.status

    @property
    def duration_seconds(self) -> float:
        if self._live_since is None:
            return self._live_accum
        return self._live_accum + (self._monotonic() - self._live_since)

    def metrics(self) -> SessionMetrics:
        return SessionMetrics(
            duration_seconds=self.duration_seconds,
            viewer_count=self._session.viewer_count,
            peak_viewer_count=self._session.peak_viewer_count,
            total_watch_time=self._session.total_watch_time,
            engagement_rate=self._session.engagement_rate,
            co_broadcasters=len(self.coordinator.slots),
            chat_messages=len(self.chat.messages),
        )

    # ==================== LIFECYCLE ====================

    def start(self) -> None:
        """Start the session mailbox; requires a running event loop."""
        self._mailbox.start()

    async def request_go_live(self) -> None:
        changes: list[SessionStateChanged] = []
        try:
            async with self._lock:
                self._require_not_terminal()
                if self._session.status == SessionState.LIVE:
                    logger.info(f"Session {self.session_id} already live, skipping")
                    return
                if self._session.status == SessionState.SCHEDULED:
                    changes.append(self._transition(SessionState.STARTING))
                elif self._session.status != SessionState.STARTING:
                    raise InvalidTransition()

                timeout = self._cfg.CAPABILITY_TIMEOUT_SECONDS
                try:
                    granted = await asyncio.wait_for(self._capability.request_capture_access(), timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Capture access request timed out: session={self.session_id}")
                    raise RequestTimeout()
                if not granted:
                    logger.info(f"Capture access denied: session={self.session_id}")
                    raise PermissionDenied()

                try:
                    await asyncio.wait_for(self._transport.start_session(self.session), timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Go-live confirmation timed out: session={self.session_id}")
                    raise RequestTimeout()

                changes.append(self._transition(SessionState.LIVE))
                self._live_since = self._monotonic()
                self._last_tick = self._live_since
                self.start()
                self._start_ticker()
                await self._mailbox.call(self.chat.attach, self.session_id)
        finally:
            await self._publish(changes)

        logger.info(f"Session {self.session_id} is live")
        await self._report_activity(StreamStarted(session_id=self.session_id))

    async def pause(self) -> None:
        async with self._lock:
            self._require_not_terminal()
            if self._session.status == SessionState.PAUSED:
                return
            change = self._transition(SessionState.PAUSED)
            self._fold_live_time()
        await self._publish([change])

    async def resume(self) -> None:
        async with self._lock:
            self._require_not_terminal()
            if self._session.status == SessionState.LIVE:
                return
            if self._session.status != SessionState.PAUSED:
                raise InvalidTransition("Only a paused session can resume.")
            change = self._transition(SessionState.LIVE)
            self._live_since = self._monotonic()
            self._last_tick = self._live_since
        await self._publish([change])

    async def end(self) -> None:
        """End the broadcast.

        The terminal state is recorded before any teardown step runs, and a
        failing step is logged without stopping the others.
        """
        async with self._lock:
            self._require_not_terminal()
            change = self._transition(SessionState.ENDED)
            self._fold_live_time()
            duration = self._live_accum
            peak = self._session.peak_viewer_count

            await self._teardown()
        await self._publish([change])

        logger.info(f"Session {self.session_id} ended: duration={duration:.1f}s peak_viewers={peak}")
        await self._report_activity(
            StreamEnded(session_id=self.session_id, duration_seconds=duration, peak_viewers=peak)
        )

    async def cancel(self) -> None:
        async with self._lock:
            self._require_not_terminal()
            change = self._transition(SessionState.CANCELLED)
            await self._teardown()
        await self._publish([change])
        logger.info(f"Session {self.session_id} cancelled")

    async def _teardown(self) -> None:
        await self._stop_ticker()

        try:
            await self._transport.end_session(self.session)
        except Exception as e:
            logger.warning(f"Failed to end session {self.session_id} on transport: {e!s}")

        try:
            await self.coordinator.teardown()
        except Exception as e:
            logger.warning(f"Failed to tear down co-broadcast for session {self.session_id}: {e!s}")

        try:
            if self._mailbox.running:
                await self._mailbox.call(self.chat.detach)
            else:
                await self.chat.detach()
        except Exception as e:
            logger.warning(f"Failed to detach chat for session {self.session_id}: {e!s}")

        try:
            await self._mailbox.close()
        except Exception as e:
            logger.warning(f"Failed to close mailbox for session {self.session_id}: {e!s}")

    # ==================== SETTINGS ====================

    def set_quality(self, quality: StreamQuality) -> None:
        self._require_not_terminal()
        self._session.quality = quality
        logger.info(f"Session {self.session_id} quality set to {quality.value}")

    def toggle_camera(self) -> bool:
        self._require_not_terminal()
        self._session.camera_enabled = not self._session.camera_enabled
        return self._session.camera_enabled

    def toggle_microphone(self) -> bool:
        self._require_not_terminal()
        self._session.microphone_enabled = not self._session.microphone_enabled
        return self._session.microphone_enabled

    def update_viewer_count(self, count: int) -> None:
        self._require_not_terminal()
        self._apply_viewer_count(count)

    # ==================== REMOTE EVENTS & TICKS ====================

    def handle_realtime_event(self, raw: bytes | str | dict) -> None:
        """Decode one inbound payload and queue it for the session's writer.

        Safe to call from any thread.
        """
        event = decode_realtime_event(raw)
        if event is None:
            return
        if not self._mailbox.running:
            logger.debug(f"Dropping realtime event for inactive session {self.session_id}: {event.event}")
            return

        try:
            on_loop = asyncio.get_running_loop() is self._mailbox.loop
        except RuntimeError:
            on_loop = False

        try:
            if on_loop:
                self._mailbox.post(self.chat.dispatch_event, event)
            else:
                self._mailbox.post_threadsafe(self.chat.dispatch_event, event)
        except RuntimeError:
            logger.debug(f"Dropping realtime event for closing session {self.session_id}: {event.event}")

    async def tick(self) -> None:
        """Run one timer tick on the session's writer."""
        if self._mailbox.running:
            await self._mailbox.call(self._tick_once)
        else:
            await self._tick_once()

    async def _tick_once(self) -> None:
        if SessionStateMachine.is_terminal(self._session.status):
            return

        now_mono = self._monotonic()
        if self._session.status == SessionState.LIVE and self._last_tick is not None:
            self._session.total_watch_time += self._session.viewer_count * (now_mono - self._last_tick)
        self._last_tick = now_mono

        now = self._clock()
        for user_id in self.chat.expire_mutes(now):
            logger.debug(f"Mute expired: session={self.session_id} user={user_id}")
        self.coordinator.expire_invitations(now)
        self._update_engagement()

        if self._progression is not None:
            try:
                await self._progression.rollover_challenges(now)
            except Exception as e:
                logger.warning(f"Challenge rollover failed: {e!s}")

    def _start_ticker(self) -> None:
        interval = self._cfg.SESSION_TICK_SECONDS
        if interval <= 0 or (self._ticker and not self._ticker.done()):
            return

        async def _loop():
            try:
                while True:
                    await asyncio.sleep(interval)
                    try:
                        await self._mailbox.call(self._tick_once)
                    except RuntimeError:
                        break
                    except Exception as e:
                        logger.error(f"Session tick failed: session={self.session_id} error={e!s}")
            except asyncio.CancelledError:
                pass

        self._ticker = asyncio.create_task(_loop(), name=f"session-ticker:{self.session_id}")

    async def _stop_ticker(self) -> None:
        task, self._ticker = self._ticker, None
        if task and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    # ==================== CHAT INTENTS ====================

    async def send_chat(self, text: str) -> ChatMessage | None:
        return await self._chat_call(self.chat.send, text)

    async def react(self, message_id: str, emoji: str) -> None:
        await self._chat_call(self.chat.react, message_id, emoji)

    async def send_like(self) -> None:
        await self._chat_call(self.chat.send_like)

    async def reconnect_chat(self) -> None:
        await self._chat_call(self.chat.reconnect)

    async def _chat_call(self, fn, *args):
        if not self._mailbox.running:
            raise NotConnected()
        return await self._mailbox.call(fn, *args)

    # ==================== INTERNALS ====================

    def _require_not_terminal(self) -> None:
        if SessionStateMachine.is_terminal(self._session.status):
            raise InvalidTransition("This session has already finished.")

    def _transition(self, new_state: SessionState) -> SessionStateChanged:
        old_state = self._session.status
        if not SessionStateMachine.can_transition(old_state, new_state):
            logger.warning(f"Invalid state transition: session={self.session_id} {old_state} -> {new_state}")
            raise InvalidTransition()

        self._session.status = new_state
        if new_state == SessionState.LIVE and not self._session.started_at:
            self._session.started_at = self._clock()
        elif SessionStateMachine.is_terminal(new_state) and not self._session.ended_at:
            self._session.ended_at = self._clock()

        logger.info(f"Session {self.session_id} state: {old_state} -> {new_state}")
        return SessionStateChanged(session_id=self.session_id, old_state=old_state, new_state=new_state)

    def _fold_live_time(self) -> None:
        if self._live_since is not None:
            self._live_accum += self._monotonic() - self._live_since
            self._live_since = None

    def _apply_viewer_count(self, count: int) -> None:
        count = max(0, count)
        self._session.viewer_count = count
        self._session.peak_viewer_count = max(self._session.peak_viewer_count, count)
        self._update_engagement()

    def _update_engagement(self) -> None:
        peak = self._session.peak_viewer_count
        if peak <= 0:
            self._session.engagement_rate = 0.0
            return
        self._session.engagement_rate = min(1.0, len(self.chat.distinct_authors()) / peak)

    async def _on_chat_event(self, event) -> None:
        if isinstance(event, ChatMessageSent):
            await self._report_activity(event)

    async def _on_co_broadcast_event(self, event) -> None:
        if isinstance(event, ParticipantJoined):
            await self._report_activity(
                CoBroadcastJoined(session_id=self.session_id, participant_id=event.slot.participant_id)
            )

    async def _report_activity(self, event: ActivityEvent) -> None:
        if self._progression is None:
            return
        try:
            await self._progression.handle_activity(event)
        except Exception as e:
            logger.opt(exception=e).error(f"Progression update failed: session={self.session_id}")

    async def _publish(self, changes: list[SessionStateChanged]) -> None:
        for change in changes:
            await self.events.publish(change)
