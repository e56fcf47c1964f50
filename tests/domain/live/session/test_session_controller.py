"""Tests for SessionController lifecycle, metrics and event routing."""

import asyncio

import pytest
from loguru import logger

from streamup.domain.live.session import SessionController
from streamup.domain.progression import InMemoryProgressionStore, ProgressionEngine
from streamup.schemas import ConnectionState, Session, SessionState, StreamQuality
from streamup.schemas.notifications import SessionStateChanged
from streamup.services.integrations.interfaces import CapabilityProvider
from streamup.utils.app_errors import InvalidTransition, NotConnected, PermissionDenied, RequestTimeout


class HangingCapability(CapabilityProvider):
    """Capability prompt the user never answers."""

    async def request_capture_access(self) -> bool:
        await asyncio.sleep(60)
        return True


@pytest.fixture
def progression(clock) -> ProgressionEngine:
    return ProgressionEngine("acct_1", InMemoryProgressionStore(), clock=clock)


@pytest.fixture
async def make_controller(capability, transport, channel, progression, settings, clock, monotonic):
    created: list[SessionController] = []

    def _make(capacity: int = 2, **overrides) -> SessionController:
        session = Session(session_id="se_test", owner_id="u.host", title="Test stream", capacity=capacity)
        kwargs = dict(
            username="host",
            capability=capability,
            transport=transport,
            channel=channel,
            progression=progression,
            settings=settings,
            clock=clock,
            monotonic=monotonic,
        )
        kwargs.update(overrides)
        controller = SessionController(session, **kwargs)
        controller.start()
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        await controller._stop_ticker()
        await controller._mailbox.close()


@pytest.fixture
async def live_controller(make_controller) -> SessionController:
    controller = make_controller()
    await controller.request_go_live()
    return controller


async def wait_for(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestGoLive:
    """Tests for request_go_live."""

    async def test_go_live_success(self, make_controller, transport, channel, progression, clock):
        """Test a granted go-live reaches LIVE, attaches chat and awards XP."""
        # Arrange
        controller = make_controller()
        changes = []
        controller.events.subscribe(changes.append)

        # Act
        await controller.request_go_live()

        # Assert
        assert controller.status == SessionState.LIVE
        assert controller.session.started_at == clock()
        assert transport.called("start_session") == [("start_session", "se_test")]
        assert controller.chat.connection_state == ConnectionState.CONNECTED
        assert len(channel.commands("join_stream")) == 1
        assert [(c.old_state, c.new_state) for c in changes] == [
            (SessionState.SCHEDULED, SessionState.STARTING),
            (SessionState.STARTING, SessionState.LIVE),
        ]
        # stream_started plus the daily go-live challenge
        assert progression.experience_points == 150

    async def test_denied_then_retry(self, make_controller, capability):
        """Test a denial leaves the session STARTING and a later retry succeeds."""
        # Arrange
        controller = make_controller()
        capability.granted = False

        # Act & Assert
        with pytest.raises(PermissionDenied):
            await controller.request_go_live()
        assert controller.status == SessionState.STARTING
        assert controller.session.started_at is None

        capability.granted = True
        await controller.request_go_live()
        assert controller.status == SessionState.LIVE

    async def test_capability_timeout(self, make_controller, settings):
        """Test an unanswered permission prompt surfaces as RequestTimeout."""
        controller = make_controller(
            capability=HangingCapability(),
            settings=settings.model_copy(update={"CAPABILITY_TIMEOUT_SECONDS": 0.05}),
        )

        with pytest.raises(RequestTimeout):
            await controller.request_go_live()

        assert controller.status == SessionState.STARTING

    async def test_go_live_when_live_is_noop(self, live_controller, capability, transport):
        """Test asking again while live does nothing."""
        await live_controller.request_go_live()

        assert capability.calls == 1
        assert len(transport.called("start_session")) == 1

    async def test_go_live_from_paused_rejected(self, live_controller):
        """Test a paused session resumes instead of going live again."""
        await live_controller.pause()

        with pytest.raises(InvalidTransition):
            await live_controller.request_go_live()


class TestPauseResume:
    """Tests for pause, resume and duration."""

    async def test_pause_and_resume_are_idempotent(self, live_controller):
        """Test repeated pause/resume calls emit one change each."""
        # Arrange
        changes = []
        live_controller.events.subscribe(changes.append)

        # Act
        await live_controller.pause()
        await live_controller.pause()
        await live_controller.resume()
        await live_controller.resume()

        # Assert
        assert [c.new_state for c in changes] == [SessionState.PAUSED, SessionState.LIVE]

    async def test_duration_excludes_paused_time(self, live_controller, monotonic):
        """Test only live intervals count towards the duration."""
        monotonic.advance(60)
        await live_controller.pause()
        monotonic.advance(100)
        await live_controller.resume()
        monotonic.advance(30)

        assert live_controller.duration_seconds == pytest.approx(90)

    async def test_pause_before_live_rejected(self, make_controller):
        """Test pausing a scheduled session raises InvalidTransition."""
        with pytest.raises(InvalidTransition):
            await make_controller().pause()

    async def test_resume_while_starting_rejected(self, make_controller, capability, progression):
        """Test resume cannot bypass the go-live handshake after a denial."""
        # Arrange
        controller = make_controller()
        capability.granted = False
        with pytest.raises(PermissionDenied):
            await controller.request_go_live()

        # Act & Assert
        with pytest.raises(InvalidTransition):
            await controller.resume()
        assert controller.status == SessionState.STARTING
        assert controller.session.started_at is None
        assert controller.chat.connection_state != ConnectionState.CONNECTED
        assert progression.experience_points == 0

    async def test_resume_while_scheduled_rejected(self, make_controller):
        """Test resume on a session that never started raises InvalidTransition."""
        controller = make_controller()

        with pytest.raises(InvalidTransition):
            await controller.resume()
        assert controller.status == SessionState.SCHEDULED


class TestEnd:
    """Tests for end and cancel."""

    async def test_end_twice(self, live_controller, progression, monotonic):
        """Test a second end fails and leaves the first end's award in place."""
        # Arrange
        monotonic.advance(120)
        await live_controller.end()
        xp_after_first_end = progression.experience_points

        # Act & Assert
        with pytest.raises(InvalidTransition):
            await live_controller.end()
        assert live_controller.status == SessionState.ENDED
        assert xp_after_first_end == 150 + 100
        assert progression.experience_points == xp_after_first_end

    async def test_end_tears_everything_down(self, live_controller, channel, transport, clock):
        """Test end detaches chat, cancels invitations and stops the mailbox."""
        # Arrange
        invitation = await live_controller.coordinator.invite("u.guest")

        # Act
        await live_controller.end()

        # Assert
        assert live_controller.session.ended_at == clock()
        assert transport.called("end_session") == [("end_session", "se_test")]
        assert channel.handlers == []
        assert len(channel.commands("leave_stream")) == 1
        assert live_controller.coordinator.pending_invitations == []
        assert invitation.status.value == "cancelled"
        assert not live_controller._mailbox.running

    async def test_end_during_guest_join(self, live_controller, transport):
        """Test ending while a guest's join is in flight leaves the ended session without slots."""
        # Arrange
        coordinator = live_controller.coordinator
        invitation = await coordinator.invite("u.guest")
        transport.join_gate = asyncio.Event()
        accept_task = asyncio.create_task(coordinator.accept(invitation.invite_code))
        await wait_for(lambda: transport.join_waiting)

        # Act
        end_task = asyncio.create_task(live_controller.end())
        await wait_for(lambda: live_controller.status == SessionState.ENDED)
        transport.join_gate.set()
        await end_task

        # Assert
        with pytest.raises(InvalidTransition):
            await accept_task
        assert live_controller.status == SessionState.ENDED
        assert coordinator.slots == []
        assert coordinator.pending_invitations == []
        assert transport.called("leave_co_broadcast") == [("leave_co_broadcast", "u.guest")]

    async def test_end_survives_transport_failure(self, live_controller, transport):
        """Test a failing teardown step still leaves the session ENDED."""
        transport.fail_on.add("end_session")

        await live_controller.end()

        assert live_controller.status == SessionState.ENDED
        assert live_controller.chat.connection_state == ConnectionState.DISCONNECTED

    async def test_end_from_paused(self, live_controller):
        """Test a paused session can end."""
        await live_controller.pause()

        await live_controller.end()

        assert live_controller.status == SessionState.ENDED

    async def test_cancel_scheduled(self, make_controller, clock):
        """Test a session that never aired is cancelled."""
        controller = make_controller()

        await controller.cancel()

        assert controller.status == SessionState.CANCELLED
        assert controller.session.ended_at == clock()
        assert controller.session.started_at is None

    async def test_cancel_live_rejected(self, live_controller):
        """Test a live session must end, not cancel."""
        with pytest.raises(InvalidTransition):
            await live_controller.cancel()

    async def test_terminal_session_rejects_settings(self, live_controller):
        """Test every lifecycle call on a finished session raises InvalidTransition."""
        await live_controller.end()

        with pytest.raises(InvalidTransition):
            live_controller.set_quality(StreamQuality.HIGH)
        with pytest.raises(InvalidTransition):
            live_controller.toggle_camera()
        with pytest.raises(InvalidTransition):
            await live_controller.resume()

    async def test_state_change_published_once_per_transition(self, live_controller):
        """Test end publishes a single SessionStateChanged."""
        changes = []
        live_controller.events.subscribe(changes.append)

        await live_controller.end()

        assert changes == [
            SessionStateChanged(session_id="se_test", old_state=SessionState.LIVE, new_state=SessionState.ENDED)
        ]


class TestSettings:
    """Tests for quality and capture toggles."""

    async def test_set_quality_and_toggles(self, make_controller):
        """Test settings update the session record."""
        controller = make_controller()

        controller.set_quality(StreamQuality.ULTRA)
        camera = controller.toggle_camera()
        microphone = controller.toggle_microphone()

        assert controller.session.quality == StreamQuality.ULTRA
        assert (camera, microphone) == (False, False)

    async def test_session_property_is_a_snapshot(self, make_controller):
        """Test mutating the returned session does not touch the controller."""
        controller = make_controller()

        snapshot = controller.session
        snapshot.title = "changed"

        assert controller.session.title == "Test stream"


class TestMetrics:
    """Tests for viewer counts, watch time and engagement."""

    async def test_peak_viewer_count(self, live_controller):
        """Test the peak keeps the maximum observed count."""
        live_controller.update_viewer_count(10)
        live_controller.update_viewer_count(4)

        session = live_controller.session
        assert (session.viewer_count, session.peak_viewer_count) == (4, 10)

    async def test_watch_time_accumulates_only_while_live(self, live_controller, monotonic):
        """Test ticks add viewers x elapsed seconds during live time only."""
        # Arrange
        live_controller.update_viewer_count(5)

        # Act
        monotonic.advance(10)
        await live_controller.tick()
        await live_controller.pause()
        monotonic.advance(10)
        await live_controller.tick()
        await live_controller.resume()
        monotonic.advance(2)
        await live_controller.tick()

        # Assert
        assert live_controller.session.total_watch_time == pytest.approx(60)

    async def test_engagement_is_distinct_chatters_over_peak(self, live_controller, channel):
        """Test engagement counts each chatter once against the peak audience."""
        # Arrange
        live_controller.update_viewer_count(4)
        for i, author in enumerate(["u.a", "u.a", "u.b"]):
            channel.deliver(
                {
                    "event": "message",
                    "message": {"id": f"m{i}", "user_id": author, "username": author, "message": "hi"},
                }
            )
        await live_controller._mailbox.drain()

        # Act
        await live_controller.tick()

        # Assert
        assert live_controller.session.engagement_rate == pytest.approx(0.5)
        metrics = live_controller.metrics()
        assert metrics.chat_messages == 3
        assert metrics.peak_viewer_count == 4

    async def test_failed_tick_is_logged_and_ticker_survives(self, make_controller, settings):
        """Test a raising tick logs the session and error, and the next tick still runs."""
        # Arrange
        controller = make_controller(settings=settings.model_copy(update={"SESSION_TICK_SECONDS": 0.01}))
        await controller.request_go_live()
        calls = []

        def _broken_tick():
            calls.append(1)
            raise ValueError("bad sample")

        controller._tick_once = _broken_tick
        records = []
        sink_id = logger.add(lambda message: records.append(message.record), level="ERROR")

        # Act
        try:
            await wait_for(lambda: len(calls) >= 2)
        finally:
            logger.remove(sink_id)

        # Assert
        assert records[0]["message"] == "Session tick failed: session=se_test error=bad sample"


class TestRealtimeRouting:
    """Tests for inbound realtime events."""

    async def test_viewer_count_event_updates_session(self, live_controller, channel):
        """Test viewer_count_update payloads land on the session, not in chat."""
        channel.deliver(b'{"event": "viewer_count_update", "stream_id": "se_test", "count": 12}')
        await live_controller._mailbox.drain()

        assert live_controller.session.viewer_count == 12
        assert live_controller.chat.messages == ()

    async def test_event_from_another_thread(self, live_controller, channel):
        """Test producers on foreign threads are marshalled onto the session's writer."""
        await asyncio.to_thread(channel.deliver, '{"event": "user_joined", "username": "alice"}')

        await wait_for(lambda: len(live_controller.chat.messages) == 1)
        assert live_controller.chat.messages[0].body == "alice joined the stream"

    async def test_undecodable_event_dropped(self, live_controller, channel):
        """Test garbage and unknown tags are ignored."""
        channel.deliver(b"not json")
        channel.deliver({"event": "confetti"})
        await live_controller._mailbox.drain()

        assert live_controller.chat.messages == ()

    async def test_events_after_end_are_dropped(self, live_controller):
        """Test a late delivery after end raises nothing."""
        await live_controller.end()

        live_controller.handle_realtime_event({"event": "user_joined", "username": "late"})

        assert live_controller.chat.messages == ()


class TestChatAndProgression:
    """Tests for chat intents and activity forwarding."""

    async def test_send_chat_awards_xp(self, live_controller, progression, channel):
        """Test a sent message is forwarded and counted for progression."""
        message = await live_controller.send_chat("hello")

        assert message.body == "hello"
        assert channel.commands("send_message")[0].message == "hello"
        assert progression.experience_points == 150 + 2

    async def test_chat_command_awards_nothing(self, live_controller, progression):
        """Test commands are not chat activity."""
        assert await live_controller.send_chat("/slow 3") is None

        assert progression.experience_points == 150

    async def test_send_chat_after_end(self, live_controller):
        """Test chat intents on a finished session raise NotConnected."""
        await live_controller.end()

        with pytest.raises(NotConnected):
            await live_controller.send_chat("hello")

    async def test_co_broadcast_join_awards_xp(self, live_controller, progression):
        """Test a guest joining counts as co-broadcast activity."""
        invitation = await live_controller.coordinator.invite("u.guest")

        await live_controller.coordinator.accept(invitation.invite_code)

        assert progression.experience_points == 150 + 30

    async def test_like_and_reconnect(self, live_controller, channel, transport):
        """Test like and reconnect intents reach the channel and transport."""
        await live_controller.send_like()
        await live_controller.reconnect_chat()

        assert len(channel.commands("send_like")) == 1
        assert len(transport.called("fetch_chat_history")) == 2
