"""Tests for realtime payload decoding and command serialisation."""

from datetime import timezone

import orjson
import pytest

from streamup.schemas import MessageKind
from streamup.schemas.realtime import (
    MessageDeletedEvent,
    MessageEvent,
    SendMessageCommand,
    SetSlowModeCommand,
    UserBannedEvent,
    UserMutedEvent,
    ViewerCountUpdateEvent,
    decode_realtime_event,
)


class TestDecodeRealtimeEvent:
    """Tests for decode_realtime_event function."""

    def test_message_event_from_bytes(self):
        """Test a server message payload decodes with its aliases."""
        # Arrange
        raw = orjson.dumps(
            {
                "event": "message",
                "stream_id": "se_1",
                "message": {
                    "id": "msg_1",
                    "user_id": "u.a",
                    "username": "alice",
                    "message": "hi",
                    "timestamp": "2026-03-02T12:00:00",
                    "type": "emoji",
                },
            }
        )

        # Act
        event = decode_realtime_event(raw)

        # Assert
        assert isinstance(event, MessageEvent)
        assert event.stream_id == "se_1"
        assert event.message.message_id == "msg_1"
        assert event.message.author_name == "alice"
        assert event.message.kind == MessageKind.EMOJI
        assert event.message.created_at.tzinfo == timezone.utc

    def test_moderation_events_from_dict(self):
        """Test each moderation tag maps to its own variant."""
        assert isinstance(decode_realtime_event({"event": "message_deleted", "message_id": "m1"}), MessageDeletedEvent)
        assert isinstance(
            decode_realtime_event({"event": "user_banned", "user_id": "u.t", "username": "t"}), UserBannedEvent
        )
        muted = decode_realtime_event({"event": "user_muted", "user_id": "u.t", "duration": 30})
        assert isinstance(muted, UserMutedEvent)
        assert muted.duration == 30

    def test_viewer_count_from_str(self):
        """Test JSON text input is accepted."""
        event = decode_realtime_event('{"event": "viewer_count_update", "count": 7}')

        assert event == ViewerCountUpdateEvent(count=7)

    @pytest.mark.parametrize(
        "raw",
        [
            b"{broken",
            {"event": "unknown_tag"},
            {"event": "viewer_count_update", "count": -1},
            {"event": "user_muted", "user_id": "u.t", "duration": 0},
            {"message_id": "m1"},
        ],
    )
    def test_bad_payloads_dropped(self, raw):
        """Test undecodable or invalid payloads return None instead of raising."""
        assert decode_realtime_event(raw) is None


class TestCommands:
    """Tests for outbound command payloads."""

    def test_send_message_payload(self):
        """Test send_message carries the tag, body, kind and correlation id."""
        command = SendMessageCommand(stream_id="se_1", message="hello", client_ref="local_1")

        assert command.to_payload() == {
            "command": "send_message",
            "stream_id": "se_1",
            "message": "hello",
            "type": "text",
            "client_ref": "local_1",
        }

    def test_none_fields_omitted(self):
        """Test optional empty fields are left out of the payload."""
        payload = SendMessageCommand(stream_id="se_1", message="hello").to_payload()

        assert "client_ref" not in payload

    def test_slow_mode_payload(self):
        """Test set_slow_mode carries the delay."""
        assert SetSlowModeCommand(stream_id="se_1", delay=5).to_payload() == {
            "command": "set_slow_mode",
            "stream_id": "se_1",
            "delay": 5.0,
        }
