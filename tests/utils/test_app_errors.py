"""Tests for the application error taxonomy."""

from loguru import logger

from streamup.utils.app_errors import AppError, AppErrorCode, InvalidTransition, SlotsFull


class TestAppError:
    """Tests for AppError and its subclasses."""

    def test_defaults(self):
        """Test subclasses carry their code and a descriptive default message."""
        error = SlotsFull()

        assert error.errcode == AppErrorCode.E_SLOTS_FULL
        assert error.errmesg == "All co-broadcast slots are taken."
        assert len(error.erresid) == 10
        assert str(error) == "E_SLOTS_FULL All co-broadcast slots are taken."

    def test_custom_message_and_code(self):
        """Test the message and code can be overridden."""
        error = AppError("Custom failure.", errcode=AppErrorCode.E_REQUEST_TIMEOUT)

        assert error.errcode == AppErrorCode.E_REQUEST_TIMEOUT
        assert error.errmesg == "Custom failure."

    def test_caller_info_points_at_raise_site(self):
        """Test the raising call site is recorded."""
        error = InvalidTransition()

        assert ":test_caller_info_points_at_raise_site:" in error.caller_info
        assert "test_app_errors" in error.caller_info

    def test_resolution_ids_are_unique(self):
        """Test each instance gets its own resolution id."""
        assert SlotsFull().erresid != SlotsFull().erresid

    def test_log_level_follows_recoverability(self):
        """Test recoverable errors log as warnings and fatal ones as errors."""
        # Arrange
        records = []
        sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")

        # Act
        try:
            slots_full = SlotsFull()
            slots_full.log()
            InvalidTransition().log()
        finally:
            logger.remove(sink_id)

        # Assert
        assert [r["level"].name for r in records] == ["WARNING", "ERROR"]
        assert slots_full.erresid in records[0]["message"]
