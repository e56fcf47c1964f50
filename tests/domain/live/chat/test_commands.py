"""Tests for chat slash command parsing."""

import pytest

from streamup.domain.live.chat import (
    ClearCommand,
    SlowModeCommand,
    SlowModeOffCommand,
    UnknownCommand,
    parse_command,
)


class TestParseCommand:
    """Tests for parse_command function."""

    @pytest.mark.parametrize("text", ["hello", "a / b", "", "  spaced  "])
    def test_plain_text_is_not_a_command(self, text):
        """Test ordinary chat returns None."""
        assert parse_command(text, "/", 5.0) is None

    def test_clear(self):
        """Test /clear decodes to ClearCommand."""
        assert parse_command("/clear", "/", 5.0) == ClearCommand()

    def test_command_name_is_case_insensitive(self):
        """Test /CLEAR is the same as /clear."""
        assert parse_command("  /CLEAR ", "/", 5.0) == ClearCommand()

    def test_slow_with_delay(self):
        """Test /slow 12.5 carries the delay."""
        assert parse_command("/slow 12.5", "/", 5.0) == SlowModeCommand(delay=12.5)

    def test_slow_without_delay_uses_default(self):
        """Test /slow falls back to the configured default delay."""
        assert parse_command("/slow", "/", 7.0) == SlowModeCommand(delay=7.0)

    @pytest.mark.parametrize("arg", ["soon", "-3"])
    def test_slow_with_bad_delay_is_unknown(self, arg):
        """Test a non-numeric or negative delay is not applied."""
        assert parse_command(f"/slow {arg}", "/", 5.0) == UnknownCommand(name="slow")

    def test_slowoff(self):
        """Test /slowoff decodes to SlowModeOffCommand."""
        assert parse_command("/slowoff", "/", 5.0) == SlowModeOffCommand()

    def test_unknown_command(self):
        """Test unrecognised names are kept for logging."""
        assert parse_command("/dance now", "/", 5.0) == UnknownCommand(name="dance")

    def test_bare_prefix(self):
        """Test the prefix alone is an unnamed command."""
        assert parse_command("/", "/", 5.0) == UnknownCommand(name="")

    def test_custom_prefix(self):
        """Test a configured prefix replaces the slash."""
        assert parse_command("!clear", "!", 5.0) == ClearCommand()
        assert parse_command("/clear", "!", 5.0) is None
