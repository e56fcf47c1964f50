"""Tests for layered environment configuration."""

import pytest

from streamup.app_config import AppEnvironConfig
from streamup.shared.config import EnvironConfig


@pytest.fixture
def env_root(tmp_path, monkeypatch):
    monkeypatch.delenv("CHAT_MAX_MESSAGE_LENGTH", raising=False)
    monkeypatch.delenv("DEMO_MODE", raising=False)
    monkeypatch.delenv("SLOW_MODE_DEFAULT_DELAY", raising=False)
    (tmp_path / "env.example").write_text("DEMO_MODE=true\nCHAT_MAX_MESSAGE_LENGTH=500\nSLOW_MODE_DEFAULT_DELAY=\n")
    return tmp_path


class TestEnvironConfig:
    """Tests for EnvironConfig layering."""

    def test_example_values_loaded(self, env_root):
        """Test env.example provides the base values."""
        env = EnvironConfig(env_root)

        assert env["CHAT_MAX_MESSAGE_LENGTH"] == "500"
        assert env.get_bool("DEMO_MODE", False) is True

    def test_local_overrides_example(self, env_root):
        """Test env.local wins over env.example."""
        (env_root / "env.local").write_text("CHAT_MAX_MESSAGE_LENGTH=280\n")

        env = EnvironConfig(env_root)

        assert env.get_int("CHAT_MAX_MESSAGE_LENGTH", 0) == 280

    def test_process_environment_wins(self, env_root, monkeypatch):
        """Test real environment variables override both files."""
        (env_root / "env.local").write_text("CHAT_MAX_MESSAGE_LENGTH=280\n")
        monkeypatch.setenv("CHAT_MAX_MESSAGE_LENGTH", "140")

        env = EnvironConfig(env_root)

        assert env.get_int("CHAT_MAX_MESSAGE_LENGTH", 0) == 140

    def test_empty_and_missing_values_use_defaults(self, env_root):
        """Test blank values fall back to the supplied default."""
        env = EnvironConfig(env_root)

        assert env.get_float("SLOW_MODE_DEFAULT_DELAY", 5.0) == 5.0
        assert env.get_str("NOT_DEFINED_ANYWHERE", "fallback") == "fallback"
        assert "NOT_DEFINED_ANYWHERE" not in env
        with pytest.raises(KeyError):
            env["NOT_DEFINED_ANYWHERE"]

    def test_reload_picks_up_changes(self, env_root):
        """Test reload re-reads the files."""
        env = EnvironConfig(env_root)
        (env_root / "env.local").write_text("DEMO_MODE=false\n")

        env.reload()

        assert env.get_bool("DEMO_MODE", True) is False


class TestAppEnvironConfig:
    """Tests for AppEnvironConfig.from_environ."""

    def test_from_environ(self, env_root):
        """Test typed settings are built from the layered values."""
        (env_root / "env.local").write_text("INVITE_TTL_SECONDS=90\nCHAT_COMMAND_PREFIX=!\n")

        settings = AppEnvironConfig.from_environ(EnvironConfig(env_root))

        assert settings.DEMO_MODE is True
        assert settings.CHAT_MAX_MESSAGE_LENGTH == 500
        assert settings.INVITE_TTL_SECONDS == 90.0
        assert settings.CHAT_COMMAND_PREFIX == "!"
        assert settings.SLOW_MODE_DEFAULT_DELAY == 5.0
